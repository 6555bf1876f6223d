"""
External collaborators and the partial-data provider fan-out.

The engine never owns raw signal storage. Callers hand it callables matching
the protocols below; ``gather_signals`` runs one query per provider on a
thread pool and keeps whatever arrived. A provider whose fetch raises, or
that misses the overall timeout, is logged and left out: aggregation runs
over the providers that answered.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

import networkx as nx

from .battle_zones.schema import StoreLocation
from .ids import ProviderId, provider_id
from .scoring.schema import District, ProviderSignal

logger = logging.getLogger(__name__)


class SignalQuery(Protocol):
    def __call__(self, segment_key: str, providers: Optional[List[str]] = None) -> List[ProviderSignal]: ...


class DistrictCatalog(Protocol):
    def __call__(self) -> List[District]: ...


class StoreLocationQuery(Protocol):
    def __call__(self, brand: str) -> List[StoreLocation]: ...


class DistrictAdjacencyGraph(Protocol):
    def __call__(self) -> nx.Graph: ...


@dataclass(frozen=True)
class GatherResult:
    signals: Tuple[ProviderSignal, ...]
    succeeded: Tuple[ProviderId, ...]
    failed: Dict[ProviderId, str]

    @property
    def partial(self) -> bool:
        return bool(self.failed)


def gather_signals(
    query: SignalQuery,
    segment: str,
    providers: Iterable[str],
    max_workers: int = 4,
    timeout: Optional[float] = None,
) -> GatherResult:
    """
    Fetch one segment's signals from each provider in parallel.

    Args:
        query: callable returning ProviderSignal rows for (segment, [provider])
        segment: segment key to fetch
        providers: providers to query; duplicates are queried once
        max_workers: thread pool size
        timeout: optional overall deadline in seconds; providers still
            running at the deadline are dropped

    Returns:
        GatherResult with the rows that arrived, in provider order, plus the
        providers that failed and why
    """
    wanted = list(dict.fromkeys(provider_id(p) for p in providers))
    arrived: Dict[ProviderId, List[ProviderSignal]] = {}
    failed: Dict[ProviderId, str] = {}
    if not wanted:
        return GatherResult(signals=(), succeeded=(), failed={})

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(wanted))))
    try:
        futures = {executor.submit(query, segment, [p]): p for p in wanted}
        try:
            for future in as_completed(futures, timeout=timeout):
                provider = futures[future]
                try:
                    arrived[provider] = list(future.result())
                except Exception as exc:
                    logger.warning(f"Provider {provider} failed for segment {segment!r}: {exc}")
                    failed[provider] = f"{type(exc).__name__}: {exc}"
        except FuturesTimeout:
            for future, provider in futures.items():
                if provider not in arrived and provider not in failed:
                    future.cancel()
                    logger.warning(f"Provider {provider} timed out after {timeout}s for segment {segment!r}")
                    failed[provider] = "timeout"
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    succeeded = tuple(p for p in wanted if p in arrived)
    signals = tuple(s for p in succeeded for s in arrived[p])
    logger.info(
        f"Gathered {len(signals)} rows for segment {segment!r} from {len(succeeded)}/{len(wanted)} providers"
    )
    return GatherResult(signals=signals, succeeded=succeeded, failed=failed)
