"""
Signal row hygiene shared by both aggregators.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from ..errors import SchemaError
from ..geo.coords import LatLng, is_valid_lat_lng
from ..ids import DistrictId
from .context import AggregationContext
from .schema import ProviderSignal

logger = logging.getLogger(__name__)


def ensure_signals(signals: Iterable[ProviderSignal]) -> List[ProviderSignal]:
    """
    Materialise and type-check an iterable of signals.

    Raises:
        SchemaError: if any element is not a ProviderSignal
    """
    if signals is None:
        raise SchemaError("signals must be an iterable of ProviderSignal, got None")
    if isinstance(signals, (str, bytes)) or not hasattr(signals, "__iter__"):
        raise SchemaError(f"signals must be an iterable of ProviderSignal, got {type(signals).__name__}")
    rows = list(signals)
    for row in rows:
        if not isinstance(row, ProviderSignal):
            raise SchemaError(f"Expected ProviderSignal, got {type(row).__name__}")
    return rows


def _valid_centroid(signal: ProviderSignal) -> Optional[LatLng]:
    c = signal.centroid
    if c is None or len(c) != 2 or not is_valid_lat_lng(*c):
        return None
    return float(c[0]), float(c[1])


def _rank(signal: ProviderSignal) -> tuple:
    centroid = _valid_centroid(signal)
    return (
        signal.confidence,
        signal.present,
        centroid is not None,
        signal.segment_key or "",
        signal.provider_segment_label or "",
        centroid or (),
    )


def dedupe_signals(
    signals: Iterable[ProviderSignal],
    key: Callable[[ProviderSignal], Hashable],
) -> Tuple[List[ProviderSignal], int]:
    """
    Collapse rows sharing ``key`` to one.

    Tie-break: highest confidence wins; on equal confidence a present row beats
    an absent one, then a row with a valid centroid beats one without. Any
    remaining tie is settled on segment key, provider label and centroid, so
    the winner never depends on input order. The result is ordered by key so
    repeated aggregation of the same input is identical.

    Returns:
        (deduplicated rows, number of rows dropped)
    """
    best: Dict[Hashable, ProviderSignal] = {}
    dropped = 0
    for signal in signals:
        k = key(signal)
        current = best.get(k)
        if current is None:
            best[k] = signal
            continue
        dropped += 1
        if _rank(signal) > _rank(current):
            best[k] = signal
    if dropped:
        logger.info(f"Resolved {dropped} duplicate signal rows")
    return [best[k] for k in sorted(best, key=_sort_key)], dropped


def _sort_key(k):
    if isinstance(k, tuple):
        return tuple("" if v is None else str(v) for v in k)
    return str(k)


def filter_segments(signals: List[ProviderSignal], context: AggregationContext) -> List[ProviderSignal]:
    """Keep rows for the context's segments; rows without a segment key always pass."""
    keys = set(context.segment_keys)
    if not keys:
        return signals
    return [s for s in signals if s.segment_key is None or s.segment_key in keys]


def is_eligible(signal: Optional[ProviderSignal], base_eligibility: float) -> bool:
    return signal is not None and signal.present and signal.confidence >= base_eligibility


def resolve_centroid(
    district: DistrictId,
    context: AggregationContext,
    attached: Dict[DistrictId, LatLng],
) -> Optional[LatLng]:
    """Catalog centroid first, then one attached to a signal row; None if neither is usable."""
    centroid = context.catalog_centroid(district)
    if centroid is not None and is_valid_lat_lng(*centroid):
        return centroid
    centroid = attached.get(district)
    if centroid is not None and is_valid_lat_lng(*centroid):
        return centroid
    return None


def attached_centroids(signals: Iterable[ProviderSignal]) -> Dict[DistrictId, LatLng]:
    """First valid centroid carried by each district's signal rows; invalid ones are skipped."""
    out: Dict[DistrictId, LatLng] = {}
    for s in signals:
        if s.district_id in out:
            continue
        centroid = _valid_centroid(s)
        if centroid is not None:
            out[s.district_id] = centroid
    return out
