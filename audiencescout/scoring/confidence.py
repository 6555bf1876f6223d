"""
Extension-mode aggregation: confidence-weighted discovery of districts.

``avg_confidence(d)`` is the mean confidence over every supporting signal for
d, where a supporting signal is a ``present`` row for the anchor segment or
any candidate segment. A district is included when it has at least one
supporting signal and ``avg_confidence(d) >= applied_threshold``.

Per-provider attribution re-derives each included district's mean with one
provider's rows removed. Provider counts are small (<= 10), so the
O(providers x districts) cost is fine for an interactive call.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..errors import SchemaError, clamp_threshold
from ..ids import DistrictId, ProviderId
from .context import AggregationContext
from .schema import ConfidenceReport, ConfidenceResult, ProviderImpact, ProviderSignal
from .signals import (
    attached_centroids,
    dedupe_signals,
    ensure_signals,
    filter_segments,
    resolve_centroid,
)

logger = logging.getLogger(__name__)

CONFIDENCE_RANGE = (0.0, 1.0)


def _coerce_threshold(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"confidence threshold must be a float, got {type(value).__name__}")
    return float(value)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _passes(values: List[float], threshold: float) -> bool:
    return bool(values) and _mean(values) >= threshold


def _is_anchor_row(signal: ProviderSignal, context: AggregationContext) -> bool:
    if context.segment is not None and signal.segment_key is not None:
        return signal.segment_key == context.segment
    return signal.provider_id == context.anchor_provider


def compute_confidence(
    signals: Iterable[ProviderSignal],
    applied_threshold: float,
    context: Optional[AggregationContext] = None,
) -> ConfidenceReport:
    """
    Per-district average confidence and the inclusion set at ``applied_threshold``.

    Args:
        signals: ProviderSignal rows for the anchor segment and the candidate
            segments named on the context (rows for other segments are ignored)
        applied_threshold: minimum average confidence, clamped into [0, 1]
        context: immutable request context

    Returns:
        ConfidenceReport with per-provider incremental attribution; an empty
        signal set yields a zero-state report with ``empty=True``.
    """
    context = context or AggregationContext()
    requested = _coerce_threshold(applied_threshold)
    applied, clamp = clamp_threshold(requested, *CONFIDENCE_RANGE)
    if clamp is not None:
        logger.info(f"Confidence threshold {clamp.requested} clamped to {applied}")

    rows = filter_segments(ensure_signals(signals), context)
    rows = [r for r in rows if context.accepts_provider(r.provider_id)]
    if not rows:
        logger.info(f"No signal rows for segments {context.segment_keys!r}; returning empty result")
        return ConfidenceReport(
            results=(),
            included_count=0,
            base_districts=0,
            estimated_households=0,
            avg_confidence=0.0,
            per_provider_incremental=(),
            threshold=applied,
            clamp=clamp,
            empty=True,
        )

    deduped, dropped = dedupe_signals(
        rows, key=lambda s: (s.provider_id, s.segment_key, s.district_id)
    )

    # district -> [(provider, confidence)] over supporting rows
    support: Dict[DistrictId, List[Tuple[ProviderId, float]]] = defaultdict(list)
    anchor_support: Dict[DistrictId, List[float]] = defaultdict(list)
    labels: Dict[ProviderId, Dict[str, str]] = defaultdict(dict)
    universe: Set[DistrictId] = set()
    providers: Set[ProviderId] = set()

    for s in deduped:
        universe.add(s.district_id)
        providers.add(s.provider_id)
        if s.provider_segment_label and s.segment_key:
            labels[s.provider_id].setdefault(s.segment_key, s.provider_segment_label)
        if not s.present:
            continue
        support[s.district_id].append((s.provider_id, s.confidence))
        if _is_anchor_row(s, context):
            anchor_support[s.district_id].append(s.confidence)

    attached = attached_centroids(deduped)
    results: List[ConfidenceResult] = []
    included_ids: Set[DistrictId] = set()
    missing_centroids = 0

    for district in sorted(universe):
        entries = support.get(district, [])
        values = [c for _, c in entries]
        avg = _mean(values)
        included = _passes(values, applied)
        centroid = resolve_centroid(district, context, attached)
        if included:
            included_ids.add(district)
            if centroid is None:
                missing_centroids += 1
        results.append(
            ConfidenceResult(
                district_id=district,
                avg_confidence=avg,
                supporting_providers=tuple(sorted({p for p, _ in entries})),
                included=included,
                signal_count=len(values),
                centroid=centroid,
            )
        )

    impacts = _provider_impacts(sorted(providers), support, included_ids, applied, labels, context)
    base_districts = sum(1 for vals in anchor_support.values() if _passes(vals, applied))

    included_results = [r for r in results if r.included]
    avg_confidence = _mean([r.avg_confidence for r in included_results])
    households = sum(context.households_for(r.district_id) for r in included_results)

    if missing_centroids:
        logger.warning(f"{missing_centroids} included districts have no usable centroid")
    logger.debug(
        f"Confidence: districts={len(results)} included={len(included_results)} "
        f"base={base_districts} threshold={applied:.2f}"
    )

    return ConfidenceReport(
        results=tuple(results),
        included_count=len(included_results),
        base_districts=base_districts,
        estimated_households=households,
        avg_confidence=avg_confidence,
        per_provider_incremental=impacts,
        threshold=applied,
        clamp=clamp,
        duplicates_resolved=dropped,
        missing_centroids=missing_centroids,
        empty=False,
    )


def _provider_impacts(
    providers: List[ProviderId],
    support: Dict[DistrictId, List[Tuple[ProviderId, float]]],
    included_ids: Set[DistrictId],
    threshold: float,
    labels: Dict[ProviderId, Dict[str, str]],
    context: AggregationContext,
) -> Tuple[ProviderImpact, ...]:
    impacts: List[ProviderImpact] = []
    for provider in providers:
        supporting: Set[DistrictId] = set()
        own_values: List[float] = []
        for district, entries in support.items():
            mine = [c for p, c in entries if p == provider]
            if mine:
                supporting.add(district)
                own_values.extend(mine)

        incremental: List[DistrictId] = []
        for district in sorted(supporting & included_ids):
            without = [c for p, c in support[district] if p != provider]
            if not _passes(without, threshold):
                incremental.append(district)

        overlap = len(supporting & included_ids) - len(incremental)
        impacts.append(
            ProviderImpact(
                provider_id=provider,
                districts_supporting=len(supporting),
                incremental_districts=len(incremental),
                overlap_districts=overlap,
                overlap_pct=overlap / max(1, len(supporting)) * 100.0,
                avg_provider_confidence=_mean(own_values),
                incremental_district_ids=tuple(incremental),
                segment_labels=dict(labels.get(provider, {})),
            )
        )

    anchor = context.anchor_provider
    impacts.sort(key=lambda i: (i.provider_id != anchor, -i.incremental_districts, i.provider_id))
    return tuple(impacts)


def included_at(report: ConfidenceReport, threshold: float) -> frozenset:
    """Inclusion set at another threshold from already-derived averages (draft preview)."""
    return frozenset(
        r.district_id for r in report.results if r.signal_count > 0 and r.avg_confidence >= threshold
    )
