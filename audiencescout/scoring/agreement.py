"""
Validation-mode aggregation: how many independent providers confirm a district.

Rules:
- A signal is eligible when ``present`` and ``confidence >= base_eligibility`` (0.5).
- The anchor provider's eligible rows define the district universe. If the
  anchor contributed no rows at all (its source failed or it is not part of
  this segment), every district seen in the signal set is in the universe.
- ``agreement_count(d)`` counts non-anchor providers with an eligible row for d.
- ``max_agreement`` is the number of distinct non-anchor providers in the set.
- A district is included when ``agreement_count(d) >= applied_threshold``.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Set

from .. import config
from ..errors import SchemaError, clamp_threshold
from ..ids import DistrictId, ProviderId
from .context import AggregationContext
from .schema import (
    AgreementReport,
    AgreementResult,
    ConfidenceBand,
    ProviderContribution,
    ProviderSignal,
)
from .signals import (
    attached_centroids,
    dedupe_signals,
    ensure_signals,
    filter_segments,
    is_eligible,
    resolve_centroid,
)

logger = logging.getLogger(__name__)


def threshold_range(max_agreement: int) -> tuple:
    """Valid applied-threshold range; collapses to (1, 1) when no provider can agree."""
    return 1, max(1, max_agreement)


def confidence_band(applied_threshold: int, max_agreement: int) -> ConfidenceBand:
    if max_agreement <= 0:
        return ConfidenceBand.LOW
    ratio = applied_threshold / max(1, max_agreement)
    if ratio >= config.CONFIDENCE_BAND_HIGH:
        return ConfidenceBand.HIGH
    if ratio >= config.CONFIDENCE_BAND_MED:
        return ConfidenceBand.MED
    return ConfidenceBand.LOW


def coerce_threshold(value) -> int:
    """
    A whole-number agreement threshold as an int.

    Raises:
        SchemaError: for non-numbers and fractional values
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"agreement threshold must be an int, got {type(value).__name__}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, float):
        raise SchemaError(f"agreement threshold must be a whole number, got {value}")
    return value


def _empty_report(threshold) -> AgreementReport:
    applied, clamp = clamp_threshold(coerce_threshold(threshold), 1, 1)
    return AgreementReport(
        results=(),
        max_agreement=0,
        included_count=0,
        eligible_count=0,
        estimated_households=0,
        confidence_band=ConfidenceBand.LOW,
        avg_agreement=0.0,
        agreement_distribution={},
        provider_contributions=(),
        threshold=int(applied),
        threshold_range=(1, 1),
        clamp=clamp,
        empty=True,
    )


def compute_agreement(
    signals: Iterable[ProviderSignal],
    applied_threshold: int,
    context: Optional[AggregationContext] = None,
) -> AgreementReport:
    """
    Per-district agreement counts and the inclusion set at ``applied_threshold``.

    Args:
        signals: ProviderSignal rows for one segment (other segments are
            ignored when the context names one)
        applied_threshold: minimum number of agreeing providers; clamped into
            ``[1, max(1, max_agreement)]`` with the clamp reported on the result
        context: immutable request context (anchor provider, provider filter,
            district catalog for households/centroids)

    Returns:
        AgreementReport; an empty signal set yields a zero-state report with
        ``empty=True`` rather than an exception.

    Raises:
        SchemaError: if ``signals`` holds something other than ProviderSignal
            rows or the threshold is not a whole number
    """
    context = context or AggregationContext()
    rows = filter_segments(ensure_signals(signals), context)
    if not rows:
        logger.info(f"No signal rows for segment {context.segment!r}; returning empty result")
        return _empty_report(applied_threshold)

    rows = [r for r in rows if context.accepts_provider(r.provider_id)]
    deduped, dropped = dedupe_signals(rows, key=lambda s: (s.provider_id, s.district_id))
    anchor = context.anchor_provider
    eligibility = context.base_eligibility

    by_provider: Dict[ProviderId, Dict[DistrictId, ProviderSignal]] = defaultdict(dict)
    labels: Dict[ProviderId, Optional[str]] = {}
    for s in deduped:
        by_provider[s.provider_id][s.district_id] = s
        if s.provider_segment_label and s.provider_id not in labels:
            labels[s.provider_id] = s.provider_segment_label

    if anchor in by_provider:
        universe: Set[DistrictId] = {
            d for d, s in by_provider[anchor].items() if is_eligible(s, eligibility)
        }
    else:
        logger.warning(
            f"Anchor provider {anchor!r} has no rows; using all {len({s.district_id for s in deduped})} "
            f"signal districts as the eligible universe"
        )
        universe = {s.district_id for s in deduped}

    validating: List[ProviderId] = sorted(p for p in by_provider if p != anchor)
    max_agreement = len(validating)

    low, high = threshold_range(max_agreement)
    applied, clamp = clamp_threshold(coerce_threshold(applied_threshold), low, high)
    applied = int(applied)
    if clamp is not None:
        logger.info(f"Agreement threshold {clamp.requested} clamped to {applied} (range {low}-{high})")

    attached = attached_centroids(deduped)
    agreeing_counts: Counter = Counter()
    included_counts: Counter = Counter()
    results: List[AgreementResult] = []
    missing_centroids = 0

    for district in sorted(universe):
        agreeing = tuple(p for p in validating if is_eligible(by_provider[p].get(district), eligibility))
        count = len(agreeing)
        included = count >= applied
        for p in agreeing:
            agreeing_counts[p] += 1
            if included:
                included_counts[p] += 1
        centroid = resolve_centroid(district, context, attached)
        if included and centroid is None:
            missing_centroids += 1
        results.append(
            AgreementResult(
                district_id=district,
                agreement_count=count,
                max_agreement=max_agreement,
                included=included,
                agreeing_providers=agreeing,
                centroid=centroid,
            )
        )

    included_results = [r for r in results if r.included]
    included_count = len(included_results)
    eligible_count = len(results)
    avg_agreement = (
        sum(r.agreement_count for r in included_results) / included_count if included_count else 0.0
    )
    households = sum(context.households_for(r.district_id) for r in included_results)

    contributions = tuple(
        ProviderContribution(
            provider_id=p,
            agreeing_districts=agreeing_counts[p],
            agreeing_included=included_counts[p],
            share_pct=agreeing_counts[p] / max(1, eligible_count) * 100.0,
            provider_segment_label=labels.get(p),
        )
        for p in validating
    )

    distribution = dict(sorted(Counter(r.agreement_count for r in results).items()))
    if missing_centroids:
        logger.warning(f"{missing_centroids} included districts have no usable centroid")
    logger.debug(
        f"Agreement: eligible={eligible_count} included={included_count} "
        f"max_agreement={max_agreement} threshold={applied} distribution={distribution}"
    )

    return AgreementReport(
        results=tuple(results),
        max_agreement=max_agreement,
        included_count=included_count,
        eligible_count=eligible_count,
        estimated_households=households,
        confidence_band=confidence_band(applied, max_agreement),
        avg_agreement=avg_agreement,
        agreement_distribution=distribution,
        provider_contributions=contributions,
        threshold=applied,
        threshold_range=(low, high),
        clamp=clamp,
        duplicates_resolved=dropped,
        missing_centroids=missing_centroids,
        empty=False,
    )


def included_at(report: AgreementReport, threshold: int) -> frozenset:
    """
    Inclusion set at another threshold, from already-derived counts.

    Used for draft previews while a slider is being dragged: no re-aggregation,
    no clamping side effects on the report.
    """
    return frozenset(r.district_id for r in report.results if r.agreement_count >= threshold)
