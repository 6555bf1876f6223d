"""
Scoring schema: input rows, derived per-district results and report objects.

Input column contract for tabular signal sources (see ``ingest.py``):
    - provider (str)
    - district (str)
    - present (bool)
    - confidence (float 0.0-1.0)
    - segment_key (str, optional)
    - provider_segment_label (str, optional)
    - centroid_lat / centroid_lng (float, optional)
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..errors import SchemaError, ThresholdClamp
from ..geo.coords import LatLng
from ..ids import DistrictId, ProviderId, SegmentKey, district_id, provider_id, segment_key

SIGNAL_COLUMNS = {"provider", "district", "present", "confidence"}
OPTIONAL_SIGNAL_COLUMNS = {"segment_key", "provider_segment_label", "centroid_lat", "centroid_lng"}
DISTRICT_COLUMNS = {"district"}
STORE_COLUMNS = {"store_id", "brand", "district"}


class ConstructionMode(str, Enum):
    VALIDATION = "validation"
    EXTENSION = "extension"


class ConfidenceBand(str, Enum):
    LOW = "Low"
    MED = "Med"
    HIGH = "High"


@dataclass(frozen=True)
class ProviderSignal:
    """One provider's view of one district for one segment. Immutable input."""

    provider_id: ProviderId
    district_id: DistrictId
    present: bool
    confidence: float
    segment_key: Optional[SegmentKey] = None
    provider_segment_label: Optional[str] = None
    centroid: Optional[LatLng] = None

    def __post_init__(self):
        object.__setattr__(self, "provider_id", provider_id(self.provider_id))
        object.__setattr__(self, "district_id", district_id(self.district_id))
        if self.segment_key is not None:
            object.__setattr__(self, "segment_key", segment_key(self.segment_key))
        if not isinstance(self.present, bool):
            raise SchemaError(f"present must be bool, got {type(self.present).__name__}")
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise SchemaError(f"confidence must be a float, got {type(self.confidence).__name__}")
        if not math.isfinite(self.confidence) or not (0.0 <= self.confidence <= 1.0):
            raise SchemaError(f"confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "confidence", float(self.confidence))


@dataclass(frozen=True)
class District:
    """Atomic geographic unit. ``polygon`` stays in GeoJSON [lng, lat] order; ``centroid`` is (lat, lng)."""

    district_id: DistrictId
    centroid: Optional[LatLng] = None
    polygon: Optional[Mapping] = field(default=None, compare=False, hash=False, repr=False)
    household_estimate: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "district_id", district_id(self.district_id))
        if self.household_estimate is not None:
            if isinstance(self.household_estimate, bool) or not isinstance(self.household_estimate, int):
                raise SchemaError(
                    f"household_estimate must be an int, got {type(self.household_estimate).__name__}"
                )


@dataclass(frozen=True)
class AgreementResult:
    district_id: DistrictId
    agreement_count: int
    max_agreement: int
    included: bool
    agreeing_providers: Tuple[ProviderId, ...] = ()
    centroid: Optional[LatLng] = None


@dataclass(frozen=True)
class ProviderContribution:
    """Per-provider breakdown for the validation sidebar."""

    provider_id: ProviderId
    agreeing_districts: int
    agreeing_included: int
    share_pct: float
    provider_segment_label: Optional[str] = None


@dataclass(frozen=True)
class AgreementReport:
    results: Tuple[AgreementResult, ...]
    max_agreement: int
    included_count: int
    eligible_count: int
    estimated_households: int
    confidence_band: ConfidenceBand
    avg_agreement: float
    agreement_distribution: Mapping[int, int]
    provider_contributions: Tuple[ProviderContribution, ...]
    threshold: int
    threshold_range: Tuple[int, int]
    clamp: Optional[ThresholdClamp] = None
    duplicates_resolved: int = 0
    missing_centroids: int = 0
    empty: bool = False

    @property
    def included_ids(self) -> FrozenSet[DistrictId]:
        return frozenset(r.district_id for r in self.results if r.included)

    @property
    def included(self) -> List[AgreementResult]:
        return [r for r in self.results if r.included]

    def by_district(self) -> Dict[DistrictId, AgreementResult]:
        return {r.district_id: r for r in self.results}

    def agreement_by_district(self) -> Dict[DistrictId, int]:
        return {r.district_id: r.agreement_count for r in self.results}

    def summary(self) -> dict:
        return {
            "max_agreement": self.max_agreement,
            "included_count": self.included_count,
            "eligible_count": self.eligible_count,
            "estimated_households": self.estimated_households,
            "confidence_band": self.confidence_band.value,
            "avg_agreement": self.avg_agreement,
            "threshold": self.threshold,
            "threshold_range": list(self.threshold_range),
            "threshold_clamped": _clamp_dict(self.clamp),
            "duplicates_resolved": self.duplicates_resolved,
            "missing_centroids": self.missing_centroids,
            "empty": self.empty,
        }

    def to_dict(self) -> dict:
        return {
            "summary": self.summary(),
            "agreement_distribution": {str(k): v for k, v in sorted(self.agreement_distribution.items())},
            "providers": [
                {
                    "provider": c.provider_id,
                    "agreeing_districts": c.agreeing_districts,
                    "agreeing_included": c.agreeing_included,
                    "share_pct": c.share_pct,
                    "provider_segment_label": c.provider_segment_label,
                }
                for c in self.provider_contributions
            ],
            "districts": [
                {
                    "district": r.district_id,
                    "agreement_count": r.agreement_count,
                    "max_agreement": r.max_agreement,
                    "included": r.included,
                    "agreeing_providers": list(r.agreeing_providers),
                    "centroid": list(r.centroid) if r.centroid else None,
                }
                for r in self.results
            ],
        }


@dataclass(frozen=True)
class ConfidenceResult:
    district_id: DistrictId
    avg_confidence: float
    supporting_providers: Tuple[ProviderId, ...]
    included: bool
    signal_count: int = 0
    centroid: Optional[LatLng] = None


@dataclass(frozen=True)
class ProviderImpact:
    """Per-provider attribution for extension mode."""

    provider_id: ProviderId
    districts_supporting: int
    incremental_districts: int
    overlap_districts: int
    overlap_pct: float
    avg_provider_confidence: float
    incremental_district_ids: Tuple[DistrictId, ...] = ()
    segment_labels: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ConfidenceReport:
    results: Tuple[ConfidenceResult, ...]
    included_count: int
    base_districts: int
    estimated_households: int
    avg_confidence: float
    per_provider_incremental: Tuple[ProviderImpact, ...]
    threshold: float
    threshold_range: Tuple[float, float] = (0.0, 1.0)
    clamp: Optional[ThresholdClamp] = None
    duplicates_resolved: int = 0
    missing_centroids: int = 0
    empty: bool = False

    @property
    def included_ids(self) -> FrozenSet[DistrictId]:
        return frozenset(r.district_id for r in self.results if r.included)

    @property
    def included(self) -> List[ConfidenceResult]:
        return [r for r in self.results if r.included]

    def by_district(self) -> Dict[DistrictId, ConfidenceResult]:
        return {r.district_id: r for r in self.results}

    def summary(self) -> dict:
        return {
            "included_count": self.included_count,
            "base_districts": self.base_districts,
            "estimated_households": self.estimated_households,
            "avg_confidence": self.avg_confidence,
            "threshold": self.threshold,
            "threshold_range": list(self.threshold_range),
            "threshold_clamped": _clamp_dict(self.clamp),
            "duplicates_resolved": self.duplicates_resolved,
            "missing_centroids": self.missing_centroids,
            "empty": self.empty,
        }

    def to_dict(self) -> dict:
        return {
            "summary": self.summary(),
            "providers": [
                {
                    "provider": p.provider_id,
                    "districts_supporting": p.districts_supporting,
                    "incremental_districts": p.incremental_districts,
                    "overlap_districts": p.overlap_districts,
                    "overlap_pct": p.overlap_pct,
                    "avg_provider_confidence": p.avg_provider_confidence,
                    "segment_labels": dict(p.segment_labels),
                }
                for p in self.per_provider_incremental
            ],
            "districts": [
                {
                    "district": r.district_id,
                    "avg_confidence": r.avg_confidence,
                    "supporting_providers": list(r.supporting_providers),
                    "included": r.included,
                    "signal_count": r.signal_count,
                    "centroid": list(r.centroid) if r.centroid else None,
                }
                for r in self.results
            ],
        }


def _clamp_dict(clamp: Optional[ThresholdClamp]) -> Optional[dict]:
    if clamp is None:
        return None
    return {"requested": clamp.requested, "applied": clamp.applied, "low": clamp.low, "high": clamp.high}
