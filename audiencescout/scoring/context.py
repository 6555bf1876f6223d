"""
Immutable per-request aggregation context.

Everything a planner's session would otherwise keep in shared state (mode,
anchor provider, selected segments, provider filter, catalog figures) is
captured once here and passed into each aggregation call. Two calls with equal
inputs and equal contexts produce equal reports.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Tuple

from .. import config
from ..geo.coords import LatLng
from ..ids import DistrictId, ProviderId, SegmentKey, provider_id, segment_key
from .schema import ConstructionMode, District


@dataclass(frozen=True)
class AggregationContext:
    mode: ConstructionMode = ConstructionMode.VALIDATION
    anchor_provider: ProviderId = field(default_factory=lambda: provider_id(config.ANCHOR_PROVIDER))
    segment: Optional[SegmentKey] = None
    candidate_segments: Tuple[SegmentKey, ...] = ()
    providers: Optional[FrozenSet[ProviderId]] = None
    base_eligibility: float = config.BASE_ELIGIBILITY
    households_per_district: int = config.HOUSEHOLDS_PER_DISTRICT_DEFAULT
    districts: Mapping[DistrictId, District] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, hash=False, repr=False
    )

    @classmethod
    def build(
        cls,
        mode: ConstructionMode = ConstructionMode.VALIDATION,
        anchor_provider: Optional[str] = None,
        segment: Optional[str] = None,
        candidate_segments: Iterable[str] = (),
        providers: Optional[Iterable[str]] = None,
        districts: Iterable[District] = (),
        base_eligibility: float = config.BASE_ELIGIBILITY,
        households_per_district: int = config.HOUSEHOLDS_PER_DISTRICT_DEFAULT,
    ) -> "AggregationContext":
        """Normalise raw strings and freeze collections."""
        catalog = {d.district_id: d for d in districts}
        return cls(
            mode=ConstructionMode(mode),
            anchor_provider=provider_id(anchor_provider or config.ANCHOR_PROVIDER),
            segment=segment_key(segment) if segment else None,
            candidate_segments=tuple(dict.fromkeys(segment_key(s) for s in candidate_segments)),
            providers=frozenset(provider_id(p) for p in providers) if providers is not None else None,
            base_eligibility=float(base_eligibility),
            households_per_district=int(households_per_district),
            districts=MappingProxyType(catalog),
        )

    def with_districts(self, districts: Iterable[District]) -> "AggregationContext":
        return replace(self, districts=MappingProxyType({d.district_id: d for d in districts}))

    @property
    def segment_keys(self) -> Tuple[SegmentKey, ...]:
        """Anchor segment first, then candidates, without repeats."""
        keys = ([self.segment] if self.segment else []) + list(self.candidate_segments)
        return tuple(dict.fromkeys(keys))

    def accepts_provider(self, provider: ProviderId) -> bool:
        """Anchor is always accepted; others only if the filter allows them."""
        if provider == self.anchor_provider or self.providers is None:
            return True
        return provider in self.providers

    def households_for(self, district: DistrictId) -> int:
        entry = self.districts.get(district)
        if entry is not None and entry.household_estimate is not None:
            return entry.household_estimate
        return self.households_per_district

    def catalog_centroid(self, district: DistrictId) -> Optional[LatLng]:
        entry = self.districts.get(district)
        return entry.centroid if entry is not None else None
