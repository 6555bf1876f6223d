"""
Battle zone data model.

Store rows contract:
    - store_id (str)
    - brand (str)
    - district (str)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from ..errors import SchemaError
from ..ids import DistrictId, district_id


class ZoneCategory(str, Enum):
    OWNED = "owned"
    CONTESTED = "contested"
    COMPETITOR_ONLY = "competitor_only"


@dataclass(frozen=True)
class StoreLocation:
    store_id: str
    brand: str
    district_id: DistrictId

    def __post_init__(self):
        for name in ("store_id", "brand"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise SchemaError(f"{name} must be a non-empty string, got {value!r}")
            object.__setattr__(self, name, value.strip())
        object.__setattr__(self, "district_id", district_id(self.district_id))


@dataclass(frozen=True)
class BattleZoneDistrict:
    district_id: DistrictId
    category: ZoneCategory
    base_store_count: int
    competitor_store_count: int
    competitor_brands_present: Tuple[str, ...] = ()

    @property
    def combined_store_count(self) -> int:
        return self.base_store_count + self.competitor_store_count

    def to_dict(self) -> dict:
        return {
            "district": self.district_id,
            "category": self.category.value,
            "base_store_count": self.base_store_count,
            "competitor_store_count": self.competitor_store_count,
            "competitor_brands_present": list(self.competitor_brands_present),
        }


@dataclass(frozen=True)
class BattleZoneReport:
    base_brand: str
    competitor_brands: FrozenSet[str]
    ring_radius: int
    districts: Tuple[BattleZoneDistrict, ...]
    catchment_size: int
    base_store_count: int
    competitor_store_count: int
    top_contested: Tuple[BattleZoneDistrict, ...]
    region_filter: Optional[FrozenSet[DistrictId]] = field(default=None, repr=False)

    @property
    def category_counts(self) -> Dict[ZoneCategory, int]:
        counts = {c: 0 for c in ZoneCategory}
        for d in self.districts:
            counts[d.category] += 1
        return counts

    def by_district(self) -> Mapping[DistrictId, BattleZoneDistrict]:
        return {d.district_id: d for d in self.districts}

    def summary(self) -> dict:
        counts = self.category_counts
        return {
            "base_brand": self.base_brand,
            "competitor_brands": sorted(self.competitor_brands),
            "ring_radius": self.ring_radius,
            "catchment_size": self.catchment_size,
            "classified_districts": len(self.districts),
            "owned_districts": counts[ZoneCategory.OWNED],
            "contested_districts": counts[ZoneCategory.CONTESTED],
            "competitor_only_districts": counts[ZoneCategory.COMPETITOR_ONLY],
            "base_store_count": self.base_store_count,
            "competitor_store_count": self.competitor_store_count,
            "top_contested": [d.to_dict() for d in self.top_contested],
        }

    def to_dict(self) -> dict:
        return {"summary": self.summary(), "districts": [d.to_dict() for d in self.districts]}
