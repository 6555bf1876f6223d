"""
Bin included districts into H3 cells for the hex overlay.

Per-cell aggregate depends on what the district value means:

- agreement counts: **max** over members. One strongly-agreeing district is
  enough evidence to make the cell visible.
- average confidence: **mean** over members. Confidence describes typical
  strength across the area, so a single outlier should not set the cell.

Cells are ordered by (aggregate_value desc, member_count desc, h3 index asc),
which fixes render order and makes "top N cells" reproducible.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

import pandas as pd

from ..errors import InvalidCoordinate, SchemaError
from ..geo.coords import LatLng, check_region_bounds, RegionBounds
from ..geo.h3_utils import cell_polygon, cell_to_int, latlng_to_cell, validate_resolution
from ..ids import DistrictId
from ..scoring.schema import AgreementReport, ConfidenceReport

logger = logging.getLogger(__name__)


class ValueKind(str, Enum):
    AGREEMENT = "agreement"
    CONFIDENCE = "confidence"


@dataclass(frozen=True)
class DistrictValue:
    """One included district headed for binning: centroid in (lat, lng) plus its derived value."""

    district_id: DistrictId
    centroid: Optional[LatLng]
    value: float


@dataclass(frozen=True)
class HexCell:
    h3_index: str
    member_districts: FrozenSet[DistrictId]
    aggregate_value: float
    member_count: int

    def to_dict(self) -> dict:
        return {
            "h3": self.h3_index,
            "members": sorted(self.member_districts),
            "aggregate_value": self.aggregate_value,
            "member_count": self.member_count,
        }


def district_values(report: Union[AgreementReport, ConfidenceReport]) -> List[DistrictValue]:
    """Included districts of a report, carrying the value the binner aggregates."""
    if isinstance(report, AgreementReport):
        return [DistrictValue(r.district_id, r.centroid, r.agreement_count) for r in report.included]
    if isinstance(report, ConfidenceReport):
        return [DistrictValue(r.district_id, r.centroid, r.avg_confidence) for r in report.included]
    raise SchemaError(f"Expected AgreementReport or ConfidenceReport, got {type(report).__name__}")


def value_kind_for(report: Union[AgreementReport, ConfidenceReport]) -> ValueKind:
    return ValueKind.AGREEMENT if isinstance(report, AgreementReport) else ValueKind.CONFIDENCE


def _aggregate(values: Sequence[float], kind: ValueKind) -> float:
    if kind is ValueKind.AGREEMENT:
        return max(values)
    return sum(values) / len(values)


def cell_sort_key(cell: HexCell):
    return -cell.aggregate_value, -cell.member_count, cell.h3_index


def bin_to_hex(
    districts: Iterable[DistrictValue],
    resolution: int,
    kind: ValueKind = ValueKind.AGREEMENT,
    region: Optional[RegionBounds] = None,
) -> List[HexCell]:
    """
    Group districts into H3 cells at ``resolution``.

    Districts with a missing or out-of-range centroid are skipped and logged;
    they never abort the pass and never appear in any cell.

    Args:
        districts: included districts with (lat, lng) centroids and values
        resolution: H3 resolution, 3 (coarse) to 7 (fine)
        kind: how member values combine (max for agreement, mean for confidence)
        region: optional deployment region for a bounds sanity check

    Returns:
        HexCells sorted by (aggregate_value desc, member_count desc, h3 index)

    Raises:
        TypeError / ValueError: for a malformed resolution
        SchemaError: for entries that are not DistrictValue
    """
    res = validate_resolution(resolution)
    kind = ValueKind(kind)

    members: Dict[str, Dict[DistrictId, float]] = defaultdict(dict)
    skipped = 0
    placed: List[LatLng] = []

    for entry in districts:
        if not isinstance(entry, DistrictValue):
            raise SchemaError(f"Expected DistrictValue, got {type(entry).__name__}")
        if entry.centroid is None:
            logger.warning(f"District {entry.district_id} has no centroid; skipped from hex binning")
            skipped += 1
            continue
        try:
            lat, lng = entry.centroid
            cell = latlng_to_cell(lat, lng, res)
        except (InvalidCoordinate, TypeError, ValueError) as exc:
            logger.warning(f"District {entry.district_id} skipped from hex binning: {exc}")
            skipped += 1
            continue
        members[cell][entry.district_id] = entry.value
        placed.append((lat, lng))

    cells: List[HexCell] = []
    for cell, by_district in members.items():
        ordered = [by_district[d] for d in sorted(by_district)]
        cells.append(
            HexCell(
                h3_index=cell,
                member_districts=frozenset(by_district),
                aggregate_value=_aggregate(ordered, kind),
                member_count=len(ordered),
            )
        )
    cells.sort(key=cell_sort_key)

    if region is not None:
        check_region_bounds(placed, region)
    logger.info(
        f"Binned {len(placed)} districts into {len(cells)} hexes at res {res} "
        f"({kind.value}); skipped {skipped}"
    )
    return cells


def bin_report_to_hex(
    report: Union[AgreementReport, ConfidenceReport],
    resolution: int,
    region: Optional[RegionBounds] = None,
) -> List[HexCell]:
    """Bin a report's included districts, choosing max/mean from the report type."""
    return bin_to_hex(district_values(report), resolution, value_kind_for(report), region=region)


def top_cells(cells: Sequence[HexCell], n: int) -> List[HexCell]:
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    return sorted(cells, key=cell_sort_key)[:n]


def hex_cells_to_frame(cells: Sequence[HexCell], resolution: int) -> pd.DataFrame:
    """
    Overlay frame with the standard hex schema.

    Columns:
        - h3_id (uint64)
        - res (int32)
        - aggregate_value (float64)
        - member_count (int32)
        - members (object, list of district ids)
    """
    res = validate_resolution(resolution)
    if not cells:
        return pd.DataFrame(
            {
                "h3_id": pd.Series(dtype="uint64"),
                "res": pd.Series(dtype="int32"),
                "aggregate_value": pd.Series(dtype="float64"),
                "member_count": pd.Series(dtype="int32"),
                "members": pd.Series(dtype="object"),
            }
        )
    df = pd.DataFrame(
        {
            "h3_id": [cell_to_int(c.h3_index) for c in cells],
            "res": res,
            "aggregate_value": [float(c.aggregate_value) for c in cells],
            "member_count": [c.member_count for c in cells],
            "members": [sorted(c.member_districts) for c in cells],
        }
    )
    df["h3_id"] = df["h3_id"].astype("uint64", copy=False)
    df["res"] = df["res"].astype("int32", copy=False)
    df["member_count"] = df["member_count"].astype("int32", copy=False)
    return df


def hex_cells_to_geojson(cells: Sequence[HexCell]) -> dict:
    """FeatureCollection of cell boundaries in GeoJSON [lng, lat] order."""
    features = []
    for cell in cells:
        features.append(
            {
                "type": "Feature",
                "id": cell.h3_index,
                "geometry": cell_polygon(cell.h3_index).__geo_interface__,
                "properties": {
                    "h3": cell.h3_index,
                    "aggregate_value": cell.aggregate_value,
                    "member_count": cell.member_count,
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


def bin_to_hex_frame(
    districts: Iterable[DistrictValue],
    resolution: int,
    kind: ValueKind = ValueKind.AGREEMENT,
) -> pd.DataFrame:
    return hex_cells_to_frame(bin_to_hex(districts, resolution, kind), resolution)
