"""
Battle zone classification around a base brand's store network.

The catchment starts at every district holding a base-brand store and grows
``ring_radius * ring_scale`` hops over the district adjacency graph. Each
catchment district is then classified by which stores it holds:

    owned            base-brand stores only
    contested        base-brand and competitor stores
    competitor_only  competitor stores only

Districts with neither are not reported.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

import networkx as nx

from .. import config
from ..errors import SchemaError
from ..ids import DistrictId, district_id
from .schema import BattleZoneDistrict, BattleZoneReport, StoreLocation, ZoneCategory

logger = logging.getLogger(__name__)


def catchment(
    seeds: Iterable[DistrictId],
    steps: int,
    adjacency: Optional[nx.Graph] = None,
) -> Set[DistrictId]:
    """Districts within ``steps`` hops of any seed district (seeds included)."""
    seeds = set(seeds)
    if steps <= 0 or adjacency is None or not seeds:
        return seeds
    in_graph = [s for s in seeds if s in adjacency]
    missing = len(seeds) - len(in_graph)
    if missing:
        logger.warning(f"{missing} base districts are not in the adjacency graph; they do not expand")
    reached = set(seeds)
    if in_graph:
        lengths = nx.multi_source_dijkstra_path_length(adjacency, in_graph, cutoff=steps, weight=lambda u, v, d: 1)
        reached.update(lengths)
    return reached


def _category(base: int, competitor: int) -> Optional[ZoneCategory]:
    if base > 0 and competitor == 0:
        return ZoneCategory.OWNED
    if base > 0:
        return ZoneCategory.CONTESTED
    if competitor > 0:
        return ZoneCategory.COMPETITOR_ONLY
    return None


def _contested_sort_key(d: BattleZoneDistrict):
    return -d.combined_store_count, -d.competitor_store_count, d.district_id


def classify_battle_zones(
    stores: Iterable[StoreLocation],
    ring_radius: int,
    base_brand: str,
    competitor_brands: Iterable[str] = (),
    adjacency: Optional[nx.Graph] = None,
    region_filter: Optional[Iterable[str]] = None,
    ring_scale: int = config.BATTLE_ZONE_RING_SCALE,
    top_n: int = config.BATTLE_ZONE_TOP_CONTESTED,
) -> BattleZoneReport:
    """
    Classify the base brand's catchment into owned / contested / competitor-only.

    Args:
        stores: store locations of any brand (other brands are ignored)
        ring_radius: catchment rings; each ring is ``ring_scale`` adjacency hops.
            0 keeps only districts that themselves hold a base-brand store.
        base_brand: brand whose network defines the catchment
        competitor_brands: brands counted as competition
        adjacency: undirected district adjacency graph keyed by district id
        region_filter: optional set of allowed district ids applied to the catchment
        ring_scale: hops per ring
        top_n: size of the top-contested list

    Returns:
        BattleZoneReport with districts sorted by id

    Raises:
        SchemaError: for a negative or non-integer ring radius or non-StoreLocation rows
    """
    if isinstance(ring_radius, bool) or not isinstance(ring_radius, int) or ring_radius < 0:
        raise SchemaError(f"ring_radius must be a non-negative int, got {ring_radius!r}")
    base_brand = base_brand.strip()
    competitors = frozenset(b.strip() for b in competitor_brands if b and b.strip()) - {base_brand}

    base_by_district: Dict[DistrictId, Set[str]] = defaultdict(set)
    comp_by_district: Dict[DistrictId, Set[str]] = defaultdict(set)
    comp_brands: Dict[DistrictId, Set[str]] = defaultdict(set)
    for store in stores:
        if not isinstance(store, StoreLocation):
            raise SchemaError(f"Expected StoreLocation, got {type(store).__name__}")
        if store.brand == base_brand:
            base_by_district[store.district_id].add(store.store_id)
        elif store.brand in competitors:
            comp_by_district[store.district_id].add(store.store_id)
            comp_brands[store.district_id].add(store.brand)

    area = catchment(base_by_district, ring_radius * ring_scale, adjacency)
    allowed = None
    if region_filter is not None:
        allowed = frozenset(district_id(d) for d in region_filter)
        area &= allowed

    districts: List[BattleZoneDistrict] = []
    for d in sorted(area):
        base = len(base_by_district.get(d, ()))
        comp = len(comp_by_district.get(d, ()))
        category = _category(base, comp)
        if category is None:
            continue
        districts.append(
            BattleZoneDistrict(
                district_id=d,
                category=category,
                base_store_count=base,
                competitor_store_count=comp,
                competitor_brands_present=tuple(sorted(comp_brands.get(d, ()))),
            )
        )

    contested = sorted((d for d in districts if d.category is ZoneCategory.CONTESTED), key=_contested_sort_key)
    report = BattleZoneReport(
        base_brand=base_brand,
        competitor_brands=competitors,
        ring_radius=ring_radius,
        districts=tuple(districts),
        catchment_size=len(area),
        base_store_count=sum(d.base_store_count for d in districts),
        competitor_store_count=sum(d.competitor_store_count for d in districts),
        top_contested=tuple(contested[: max(0, top_n)]),
        region_filter=allowed,
    )
    logger.info(
        f"Battle zones for {base_brand!r} (ring {ring_radius}): catchment={len(area)} "
        f"classified={len(districts)} contested={len(contested)}"
    )
    return report
