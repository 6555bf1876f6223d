"""
Geometry hygiene for district catalogs.

District boundary files regularly carry null, empty or self-intersecting
polygons, and districts split by water arrive as MultiPolygons. Everything
downstream reads one exterior ring per district, so reduce each feature to a
single valid Polygon before anything touches its coordinates.
"""
from __future__ import annotations

import logging
from typing import Optional

import geopandas as gpd
import shapely
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

POLYGON_TYPES = ("Polygon", "MultiPolygon", "GeometryCollection")


def largest_polygon(geom: Optional[BaseGeometry]) -> Optional[Polygon]:
    """
    Reduce a (Multi)Polygon or collection to its largest Polygon part.

    Islands and estuary-split districts keep their main landmass; the vertex
    centroid is computed from that part alone.
    """
    if geom is None or geom.is_empty:
        return None
    if geom.geom_type == "Polygon":
        return geom
    parts = [largest_polygon(p) for p in getattr(geom, "geoms", [])]
    parts = [p for p in parts if p is not None]
    if not parts:
        return None
    return max(parts, key=lambda p: p.area)


def _district_polygon(geom) -> Optional[Polygon]:
    if not isinstance(geom, BaseGeometry) or geom.is_empty or geom.geom_type not in POLYGON_TYPES:
        return None
    if not geom.is_valid:
        geom = shapely.make_valid(geom)
    return largest_polygon(geom)


def district_polygons(gdf: gpd.GeoDataFrame) -> gpd.GeoSeries:
    """
    One valid Polygon per usable district feature.

    Null, empty and non-areal geometries are dropped, invalid rings repaired
    with ``make_valid`` and multi-part districts reduced to their largest part.

    Returns:
        GeoSeries of Polygons, index aligned with the surviving rows of ``gdf``
    """
    polygons = gdf.geometry.apply(_district_polygon)
    kept = polygons[polygons.notna()]
    dropped = len(gdf) - len(kept)
    if dropped:
        logger.warning(f"{dropped} district features have null, empty or non-polygon geometry")
    return gpd.GeoSeries(list(kept), index=kept.index, crs=gdf.crs)
