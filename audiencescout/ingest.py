"""
Tabular and GeoJSON ingestion.

Signal, store and adjacency rows arrive as CSV or parquet; district catalogs
arrive as GeoJSON (or any format geopandas reads) or as a flat table with
centroid columns. GeoJSON rings are ``[lng, lat]``; this is the one place
they are converted to ``(lat, lng)`` centroids. Everything downstream reads
``District.centroid`` and never touches polygon coordinate order again.
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Optional, Union

import geopandas as gpd
import networkx as nx
import numpy as np
import pandas as pd
from shapely.geometry import mapping

from .battle_zones.schema import StoreLocation
from .errors import SchemaError
from .geo.coords import RegionBounds, compute_centroid, normalize_centroid
from .geo.geometry_utils import district_polygons
from .ids import district_id
from .scoring.schema import (
    DISTRICT_COLUMNS,
    SIGNAL_COLUMNS,
    STORE_COLUMNS,
    District,
    ProviderSignal,
)
from .validation import validate_confidence_range, validate_frame_schema, validate_no_nulls

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ADJACENCY_COLUMNS = {"district", "neighbor_district"}
GEO_SUFFIXES = {".geojson", ".json", ".gpkg", ".shp"}

_TRUE = {"true", "t", "yes", "y", "1"}
_FALSE = {"false", "f", "no", "n", "0"}


def read_table(path: PathLike) -> pd.DataFrame:
    """Read a CSV or parquet file by extension."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path, engine="pyarrow")
    if suffix in (".csv", ".txt"):
        return pd.read_csv(path)
    raise SchemaError(f"Unsupported table format {suffix!r} for {path} (expected .csv or .parquet)")


def _coerce_present(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise SchemaError(f"Cannot read {value!r} as a present flag")


def _optional_str(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = str(value).strip()
    return text or None


def _row_centroid(row, region: Optional[RegionBounds] = None):
    lat = row.get("centroid_lat")
    lng = row.get("centroid_lng")
    if lat is None or lng is None or pd.isna(lat) or pd.isna(lng):
        return None
    return normalize_centroid((lat, lng), region, label=row.get("district"))


def signals_from_frame(
    df: pd.DataFrame,
    source_path: Optional[str] = None,
    region: Optional[RegionBounds] = None,
) -> List[ProviderSignal]:
    """
    Convert a signal frame into ProviderSignal rows.

    Required columns: provider, district, present, confidence. Optional:
    segment_key, provider_segment_label, centroid_lat, centroid_lng.
    Centroid pairs supplied in [lng, lat] order are swapped using the
    deployment region (``region`` or the configured default).

    Raises:
        SchemaError: for missing columns, nulls in required columns or
            confidences outside [0, 1]
    """
    validate_frame_schema(df, SIGNAL_COLUMNS, source_path=source_path)
    validate_no_nulls(df, SIGNAL_COLUMNS, source_path=source_path)
    validate_confidence_range(df)

    signals: List[ProviderSignal] = []
    for row in df.to_dict(orient="records"):
        signals.append(
            ProviderSignal(
                provider_id=str(row["provider"]),
                district_id=str(row["district"]),
                present=_coerce_present(row["present"]),
                confidence=float(row["confidence"]),
                segment_key=_optional_str(row.get("segment_key")),
                provider_segment_label=_optional_str(row.get("provider_segment_label")),
                centroid=_row_centroid(row, region),
            )
        )
    logger.info(f"Loaded {len(signals)} signal rows{f' from {source_path}' if source_path else ''}")
    return signals


def load_signals(path: PathLike, region: Optional[RegionBounds] = None) -> List[ProviderSignal]:
    return signals_from_frame(read_table(path), source_path=str(path), region=region)


def _households(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


def districts_from_geodataframe(
    gdf: gpd.GeoDataFrame,
    id_column: str = "district",
    households_column: str = "household_estimate",
) -> List[District]:
    """
    Build District records from polygon features.

    Each feature is reduced to one valid Polygon first (see
    ``district_polygons``); MultiPolygons keep their largest part.
    Features without a usable polygon still produce a District, just without
    a centroid.
    """
    validate_frame_schema(gdf, {id_column})
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        logger.info(f"Reprojecting district catalog from {gdf.crs} to EPSG:4326")
        gdf = gdf.to_crs(epsg=4326)

    polygons = district_polygons(gdf)

    districts: List[District] = []
    for idx, row in gdf.iterrows():
        polygon = polygons[idx] if idx in polygons.index else None
        geojson = mapping(polygon) if polygon is not None else None
        centroid = compute_centroid(geojson) if geojson is not None else None
        households = _households(row.get(households_column)) if households_column in gdf.columns else None
        districts.append(
            District(
                district_id=str(row[id_column]),
                centroid=centroid,
                polygon=geojson,
                household_estimate=households,
            )
        )
    return districts


def districts_from_frame(
    df: pd.DataFrame,
    source_path: Optional[str] = None,
    region: Optional[RegionBounds] = None,
) -> List[District]:
    """District records from a flat table with district, centroid_lat/lng and household_estimate columns."""
    validate_frame_schema(df, DISTRICT_COLUMNS, source_path=source_path)
    districts: List[District] = []
    for row in df.to_dict(orient="records"):
        districts.append(
            District(
                district_id=str(row["district"]),
                centroid=_row_centroid(row, region),
                household_estimate=_households(row.get("household_estimate")),
            )
        )
    return districts


def load_district_catalog(
    path: PathLike,
    id_column: str = "district",
    region: Optional[RegionBounds] = None,
) -> List[District]:
    path = Path(path)
    if path.suffix.lower() in GEO_SUFFIXES:
        gdf = gpd.read_file(path)
        districts = districts_from_geodataframe(gdf, id_column=id_column)
    else:
        districts = districts_from_frame(read_table(path), source_path=str(path), region=region)
    missing = sum(1 for d in districts if d.centroid is None)
    logger.info(f"Loaded {len(districts)} districts from {path} ({missing} without centroid)")
    return districts


def stores_from_frame(df: pd.DataFrame, source_path: Optional[str] = None) -> List[StoreLocation]:
    validate_frame_schema(df, STORE_COLUMNS, source_path=source_path)
    validate_no_nulls(df, STORE_COLUMNS, source_path=source_path)
    return [
        StoreLocation(store_id=str(row["store_id"]), brand=str(row["brand"]), district_id=str(row["district"]))
        for row in df.to_dict(orient="records")
    ]


def load_stores(path: PathLike) -> List[StoreLocation]:
    return stores_from_frame(read_table(path), source_path=str(path))


def adjacency_from_frame(df: pd.DataFrame, source_path: Optional[str] = None) -> nx.Graph:
    """Undirected district adjacency graph from ``district, neighbor_district`` rows."""
    validate_frame_schema(df, ADJACENCY_COLUMNS, source_path=source_path)
    validate_no_nulls(df, ADJACENCY_COLUMNS, source_path=source_path)
    graph = nx.Graph()
    for a, b in zip(df["district"], df["neighbor_district"]):
        u, v = district_id(str(a)), district_id(str(b))
        if u != v:
            graph.add_edge(u, v)
    logger.info(f"Adjacency graph: {graph.number_of_nodes()} districts, {graph.number_of_edges()} edges")
    return graph


def load_adjacency(path: PathLike) -> nx.Graph:
    return adjacency_from_frame(read_table(path), source_path=str(path))
