"""
Shared H3 utilities for the hex overlay.

Thin wrappers around the h3 v4 API so the binner and renderer agree on
argument order (always ``lat, lng``), resolution bounds and cell id forms
(string addresses in memory, uint64 integers in parquet frames).
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import h3
import numpy as np
from shapely.geometry import Polygon

from .. import config
from .coords import LatLng, validate_lat_lng


def validate_resolution(resolution) -> int:
    """
    Check a hex resolution against the supported range.

    Raises:
        TypeError: if resolution is not an integer
        ValueError: if resolution is outside [H3_RES_MIN, H3_RES_MAX]
    """
    if isinstance(resolution, bool) or not isinstance(resolution, (int, np.integer)):
        raise TypeError(f"H3 resolution must be an int, got {type(resolution).__name__}")
    res = int(resolution)
    if not (config.H3_RES_MIN <= res <= config.H3_RES_MAX):
        raise ValueError(
            f"H3 resolution {res} outside supported range "
            f"[{config.H3_RES_MIN}, {config.H3_RES_MAX}]"
        )
    return res


def latlng_to_cell(lat: float, lng: float, resolution: int) -> str:
    """
    Map a point to its H3 cell address.

    Raises:
        InvalidCoordinate: if the point is out of range
    """
    lat, lng = validate_lat_lng(lat, lng)
    return h3.latlng_to_cell(lat, lng, resolution)


def cell_to_int(cell) -> int:
    """
    Convert an H3 address (string or int) to its uint64 integer form.

    Raises:
        TypeError: if cell type is not supported
    """
    if isinstance(cell, (int, np.integer)):
        return int(cell)
    if isinstance(cell, str):
        return int(h3.str_to_int(cell))
    raise TypeError(f"Unsupported H3 cell type: {type(cell)!r}")


def cell_to_str(cell) -> str:
    if isinstance(cell, str):
        return cell
    if isinstance(cell, (int, np.integer)):
        return h3.int_to_str(int(cell))
    raise TypeError(f"Unsupported H3 cell type: {type(cell)!r}")


def cell_boundary_lat_lng(cell) -> List[LatLng]:
    """Cell boundary vertices in ``(lat, lng)`` order, ready for the renderer."""
    return [(float(lat), float(lng)) for lat, lng in h3.cell_to_boundary(cell_to_str(cell))]


def cell_polygon(cell) -> Polygon:
    """Cell boundary as a shapely Polygon in GeoJSON ``(lng, lat)`` order."""
    boundary = h3.cell_to_boundary(cell_to_str(cell))
    coords = [(lng, lat) for lat, lng in boundary]
    return Polygon(coords)


def bounds_of_cells(cells) -> Optional[Tuple[LatLng, LatLng]]:
    """``((min_lat, min_lng), (max_lat, max_lng))`` over all cell boundaries, for fit-to-bounds."""
    lats: List[float] = []
    lngs: List[float] = []
    for cell in cells:
        for lat, lng in cell_boundary_lat_lng(cell):
            lats.append(lat)
            lngs.append(lng)
    if not lats:
        return None
    return (min(lats), min(lngs)), (max(lats), max(lngs))
