"""
audiencescout.geo - Coordinate normalisation, centroids and H3 helpers.
"""
from .coords import (
    LatLng,
    LngLat,
    RegionBounds,
    centroid_map,
    check_region_bounds,
    compute_bbox,
    compute_centroid,
    default_region,
    is_probably_lng_lat,
    is_valid_lat_lng,
    normalize_centroid,
    normalize_lat_lng,
    to_lat_lng,
    to_lng_lat,
    validate_lat_lng,
)

__all__ = [
    "LatLng",
    "LngLat",
    "RegionBounds",
    "centroid_map",
    "check_region_bounds",
    "compute_bbox",
    "compute_centroid",
    "default_region",
    "is_probably_lng_lat",
    "is_valid_lat_lng",
    "normalize_centroid",
    "normalize_lat_lng",
    "to_lat_lng",
    "to_lng_lat",
    "validate_lat_lng",
]
