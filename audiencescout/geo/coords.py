"""
Coordinate order normalisation and polygon centroids.

Two coordinate orders meet in this codebase:

- GeoJSON (district catalogs, polygon rings): ``[lng, lat]``
- H3 and the renderer: ``(lat, lng)``

Everything downstream of ingestion works in ``(lat, lng)``. Conversion happens
once, when a district catalog or signal frame is loaded (see ``ingest.py``);
nothing in ``scoring`` or ``overlay`` swaps axes again.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .. import config
from ..errors import InvalidCoordinate

logger = logging.getLogger(__name__)

LatLng = Tuple[float, float]
LngLat = Tuple[float, float]


@dataclass(frozen=True)
class RegionBounds:
    """Deployment region bounding box in decimal degrees."""

    west: float
    east: float
    south: float
    north: float

    def __post_init__(self):
        if not (-90 <= self.south <= self.north <= 90):
            raise ValueError(f"Invalid latitude band: south={self.south}, north={self.north}")
        if not (-180 <= self.west <= self.east <= 180):
            raise ValueError(f"Invalid longitude band: west={self.west}, east={self.east}")

    @classmethod
    def from_bbox(cls, bbox: Mapping[str, float]) -> "RegionBounds":
        return cls(
            west=float(bbox["west"]),
            east=float(bbox["east"]),
            south=float(bbox["south"]),
            north=float(bbox["north"]),
        )

    @classmethod
    def named(cls, name: str) -> "RegionBounds":
        bbox = config.REGION_BOUNDING_BOXES.get(name)
        if not bbox:
            raise ValueError(
                f"No bounding box configured for region '{name}'. "
                f"Available: {sorted(config.REGION_BOUNDING_BOXES)}"
            )
        return cls.from_bbox(bbox)

    def contains_lat(self, lat: float) -> bool:
        return self.south <= lat <= self.north

    def contains_lng(self, lng: float) -> bool:
        return self.west <= lng <= self.east

    def contains(self, lat: float, lng: float) -> bool:
        return self.contains_lat(lat) and self.contains_lng(lng)


def default_region() -> RegionBounds:
    return RegionBounds.named(config.DEPLOYMENT_REGION)


def _as_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def is_valid_lat_lng(lat, lng) -> bool:
    """True if both values are finite numbers inside WGS84 ranges."""
    flat = _as_float(lat)
    flng = _as_float(lng)
    if flat is None or flng is None:
        return False
    return -90.0 <= flat <= 90.0 and -180.0 <= flng <= 180.0


def _pair(coord) -> Tuple[float, float]:
    if coord is None or isinstance(coord, (str, bytes)) or len(coord) < 2:
        raise TypeError(f"Expected a 2-element coordinate, got {coord!r}")
    return coord[0], coord[1]


def validate_lat_lng(lat, lng) -> LatLng:
    """Return ``(lat, lng)`` as floats or raise InvalidCoordinate."""
    if not is_valid_lat_lng(lat, lng):
        raise InvalidCoordinate(lat, lng)
    return float(lat), float(lng)


def to_lat_lng(coord: Sequence[float]) -> LatLng:
    """
    Convert a GeoJSON ``[lng, lat]`` pair to ``(lat, lng)``.

    Raises:
        InvalidCoordinate: if either axis is non-finite or out of range
    """
    lng, lat = _pair(coord)
    return validate_lat_lng(lat, lng)


def to_lng_lat(latlng: Sequence[float]) -> LngLat:
    """Inverse of ``to_lat_lng``: ``(lat, lng)`` back to GeoJSON ``[lng, lat]``."""
    lat, lng = _pair(latlng)
    lat, lng = validate_lat_lng(lat, lng)
    return lng, lat


def is_probably_lng_lat(coord: Sequence[float], region: Optional[RegionBounds] = None) -> bool:
    """
    Guess whether a pair was supplied in ``[lng, lat]`` order.

    True when either:
    - the first value sits in the region's longitude band and the second in its
      latitude band, while the pair read as ``(lat, lng)`` would fall outside
      the region; or
    - the first value cannot be a latitude (|v| > 90) but the second can.

    The region check makes the heuristic idempotent: a pair that already reads
    as an in-region ``(lat, lng)`` is never swapped.
    """
    region = region or default_region()
    first, second = (_as_float(v) for v in _pair(coord))
    if first is None or second is None:
        return False

    if region.contains_lng(first) and region.contains_lat(second) and not region.contains(first, second):
        return True

    return abs(first) > 90 and abs(second) <= 90


def normalize_lat_lng(coord: Sequence[float], region: Optional[RegionBounds] = None) -> LatLng:
    """
    Return ``(lat, lng)`` for a pair of unknown order.

    Corrects accidentally-unswapped ``[lng, lat]`` input using
    ``is_probably_lng_lat``; already-correct input passes through unchanged.

    Raises:
        InvalidCoordinate: if the (possibly swapped) pair is out of range
    """
    first, second = _pair(coord)
    if is_probably_lng_lat((first, second), region):
        return validate_lat_lng(second, first)
    return validate_lat_lng(first, second)


def normalize_centroid(coord, region: Optional[RegionBounds] = None, label=None) -> Optional[LatLng]:
    """
    Centroid pair as supplied by a caller (table row, request body) to ``(lat, lng)``.

    Unswapped pairs are corrected; unusable ones are logged and become None.
    """
    try:
        latlng = normalize_lat_lng(coord, region)
    except (InvalidCoordinate, TypeError) as exc:
        logger.warning(f"District {label!r}: invalid centroid {coord!r} ignored ({exc})")
        return None
    if latlng != (float(coord[0]), float(coord[1])):
        logger.debug(f"District {label!r}: centroid {tuple(coord)!r} read as [lng, lat]; swapped")
    return latlng


def _exterior_ring(polygon) -> Optional[Sequence]:
    if polygon is None:
        return None

    mapping = polygon
    if hasattr(polygon, "__geo_interface__"):
        mapping = polygon.__geo_interface__

    if isinstance(mapping, Mapping):
        geom_type = mapping.get("type")
        if geom_type == "Feature":
            return _exterior_ring(mapping.get("geometry"))
        if geom_type != "Polygon":
            logger.warning(f"Expected Polygon geometry, got {geom_type!r}")
            return None
        rings = mapping.get("coordinates") or []
        return rings[0] if rings else None

    # Bare ring: sequence of [lng, lat] pairs
    return polygon


def compute_centroid(polygon) -> Optional[LatLng]:
    """
    Approximate centroid of a district polygon as ``(lat, lng)``.

    Arithmetic mean of the exterior ring's vertices, read in GeoJSON
    ``[lng, lat]`` order. Non-finite or out-of-range vertices are skipped; a
    closing vertex that repeats the first is counted once. Returns None if no
    valid vertex remains.

    This is an unweighted vertex mean, not an area centroid. At postcode-district
    scale the difference is well inside one H3 cell at resolutions 3-7, but a
    concave or unevenly-sampled ring will pull the point towards its densest
    edge. Tests comparing against GIS area centroids should allow for that.

    Args:
        polygon: GeoJSON Polygon mapping, Feature wrapping one, shapely Polygon,
            or a bare exterior ring
    """
    ring = _exterior_ring(polygon)
    if not ring:
        return None

    vertices = list(ring)
    if len(vertices) > 1 and list(vertices[0]) == list(vertices[-1]):
        vertices = vertices[:-1]

    sum_lat = 0.0
    sum_lng = 0.0
    count = 0
    for vertex in vertices:
        try:
            lng, lat = _pair(vertex)
        except TypeError:
            continue
        if not is_valid_lat_lng(lat, lng):
            logger.debug(f"Skipping invalid polygon vertex lng={lng!r} lat={lat!r}")
            continue
        sum_lat += float(lat)
        sum_lng += float(lng)
        count += 1

    if count == 0:
        return None
    return sum_lat / count, sum_lng / count


def compute_bbox(polygon) -> Optional[Tuple[LatLng, LatLng]]:
    """Return ``((min_lat, min_lng), (max_lat, max_lng))`` of the exterior ring."""
    ring = _exterior_ring(polygon)
    if not ring:
        return None
    lats = []
    lngs = []
    for vertex in ring:
        try:
            lng, lat = _pair(vertex)
        except TypeError:
            continue
        if is_valid_lat_lng(lat, lng):
            lats.append(float(lat))
            lngs.append(float(lng))
    if not lats:
        return None
    return (min(lats), min(lngs)), (max(lats), max(lngs))


def centroid_map(districts: Iterable) -> Dict[str, LatLng]:
    """
    Precompute ``district_id -> (lat, lng)`` for fast lookup.

    Uses a district's supplied centroid when it is valid, otherwise falls back
    to ``compute_centroid`` on its polygon. Districts with neither are left out
    and logged.
    """
    result: Dict[str, LatLng] = {}
    missing = 0
    for district in districts:
        centroid = getattr(district, "centroid", None)
        if centroid is not None:
            lat, lng = centroid
            if is_valid_lat_lng(lat, lng):
                result[district.district_id] = (float(lat), float(lng))
                continue
        computed = compute_centroid(getattr(district, "polygon", None))
        if computed is not None:
            result[district.district_id] = computed
        else:
            missing += 1
    if missing:
        logger.warning(f"{missing} districts have no usable centroid or polygon")
    return result


def check_region_bounds(points: Iterable[LatLng], region: Optional[RegionBounds] = None) -> bool:
    """
    Sanity check a batch of ``(lat, lng)`` points against the deployment region.

    Logs a warning (with the observed bounds) and returns False when any point
    falls outside; usually a sign of an unswapped batch.
    """
    region = region or default_region()
    pts = [p for p in points if p is not None]
    if not pts:
        return True
    lats = [p[0] for p in pts]
    lngs = [p[1] for p in pts]
    min_lat, max_lat = min(lats), max(lats)
    min_lng, max_lng = min(lngs), max(lngs)
    logger.debug(
        f"Centroid bounds lat=[{min_lat:.4f}, {max_lat:.4f}] lng=[{min_lng:.4f}, {max_lng:.4f}] n={len(pts)}"
    )
    inside = region.contains(min_lat, min_lng) and region.contains(max_lat, max_lng)
    if not inside:
        logger.warning(
            f"Centroid bounds lat=[{min_lat:.4f}, {max_lat:.4f}] lng=[{min_lng:.4f}, {max_lng:.4f}] "
            f"outside deployment region {region}"
        )
    return inside
