"""
Test Coordinate Normalisation

Validates the [lng, lat] / (lat, lng) boundary:
- GeoJSON pairs convert to (lat, lng) once and round-trip back unchanged
- The order heuristic corrects unswapped pairs and leaves correct ones alone
- Polygon centroids skip invalid vertices and count a closing vertex once
"""
import pytest
from shapely.geometry import Polygon

from audiencescout.errors import InvalidCoordinate
from audiencescout.geo.coords import (
    RegionBounds,
    centroid_map,
    check_region_bounds,
    compute_bbox,
    compute_centroid,
    is_probably_lng_lat,
    normalize_lat_lng,
    to_lat_lng,
    to_lng_lat,
)
from audiencescout.scoring.schema import District

UK = RegionBounds.named("uk")
LONDON_LNG_LAT = (-0.1276, 51.5072)
LONDON_LAT_LNG = (51.5072, -0.1276)


def square_ring(lng: float, lat: float, size: float = 0.02) -> list:
    """Closed [lng, lat] ring around a point."""
    return [
        [lng - size, lat - size],
        [lng + size, lat - size],
        [lng + size, lat + size],
        [lng - size, lat + size],
        [lng - size, lat - size],
    ]


class TestAxisConversion:
    """Explicit [lng, lat] <-> (lat, lng) conversion."""

    def test_to_lat_lng_swaps(self):
        assert to_lat_lng(LONDON_LNG_LAT) == LONDON_LAT_LNG

    @pytest.mark.parametrize(
        "coord",
        [
            (-0.1276, 51.5072),
            (151.2093, -33.8688),
            (-179.9, 89.9),
            (0.0, 0.0),
        ],
    )
    def test_round_trip_is_identity(self, coord):
        """[lng,lat] -> (lat,lng) -> [lng,lat] returns the input."""
        assert to_lng_lat(to_lat_lng(coord)) == pytest.approx(coord)

    @pytest.mark.parametrize(
        "coord",
        [
            (0.0, 91.0),
            (181.0, 10.0),
            (float("nan"), 51.0),
            (0.0, float("inf")),
        ],
    )
    def test_out_of_range_raises(self, coord):
        with pytest.raises(InvalidCoordinate):
            to_lat_lng(coord)

    def test_invalid_coordinate_is_value_error(self):
        with pytest.raises(ValueError):
            to_lat_lng((0.0, 200.0))


class TestOrderHeuristic:
    """Ambiguous-order detection against a configured region."""

    def test_unswapped_uk_pair_detected(self):
        assert is_probably_lng_lat(LONDON_LNG_LAT, UK)

    def test_correct_uk_pair_not_flagged(self):
        assert not is_probably_lng_lat(LONDON_LAT_LNG, UK)

    def test_first_value_outside_lat_range_flagged(self):
        """A first value beyond +/-90 cannot be a latitude."""
        assert is_probably_lng_lat((151.2, -33.9), UK)

    def test_normalize_is_idempotent(self):
        """Normalising already-correct input never swaps it again."""
        once = normalize_lat_lng(LONDON_LNG_LAT, UK)
        twice = normalize_lat_lng(once, UK)
        assert once == LONDON_LAT_LNG
        assert twice == once

    def test_region_is_configuration(self):
        """The same pair reads differently under a different deployment region."""
        ma = RegionBounds.named("massachusetts")
        boston_lng_lat = (-71.0589, 42.3601)
        assert is_probably_lng_lat(boston_lng_lat, ma)
        assert normalize_lat_lng(boston_lng_lat, ma) == (42.3601, -71.0589)

    def test_unknown_region_raises(self):
        with pytest.raises(ValueError, match="No bounding box"):
            RegionBounds.named("atlantis")

    def test_region_rejects_inverted_band(self):
        with pytest.raises(ValueError):
            RegionBounds(west=0.0, east=1.0, south=60.0, north=50.0)


class TestCentroid:
    """Polygon centroid approximation."""

    def test_closed_ring_counts_closing_vertex_once(self):
        ring = square_ring(-0.1, 51.5)
        lat, lng = compute_centroid(ring)
        assert lat == pytest.approx(51.5)
        assert lng == pytest.approx(-0.1)

    def test_accepts_geojson_polygon_and_feature(self):
        polygon = {"type": "Polygon", "coordinates": [square_ring(-2.0, 53.0)]}
        feature = {"type": "Feature", "geometry": polygon, "properties": {}}
        assert compute_centroid(polygon) == pytest.approx((53.0, -2.0))
        assert compute_centroid(feature) == pytest.approx((53.0, -2.0))

    def test_accepts_shapely_polygon(self):
        poly = Polygon(square_ring(-3.0, 55.0))
        assert compute_centroid(poly) == pytest.approx((55.0, -3.0))

    def test_invalid_vertices_skipped(self):
        ring = [[-0.1, 51.5], [500.0, 51.5], [float("nan"), 0.0], [-0.3, 51.7]]
        lat, lng = compute_centroid(ring)
        assert lat == pytest.approx(51.6)
        assert lng == pytest.approx(-0.2)

    def test_no_valid_vertex_returns_none(self):
        assert compute_centroid([[500.0, 500.0], [float("nan"), 1.0]]) is None
        assert compute_centroid(None) is None
        assert compute_centroid({"type": "Point", "coordinates": [0, 0]}) is None

    def test_bbox(self):
        (min_lat, min_lng), (max_lat, max_lng) = compute_bbox(square_ring(-0.1, 51.5, size=0.05))
        assert min_lat == pytest.approx(51.45)
        assert max_lat == pytest.approx(51.55)
        assert min_lng == pytest.approx(-0.15)
        assert max_lng == pytest.approx(-0.05)


class TestCentroidMap:
    """Precomputed district -> centroid lookup."""

    def test_prefers_supplied_centroid(self):
        districts = [
            District("AB1", centroid=(57.1, -2.1), polygon={"type": "Polygon", "coordinates": [square_ring(0.0, 50.0)]}),
            District("AB2", polygon={"type": "Polygon", "coordinates": [square_ring(-2.2, 57.2)]}),
            District("AB3"),
        ]
        result = centroid_map(districts)
        assert result["AB1"] == (57.1, -2.1)
        assert result["AB2"] == pytest.approx((57.2, -2.2))
        assert "AB3" not in result


class TestRegionBoundsCheck:
    def test_inside_region(self):
        assert check_region_bounds([LONDON_LAT_LNG, (55.95, -3.19)], UK)

    def test_unswapped_batch_flagged(self, caplog):
        with caplog.at_level("WARNING"):
            assert not check_region_bounds([(-0.1276, 51.5072)], UK)
        assert any("outside" in r.message.lower() for r in caplog.records)

    def test_empty_batch_passes(self):
        assert check_region_bounds([], UK)
