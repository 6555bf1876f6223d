"""
Test Hex Binning

Validates that included districts bin into H3 cells deterministically:
- agreement cells take the max of member values, confidence cells the mean
- cells sort by (value desc, member count desc, h3 index asc)
- districts with unusable centroids are skipped without failing the pass
- frames follow the standard overlay schema (h3_id uint64, res int32)
"""
import h3
import pytest

from audiencescout.errors import SchemaError
from audiencescout.geo.h3_utils import (
    bounds_of_cells,
    cell_boundary_lat_lng,
    cell_to_int,
    cell_to_str,
    validate_resolution,
)
from audiencescout.overlay import (
    DistrictValue,
    ValueKind,
    bin_report_to_hex,
    bin_to_hex,
    bin_to_hex_frame,
    hex_cells_to_geojson,
    top_cells,
)
from audiencescout.scoring import AggregationContext, District, ProviderSignal, compute_agreement
from audiencescout.validation import validate_overlay_output

LONDON = (51.5072, -0.1276)
EDINBURGH = (55.9533, -3.1883)


def two_points_in_one_res7_cell():
    """Two points about 2 km apart on opposite sides of one resolution-7 cell."""
    cell = h3.latlng_to_cell(LONDON[0], LONDON[1], 7)
    c_lat, c_lng = h3.cell_to_latlng(cell)
    boundary = h3.cell_to_boundary(cell)
    (v0_lat, v0_lng), (v3_lat, v3_lng) = boundary[0], boundary[3]
    p1 = (c_lat + 0.7 * (v0_lat - c_lat), c_lng + 0.7 * (v0_lng - c_lng))
    p2 = (c_lat + 0.7 * (v3_lat - c_lat), c_lng + 0.7 * (v3_lng - c_lng))
    return cell, p1, p2


class TestScenarioC:
    """Two nearby districts sharing a resolution-7 cell."""

    def test_points_share_cell_about_two_km_apart(self):
        cell, p1, p2 = two_points_in_one_res7_cell()
        assert h3.latlng_to_cell(p1[0], p1[1], 7) == cell
        assert h3.latlng_to_cell(p2[0], p2[1], 7) == cell
        assert 1.5 <= h3.great_circle_distance(p1, p2, unit="km") <= 2.5

    def test_agreement_cell_takes_max_not_sum(self):
        cell, p1, p2 = two_points_in_one_res7_cell()
        cells = bin_to_hex(
            [DistrictValue("E1", p1, 2), DistrictValue("E2", p2, 3)],
            7,
            ValueKind.AGREEMENT,
        )
        assert len(cells) == 1
        assert cells[0].h3_index == cell
        assert cells[0].aggregate_value == 3
        assert cells[0].member_count == 2
        assert cells[0].member_districts == {"E1", "E2"}

    def test_confidence_cell_takes_mean(self):
        _, p1, p2 = two_points_in_one_res7_cell()
        cells = bin_to_hex(
            [DistrictValue("E1", p1, 0.6), DistrictValue("E2", p2, 0.9)],
            7,
            ValueKind.CONFIDENCE,
        )
        assert cells[0].aggregate_value == pytest.approx(0.75)


class TestScenarioD:
    """A district with an out-of-range centroid is dropped, not fatal."""

    def test_bad_centroid_skipped(self, caplog):
        districts = [
            DistrictValue("BAD1", (200.0, 0.0), 3),
            DistrictValue("NONE1", None, 3),
            DistrictValue("OK1", LONDON, 1),
        ]
        with caplog.at_level("WARNING"):
            cells = bin_to_hex(districts, 5)
        members = set().union(*(c.member_districts for c in cells))
        assert members == {"OK1"}
        assert any("BAD1" in r.message for r in caplog.records)

    def test_bad_centroid_from_signal_row(self):
        """An invalid centroid attached to signal rows resolves to none and is not binned."""
        rows = [
            ProviderSignal("A", "BAD1", True, 0.9, centroid=(200.0, 0.0)),
            ProviderSignal("A", "OK1", True, 0.9, centroid=LONDON),
        ]
        report = compute_agreement(rows, 1)
        assert report.missing_centroids == 1
        cells = bin_report_to_hex(report, 6)
        assert [sorted(c.member_districts) for c in cells] == [["OK1"]]


class TestOrderingAndDeterminism:
    def test_sort_order(self):
        cells = bin_to_hex(
            [
                DistrictValue("L1", LONDON, 1),
                DistrictValue("E1", EDINBURGH, 3),
                DistrictValue("M1", (53.4808, -2.2426), 3),
                DistrictValue("M2", (53.4808, -2.2426), 1),
            ],
            4,
        )
        values = [(c.aggregate_value, c.member_count) for c in cells]
        assert values == [(3, 2), (3, 1), (1, 1)]

    def test_equal_value_and_count_sorted_by_index(self):
        cells = bin_to_hex([DistrictValue("L1", LONDON, 2), DistrictValue("E1", EDINBURGH, 2)], 5)
        assert [c.h3_index for c in cells] == sorted(c.h3_index for c in cells)

    def test_input_order_irrelevant(self):
        districts = [
            DistrictValue("L1", LONDON, 0.61),
            DistrictValue("L2", (51.5080, -0.1280), 0.83),
            DistrictValue("E1", EDINBURGH, 0.7),
        ]
        forward = bin_to_hex(districts, 5, ValueKind.CONFIDENCE)
        backward = bin_to_hex(list(reversed(districts)), 5, ValueKind.CONFIDENCE)
        assert forward == backward

    def test_top_cells(self):
        cells = bin_to_hex([DistrictValue("L1", LONDON, 1), DistrictValue("E1", EDINBURGH, 2)], 5)
        assert [c.aggregate_value for c in top_cells(cells, 1)] == [2]
        with pytest.raises(ValueError):
            top_cells(cells, -1)


class TestResolution:
    @pytest.mark.parametrize("res", [3, 5, 7])
    def test_supported(self, res):
        assert validate_resolution(res) == res

    @pytest.mark.parametrize("res", [2, 8, -1])
    def test_out_of_range(self, res):
        with pytest.raises(ValueError):
            bin_to_hex([], res)

    @pytest.mark.parametrize("res", [5.0, "5", True])
    def test_malformed(self, res):
        with pytest.raises(TypeError):
            validate_resolution(res)

    def test_non_district_value_rejected(self):
        with pytest.raises(SchemaError):
            bin_to_hex([(LONDON, 1)], 5)


class TestOutputs:
    def test_frame_schema(self):
        df = bin_to_hex_frame([DistrictValue("L1", LONDON, 2), DistrictValue("E1", EDINBURGH, 1)], 6)
        validate_overlay_output(df, {"h3_id", "res", "aggregate_value", "member_count", "members"})
        assert list(df["aggregate_value"]) == [2.0, 1.0]
        assert cell_to_str(int(df["h3_id"].iloc[0])) == h3.latlng_to_cell(LONDON[0], LONDON[1], 6)

    def test_empty_frame_schema(self):
        df = bin_to_hex_frame([], 6)
        assert len(df) == 0
        assert df["h3_id"].dtype == "uint64"
        assert df["res"].dtype == "int32"

    def test_geojson_is_lng_lat(self):
        cells = bin_to_hex([DistrictValue("L1", LONDON, 1)], 5)
        fc = hex_cells_to_geojson(cells)
        ring = fc["features"][0]["geometry"]["coordinates"][0]
        lng, lat = ring[0]
        assert -1.0 < lng < 1.0
        assert 51.0 < lat < 52.0

    def test_report_binning_uses_catalog_centroids(self):
        context = AggregationContext.build(districts=[District("L1", centroid=LONDON), District("E1", centroid=EDINBURGH)])
        rows = [ProviderSignal("A", "L1", True, 0.9), ProviderSignal("A", "E1", True, 0.9)]
        cells = bin_report_to_hex(compute_agreement(rows, 1, context), 5)
        assert len(cells) == 2


class TestH3Helpers:
    def test_int_and_str_forms(self):
        cell = h3.latlng_to_cell(LONDON[0], LONDON[1], 5)
        assert cell_to_str(cell_to_int(cell)) == cell
        with pytest.raises(TypeError):
            cell_to_int(1.5)

    def test_boundary_and_bounds(self):
        cell = h3.latlng_to_cell(LONDON[0], LONDON[1], 5)
        lat, lng = h3.cell_to_latlng(cell)
        boundary = cell_boundary_lat_lng(cell)
        (min_lat, min_lng), (max_lat, max_lng) = bounds_of_cells([cell])
        assert len(boundary) == 6
        assert min_lat <= lat <= max_lat
        assert min_lng <= lng <= max_lng
        assert bounds_of_cells([]) is None

    def test_bounds_accept_int_cells(self):
        cell = h3.latlng_to_cell(LONDON[0], LONDON[1], 5)
        assert bounds_of_cells([cell_to_int(cell)]) == bounds_of_cells([cell])
