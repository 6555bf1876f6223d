"""
Test Command Line Entry Point

Runs each subcommand against small CSV inputs and checks exit codes and
outputs.
"""
import json

import pandas as pd
import pytest

from audiencescout.cli import build_parser, main
from audiencescout.validation import validate_overlay_output

ABERDEEN = {"AB1": (57.10, -2.10), "AB2": (57.15, -2.15), "AB3": (57.20, -2.25)}


@pytest.fixture
def signals_csv(tmp_path):
    rows = [("CCS", d, True, 0.9) for d in ("AB1", "AB2", "AB3")]
    rows += [("Experian", "AB1", True, 0.8), ("Experian", "AB2", True, 0.7)]
    rows += [("YouGov", "AB1", True, 0.6), ("YouGov", "AB3", False, 0.9)]
    df = pd.DataFrame(rows, columns=["provider", "district", "present", "confidence"])
    df["centroid_lat"] = [ABERDEEN[d][0] for d in df["district"]]
    df["centroid_lng"] = [ABERDEEN[d][1] for d in df["district"]]
    path = tmp_path / "signals.csv"
    df.to_csv(path, index=False)
    return path


class TestAgreementCommand:
    def test_writes_report(self, signals_csv, tmp_path):
        out = tmp_path / "out" / "agreement.json"
        code = main(["agreement", "--signals", str(signals_csv), "--threshold", "2", "--out", str(out)])
        assert code == 0
        payload = json.loads(out.read_text())
        assert payload["summary"]["max_agreement"] == 2
        assert payload["summary"]["included_count"] == 1
        included = [d["district"] for d in payload["districts"] if d["included"]]
        assert included == ["AB1"]

    def test_stdout(self, signals_csv, capsys):
        assert main(["agreement", "--signals", str(signals_csv)]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["summary"]["threshold"] == 1

    def test_clamped_threshold_reported(self, signals_csv, capsys):
        assert main(["agreement", "--signals", str(signals_csv), "--threshold", "5"]) == 0
        summary = json.loads(capsys.readouterr().out)["summary"]
        assert summary["threshold_clamped"]["applied"] == 2

    def test_several_signal_files(self, signals_csv, tmp_path, capsys):
        extra = tmp_path / "transunion.csv"
        pd.DataFrame(
            [("TransUnion", "AB2", True, 0.9)], columns=["provider", "district", "present", "confidence"]
        ).to_csv(extra, index=False)
        assert main(["agreement", "--signals", str(signals_csv), "--signals", str(extra), "--threshold", "2"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["summary"]["max_agreement"] == 3
        assert payload["summary"]["included_count"] == 2


class TestConfidenceCommand:
    def test_threshold_applied(self, signals_csv, capsys):
        assert main(["confidence", "--signals", str(signals_csv), "--threshold", "0.8"]) == 0
        payload = json.loads(capsys.readouterr().out)
        by = {d["district"]: d for d in payload["districts"]}
        assert by["AB1"]["avg_confidence"] == pytest.approx(0.7667, abs=1e-3)
        assert by["AB3"]["included"]
        assert not by["AB1"]["included"]


class TestHexCommand:
    def test_parquet_output(self, signals_csv, tmp_path):
        out = tmp_path / "hexes.parquet"
        code = main(["hex", "--signals", str(signals_csv), "--res", "5", "--out", str(out)])
        assert code == 0
        df = pd.read_parquet(out)
        validate_overlay_output(df, {"h3_id", "res", "aggregate_value", "member_count", "members"})
        assert set(df["res"]) == {5}

    def test_geojson_output(self, signals_csv, tmp_path):
        out = tmp_path / "hexes.geojson"
        assert main(["hex", "--signals", str(signals_csv), "--mode", "extension", "--out", str(out)]) == 0
        fc = json.loads(out.read_text())
        assert fc["type"] == "FeatureCollection"
        assert fc["features"]

    def test_unswapped_centroid_columns(self, signals_csv, tmp_path, capsys):
        df = pd.read_csv(signals_csv)
        df[["centroid_lat", "centroid_lng"]] = df[["centroid_lng", "centroid_lat"]].to_numpy()
        swapped = tmp_path / "swapped.csv"
        df.to_csv(swapped, index=False)
        assert main(["hex", "--signals", str(swapped), "--region", "uk"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["summary"]["missing_centroids"] == 0
        (south, west), (north, east) = payload["bounds"]
        assert south < 57.10 and north > 57.15
        assert west < -2.15 and east > -2.10

    def test_bad_resolution(self, signals_csv, capsys):
        assert main(["hex", "--signals", str(signals_csv), "--res", "9"]) == 1
        assert "[error]" in capsys.readouterr().err


class TestBattleZonesCommand:
    def test_classifies(self, tmp_path, capsys):
        stores = tmp_path / "stores.csv"
        pd.DataFrame(
            {
                "store_id": ["b1", "c1", "c2"],
                "brand": ["Acme", "Rival", "Rival"],
                "district": ["AB1", "AB1", "AB2"],
            }
        ).to_csv(stores, index=False)
        adjacency = tmp_path / "neighbours.csv"
        pd.DataFrame({"district": ["AB1"], "neighbor_district": ["AB2"]}).to_csv(adjacency, index=False)

        code = main(
            [
                "battle-zones",
                "--stores", str(stores),
                "--adjacency", str(adjacency),
                "--base-brand", "Acme",
                "--competitor", "Rival",
                "--rings", "1",
            ]
        )
        assert code == 0
        summary = json.loads(capsys.readouterr().out)["summary"]
        assert summary["contested_districts"] == 1
        assert summary["competitor_only_districts"] == 1


class TestErrors:
    def test_missing_column(self, tmp_path, capsys):
        path = tmp_path / "signals.csv"
        pd.DataFrame({"provider": ["CCS"], "district": ["AB1"]}).to_csv(path, index=False)
        assert main(["agreement", "--signals", str(path)]) == 1
        err = capsys.readouterr().err
        assert err.startswith("[error]")
        assert "confidence" in err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["agreement", "--signals", str(tmp_path / "nope.csv")]) == 1
        assert "[error]" in capsys.readouterr().err

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
