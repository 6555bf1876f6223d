"""
Test Scoring API

Exercises the FastAPI service end to end with the test client.
"""
import pytest
from fastapi.testclient import TestClient

from api.app.main import app


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


def signal(provider, district, present=True, confidence=0.9, **kw):
    return {"provider": provider, "district": district, "present": present, "confidence": confidence, **kw}


SIGNALS = [
    signal("CCS", "AB1"),
    signal("CCS", "AB2"),
    signal("CCS", "AB3"),
    signal("Experian", "AB1"),
    signal("Experian", "AB2"),
    signal("YouGov", "AB1"),
]

DISTRICTS = [
    {"district": "AB1", "centroid": [57.10, -2.10], "household_estimate": 4000},
    {
        "district": "AB2",
        "polygon": {
            "type": "Polygon",
            "coordinates": [[[-2.2, 57.1], [-2.0, 57.1], [-2.0, 57.2], [-2.2, 57.2], [-2.2, 57.1]]],
        },
    },
    {"district": "AB3"},
]


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert "version" in body


class TestAgreement:
    def test_report(self, client):
        resp = client.post("/api/agreement", json={"signals": SIGNALS, "threshold": 2, "districts": DISTRICTS})
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["included_count"] == 1
        assert body["summary"]["estimated_households"] == 4000
        by = {d["district"]: d for d in body["districts"]}
        assert by["AB1"]["included"]
        assert by["AB1"]["agreeing_providers"] == ["Experian", "YouGov"]

    def test_polygon_centroid_is_lat_lng(self, client):
        body = client.post("/api/agreement", json={"signals": SIGNALS, "districts": DISTRICTS}).json()
        lat, lng = {d["district"]: d for d in body["districts"]}["AB2"]["centroid"]
        assert lat == pytest.approx(57.15)
        assert lng == pytest.approx(-2.1)

    def test_unswapped_centroids_corrected(self, client):
        signals = [signal("CCS", "AB1", centroid=[-2.1, 57.15]), signal("CCS", "AB2")]
        districts = [{"district": "AB2", "centroid": [-2.2, 57.2]}]
        body = client.post("/api/agreement", json={"signals": signals, "districts": districts}).json()
        by = {d["district"]: d for d in body["districts"]}
        assert by["AB1"]["centroid"] == pytest.approx([57.15, -2.1])
        assert by["AB2"]["centroid"] == pytest.approx([57.2, -2.2])

    def test_clamp_reported(self, client):
        body = client.post("/api/agreement", json={"signals": SIGNALS, "threshold": 6}).json()
        assert body["summary"]["threshold_clamped"] == {"requested": 6, "applied": 2, "low": 1, "high": 2}

    def test_empty_signals(self, client):
        body = client.post("/api/agreement", json={"signals": []}).json()
        assert body["summary"]["empty"] is True

    def test_confidence_out_of_range_is_422(self, client):
        resp = client.post("/api/agreement", json={"signals": [signal("CCS", "AB1", confidence=1.5)]})
        assert resp.status_code == 422
        assert "confidence" in resp.json()["detail"]

    def test_missing_field_is_422(self, client):
        resp = client.post("/api/agreement", json={"signals": [{"provider": "CCS"}]})
        assert resp.status_code == 422


class TestConfidence:
    def test_extension_report(self, client):
        signals = [
            signal("CCS", "AB1", confidence=0.9, segment_key="movers"),
            signal("Experian", "AB2", confidence=0.6, segment_key="new_parents"),
            signal("Experian", "AB3", confidence=0.9, segment_key="unrelated"),
        ]
        body = client.post(
            "/api/confidence",
            json={"signals": signals, "threshold": 0.5, "segment": "movers", "candidate_segments": ["new_parents"]},
        ).json()
        assert {d["district"] for d in body["districts"]} == {"AB1", "AB2"}
        assert body["summary"]["included_count"] == 2
        assert [p["provider"] for p in body["providers"]][0] == "CCS"


class TestHex:
    def test_cells(self, client):
        body = client.post("/api/hex", json={"signals": SIGNALS, "districts": DISTRICTS, "resolution": 5}).json()
        assert body["res"] == 5
        members = {m for c in body["cells"] for m in c["members"]}
        assert members == {"AB1", "AB2"}
        assert body["summary"]["missing_centroids"] == 0
        (south, west), (north, east) = body["bounds"]
        assert south < 57.1 < north
        assert west < -2.1 < east

    def test_bad_resolution_is_400(self, client):
        resp = client.post("/api/hex", json={"signals": SIGNALS, "resolution": 9})
        assert resp.status_code == 400

    def test_unknown_region_is_400(self, client):
        resp = client.post("/api/hex", json={"signals": SIGNALS, "region": "atlantis"})
        assert resp.status_code == 400


class TestBattleZones:
    def test_classification(self, client):
        payload = {
            "stores": [
                {"store_id": "b1", "brand": "Acme", "district": "AB1"},
                {"store_id": "c1", "brand": "Rival", "district": "AB1"},
                {"store_id": "c2", "brand": "Rival", "district": "AB2"},
                {"store_id": "c3", "brand": "Rival", "district": "AB9"},
            ],
            "base_brand": "Acme",
            "competitor_brands": ["Rival"],
            "rings": 1,
            "adjacency": [["AB1", "AB2"], ["AB2", "AB3"]],
        }
        body = client.post("/api/battle_zones", json=payload).json()
        categories = {d["district"]: d["category"] for d in body["districts"]}
        assert categories == {"AB1": "contested", "AB2": "competitor_only"}
        assert body["summary"]["top_contested"][0]["district"] == "AB1"

    def test_negative_ring_is_422(self, client):
        payload = {"stores": [], "base_brand": "Acme", "rings": -1}
        assert client.post("/api/battle_zones", json=payload).status_code == 422


class TestSettings:
    def test_slider_ranges(self, client):
        body = client.get("/api/settings").json()
        assert body["agreement"]["step"] == 1
        assert body["confidence"]["min"] == pytest.approx(0.3)
        assert body["confidence"]["max"] == pytest.approx(0.8)
        assert (body["resolution"]["min"], body["resolution"]["max"]) == (3, 7)
        assert body["region"] in body["regions"]
