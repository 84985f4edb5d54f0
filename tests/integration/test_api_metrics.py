"""Integration tests for /metrics routes."""
import pytest
from fastapi.testclient import TestClient

from cyclemetrics import config
from cyclemetrics.analysis.rider import ConfigurationError, make_rider
from cyclemetrics.api.deps import get_best_effort_durations, get_rider
from cyclemetrics.api.main import create_app


def make_payload(activity_id=1, start="2025-01-15T07:00:00Z", seconds=600, watts=200, hr=150):
    return {
        "id": activity_id,
        "name": "Lunch Ride",
        "start_date": start,
        "distance": 5000.0,
        "moving_time": seconds,
        "max_speed": 12.5,
        "streams": {
            "time": list(range(seconds)),
            "watts": [watts] * seconds,
            "heartrate": [hr] * seconds,
        },
    }


@pytest.fixture(name="app")
def app_fixture():
    app = create_app()
    app.dependency_overrides[get_rider] = lambda: make_rider(250, 185)
    app.dependency_overrides[get_best_effort_durations] = lambda: (60, 300)
    return app


@pytest.fixture(name="client")
def client_fixture(app):
    with TestClient(app) as c:
        yield c


class TestRiderRoute:
    def test_rider(self, client):
        resp = client.get("/metrics/rider")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ftp_watts"] == 250.0
        assert data["zone_thresholds_watts"] == pytest.approx([137.5, 187.5, 225.0, 250.0])
        assert data["best_effort_durations"] == [60, 300]

    def test_bad_rider_is_400(self, app, client):
        def broken_rider():
            raise ConfigurationError("ftp_watts must be positive, got 0")

        app.dependency_overrides[get_rider] = broken_rider
        resp = client.get("/metrics/rider")
        assert resp.status_code == 400
        assert "ftp_watts" in resp.json()["detail"]


    def test_bad_best_effort_durations_is_400(self, app, client, monkeypatch):
        del app.dependency_overrides[get_best_effort_durations]
        monkeypatch.setattr(
            config, "_settings", config.Settings(_env_file=None, best_effort_durations=[0])
        )
        resp = client.post("/metrics/activity", json=make_payload())
        assert resp.status_code == 400
        assert "best-effort" in resp.json()["detail"]


class TestActivityRoute:
    def test_metrics(self, client):
        resp = client.post("/metrics/activity", json=make_payload())
        assert resp.status_code == 200
        data = resp.json()
        assert data["activity_id"] == "1"
        assert data["normalized_power"] == pytest.approx(200.0)
        assert data["intensity_factor"] == pytest.approx(0.8)
        assert data["efficiency_factor"] == pytest.approx(1.333, abs=1e-3)
        assert data["efficiency_basis"] == "normalized_power"
        assert data["best_efforts"] == {"60": 200.0, "300": 200.0}
        assert data["max_speed_ms"] == 12.5

    def test_no_power_stream(self, client):
        payload = make_payload()
        del payload["streams"]["watts"]
        resp = client.post("/metrics/activity", json=payload)
        assert resp.status_code == 200
        data = resp.json()
        assert data["normalized_power"] is None
        assert data["tss"] is None
        assert data["diagnostics"]["normalized_power"] == "power stream not present"

    def test_length_mismatch_is_422(self, client):
        payload = make_payload(activity_id=77)
        payload["streams"]["heartrate"] = payload["streams"]["heartrate"][:-5]
        resp = client.post("/metrics/activity", json=payload)
        assert resp.status_code == 422
        assert resp.json()["activity_id"] == "77"


    def test_bad_start_date_is_422(self, client):
        payload = make_payload()
        payload["start_date"] = "yesterday"
        resp = client.post("/metrics/activity", json=payload)
        assert resp.status_code == 422

    def test_missing_id_is_422(self, client):
        payload = make_payload()
        del payload["id"]
        resp = client.post("/metrics/activity", json=payload)
        assert resp.status_code == 422
        assert "missing field" in resp.json()["detail"]


class TestSummaryRoute:
    def test_summary(self, client):
        body = {
            "activities": [
                make_payload(1, "2025-01-14T07:00:00Z"),
                make_payload(2, "2025-01-16T07:00:00Z", hr=160),
                make_payload(3, "2025-01-21T07:00:00Z"),
            ]
        }
        resp = client.post("/metrics/summary", json=body)
        assert resp.status_code == 200
        data = resp.json()
        assert [a["activity_id"] for a in data["activities"]] == ["1", "2", "3"]
        assert [w["key"] for w in data["weekly"]] == ["2025-W03", "2025-W04"]
        assert data["weekly"][0]["activity_count"] == 2
        assert data["weekly"][0]["efficiency_factor_count"] == 2
        assert data["overall"]["total_activities"] == 3
        assert data["failures"] == {}

    def test_failures_do_not_fail_request(self, client):
        broken = make_payload(2)
        broken["streams"]["watts"] = [200, 200]
        no_id = make_payload(3)
        del no_id["id"]
        body = {"activities": [make_payload(1), broken, no_id]}

        resp = client.post("/metrics/summary", json=body, params={"max_workers": 2})
        assert resp.status_code == 200
        data = resp.json()
        assert [a["activity_id"] for a in data["activities"]] == ["1"]
        assert set(data["failures"]) == {"2", "?"}

    @pytest.mark.parametrize(
        "field,value",
        [("start_date", "not-a-date"), ("start_date", 20250115), ("distance", "far")],
    )
    def test_malformed_activity_is_a_failure(self, client, field, value):
        bad = make_payload(2)
        bad[field] = value
        body = {"activities": [make_payload(1), bad]}

        resp = client.post("/metrics/summary", json=body)
        assert resp.status_code == 200
        data = resp.json()
        assert [a["activity_id"] for a in data["activities"]] == ["1"]
        assert list(data["failures"]) == ["2"]
        assert data["overall"]["total_activities"] == 1

    def test_empty(self, client):
        resp = client.post("/metrics/summary", json={"activities": []})
        assert resp.status_code == 200
        assert resp.json()["weekly"] == []
