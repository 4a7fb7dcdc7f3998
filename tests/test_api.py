"""End-to-end tests for the trip, driver, vehicle and dashboard endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.main import app, driver_repo, ev_repo, scheduler, trip_repo

_NOW = datetime(2026, 5, 4, 7, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clear_repos(monkeypatch):
    """Reset in-memory repos and pin the clock before each test."""
    trip_repo._store.clear()
    driver_repo._store.clear()
    ev_repo._store.clear()
    monkeypatch.setattr(scheduler, "clock", lambda: _NOW)
    yield
    trip_repo._store.clear()
    driver_repo._store.clear()
    ev_repo._store.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def fleet(client):
    driver = client.post("/api/drivers", json={"name": "Dana", "license_id": "D-1"}).json()
    ev = client.post(
        "/api/evs", json={"registration": "EV-1", "battery_capacity_kwh": 60}
    ).json()
    return driver["id"], ev["id"]


def _iso(hours: float) -> str:
    return (_NOW + timedelta(hours=hours)).isoformat()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


def test_trip_crud_roundtrip(client, fleet):
    driver_id, ev_id = fleet
    create_resp = client.post(
        "/api/trips",
        json={
            "driver_id": driver_id,
            "ev_id": ev_id,
            "start_time": _iso(2),
            "end_time": _iso(3),
            "origin": "Depot",
        },
    )
    assert create_resp.status_code == 201
    trip = create_resp.json()
    assert trip["status"] == "PLANNED"
    assert _parse(trip["end_time"]) == _NOW + timedelta(hours=3)

    assert client.get(f"/api/trips/{trip['id']}").json() == trip
    assert [t["id"] for t in client.get("/api/trips").json()] == [trip["id"]]

    update_resp = client.put(
        f"/api/trips/{trip['id']}",
        json={"end_time": _iso(4), "status": "IN_PROGRESS"},
    )
    assert update_resp.status_code == 200
    updated = update_resp.json()
    assert updated["status"] == "IN_PROGRESS"
    assert updated["origin"] == "Depot"
    assert _parse(updated["end_time"]) == _NOW + timedelta(hours=4)

    assert client.delete(f"/api/trips/{trip['id']}").status_code == 204
    assert client.get(f"/api/trips/{trip['id']}").status_code == 404


def test_create_without_end_time_is_400(client, fleet):
    driver_id, ev_id = fleet
    resp = client.post("/api/trips", json={"driver_id": driver_id, "ev_id": ev_id})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "ERR_VALIDATION"
    assert body["message"] == "end time required"


def test_inverted_interval_is_400(client, fleet):
    driver_id, ev_id = fleet
    resp = client.post(
        "/api/trips",
        json={"driver_id": driver_id, "ev_id": ev_id, "start_time": _iso(5), "end_time": _iso(4)},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "end before start"


def test_double_booking_is_409(client, fleet):
    driver_id, ev_id = fleet
    payload = {"driver_id": driver_id, "ev_id": ev_id, "start_time": _iso(2), "end_time": _iso(3)}
    first = client.post("/api/trips", json=payload).json()

    resp = client.post(
        "/api/trips", json={**payload, "start_time": _iso(2.5), "end_time": _iso(3.5)}
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["error_code"] == "ERR_CONFLICT"
    assert body["message"] == "driver double-booked"
    assert body["details"]["conflicting_trip_ids"] == [first["id"]]


def test_unknown_driver_is_404(client, fleet):
    _, ev_id = fleet
    resp = client.post(
        "/api/trips", json={"driver_id": 999, "ev_id": ev_id, "end_time": _iso(1)}
    )
    assert resp.status_code == 404
    assert resp.json()["details"] == {"entity": "driver", "id": 999}


def test_delete_unknown_trip_is_404(client):
    resp = client.delete("/api/trips/12345")
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "ERR_NOT_FOUND"


@pytest.mark.parametrize(
    "path, entity",
    [("/api/trips/999", "trip"), ("/api/drivers/999", "driver"), ("/api/evs/999", "vehicle")],
)
def test_get_unknown_renders_error_body(client, path, entity):
    resp = client.get(path)

    assert resp.status_code == 404
    assert resp.json() == {
        "error_code": "ERR_NOT_FOUND",
        "message": f"{entity} with id 999 not found",
        "details": {"entity": entity, "id": 999},
    }


def test_today_endpoints(client, fleet):
    driver_id, ev_id = fleet
    today = client.post(
        "/api/trips",
        json={"driver_id": driver_id, "ev_id": ev_id, "start_time": _iso(1), "end_time": _iso(2)},
    ).json()
    client.post(
        "/api/trips",
        json={
            "driver_id": driver_id,
            "ev_id": ev_id,
            "start_time": _iso(24),
            "end_time": _iso(25),
        },
    )

    assert [t["id"] for t in client.get("/api/trips/today").json()] == [today["id"]]
    assert [t["id"] for t in client.get("/api/dashboard/today-trips").json()] == [today["id"]]


# ---------------------------------------------------------------------------
# Drivers & vehicles
# ---------------------------------------------------------------------------


def test_driver_update_and_missing(client, fleet):
    driver_id, _ = fleet
    resp = client.put(f"/api/drivers/{driver_id}", json={"name": "Dana K", "active": False})
    assert resp.status_code == 200
    assert resp.json()["active"] is False
    assert client.get(f"/api/drivers/{driver_id}").json()["name"] == "Dana K"

    assert client.get("/api/drivers/999").status_code == 404
    assert client.put("/api/drivers/999", json={"name": "Nobody"}).status_code == 404


def test_ev_validation_and_status_counts(client, fleet):
    _, ev_id = fleet
    bad = client.post("/api/evs", json={"registration": "EV-X", "current_battery_percent": 140})
    assert bad.status_code == 422

    client.put(
        f"/api/evs/{ev_id}", json={"registration": "EV-1", "status": "CHARGING"}
    )
    counts = {c["status"]: c["count"] for c in client.get("/api/dashboard/ev-status").json()}
    assert counts["CHARGING"] == 1
    assert counts["IDLE"] == 0


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_dashboard_at_risk(client, fleet):
    driver_id, ev_id = fleet
    low = client.post(
        "/api/evs", json={"registration": "EV-LOW", "current_battery_percent": 10}
    ).json()
    trip = client.post(
        "/api/trips",
        json={
            "driver_id": driver_id,
            "ev_id": low["id"],
            "start_time": _iso(1),
            "end_time": _iso(2),
            "destination": "Airport",
        },
    ).json()
    client.post(
        "/api/trips",
        json={"driver_id": driver_id, "ev_id": ev_id, "start_time": _iso(2), "end_time": _iso(3)},
    )
    client.post(
        "/api/trips",
        json={
            "driver_id": driver_id,
            "ev_id": low["id"],
            "start_time": _iso(6),
            "end_time": _iso(7),
        },
    )

    rows = client.get("/api/dashboard/at-risk", params={"hours": 4}).json()
    assert len(rows) == 1
    assert rows[0]["ev_id"] == low["id"]
    assert rows[0]["registration"] == "EV-LOW"
    assert rows[0]["trip_id"] == trip["id"]
    assert rows[0]["destination"] == "Airport"
    assert _parse(rows[0]["trip_start_time"]) == _NOW + timedelta(hours=1)

    assert len(client.get("/api/dashboard/at-risk", params={"hours": 8}).json()) == 2
    assert client.get("/api/dashboard/at-risk", params={"hours": 0}).status_code == 422
