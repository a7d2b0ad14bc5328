"""HTTP surface tests through FastAPI's TestClient."""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import NOW, FixtureAdapter, make_registry
from tripcompare.errors import AdapterError
from tripcompare.main import create_app
from tripcompare.services.comparison_service import build_engine

SEARCH_BODY = {
    "item_type": "hotel",
    "criteria": {
        "destination": "PAR",
        "start_date": (NOW.date() + timedelta(days=30)).isoformat(),
        "end_date": (NOW.date() + timedelta(days=33)).isoformat(),
    },
    "item_id": "hotel-paris",
}


def _client(settings, *adapters):
    engine = build_engine(settings, registry=make_registry(*adapters))
    return TestClient(create_app(settings=settings, engine=engine))


@pytest.fixture
def client(test_settings):
    adapters = (
        FixtureAdapter("A", [{"id": "a1", "price": 100}, {"id": "a2", "price": 120}]),
        FixtureAdapter("B", [{"id": "b1", "price": 90}]),
    )
    with _client(test_settings, *adapters) as client:
        yield client


def test_search(client):
    resp = client.post("/api/search", json=SEARCH_BODY)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    assert data["total_results"] == 3
    assert [q["price"]["amount"] for q in data["results"]] == [90, 100, 120]
    assert data["price_insights"]["lowest_price"] == 90
    assert data["filters"]["price_range"] == [90, 120]


def test_search_validation(client):
    resp = client.post("/api/search", json={"item_type": "boat", "criteria": {}})
    assert resp.status_code == 422


def test_all_providers_failed_is_bad_gateway(test_settings):
    broken = FixtureAdapter("A", fail=AdapterError("A", "HTTP 500"))
    with _client(test_settings, broken) as client:
        resp = client.post("/api/search", json=SEARCH_BODY)
    assert resp.status_code == 502
    data = resp.json()
    assert data["status"] == "failed"
    assert data["error"]["code"] == "ALL_PROVIDERS_FAILED"
    assert data["failures"][0]["provider_id"] == "A"


def test_quota_exceeded(test_settings):
    settings = test_settings.model_copy(update={"search_quota_per_minute": 1})
    with _client(settings, FixtureAdapter("A", [{"id": "a1", "price": 100}])) as client:
        body = {**SEARCH_BODY, "user_id": "u1"}
        assert client.post("/api/search", json=body).status_code == 200
        other = {**body, "criteria": {**SEARCH_BODY["criteria"], "destination": "LON"}}
        resp = client.post("/api/search", json=other)
    assert resp.status_code == 429
    assert resp.json()["detail"]["code"] == "QUOTA_EXCEEDED"
    assert int(resp.headers["Retry-After"]) >= 1


def test_cancel_unknown_search(client):
    assert client.delete("/api/search/search_missing").status_code == 404


def test_cancel_running_search(test_settings):
    settings = test_settings.model_copy(update={"adapter_timeout_seconds": 5.0, "search_deadline_seconds": 10.0})
    body = {**SEARCH_BODY, "request_id": "search_http"}

    with _client(settings, FixtureAdapter("A", hang=True)) as client, ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(client.post, "/api/search", json=body)
        for _ in range(500):
            cancel = client.delete("/api/search/search_http")
            if cancel.status_code == 200:
                break
            time.sleep(0.01)
        else:
            pytest.fail("search_http never became cancellable")
        resp = pending.result(timeout=5)

    assert cancel.json() == {"cancelled": True}
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "cancelled"
    assert data["request_id"] == "search_http"
    assert data["failures"][0]["code"] == "SEARCH_CANCELLED"


def test_request_id_in_use_is_conflict(test_settings):
    settings = test_settings.model_copy(update={"adapter_timeout_seconds": 5.0, "search_deadline_seconds": 10.0})
    body = {**SEARCH_BODY, "request_id": "search_twice"}

    with _client(settings, FixtureAdapter("A", hang=True)) as client, ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(client.post, "/api/search", json=body)
        while client.get("/api/health").json()["active_searches"] == 0:
            time.sleep(0.01)
        conflict = client.post("/api/search", json=body)
        client.delete("/api/search/search_twice")
        first = pending.result(timeout=5)

    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "SEARCH_ALREADY_RUNNING"
    assert first.json()["status"] == "cancelled"


def test_providers_hide_credentials(client):
    data = client.get("/api/providers").json()
    assert data["count"] == 2
    assert all("auth" not in p and p["auth_type"] == "none" for p in data["providers"])


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"

    client.post("/api/search", json=SEARCH_BODY)
    providers = client.get("/api/health").json()["providers"]
    assert {p["id"]: p["status"] for p in providers} == {"A": "operational", "B": "operational"}


def test_price_alert_lifecycle(client):
    resp = client.post("/api/price-alerts", json={
        "user_id": "u1", "item_id": "hotel-paris", "target_price": 95, "currency": "USD",
    })
    assert resp.status_code == 200
    alert_id = resp.json()["alert_id"]

    listed = client.get("/api/price-alerts", params={"user_id": "u1"}).json()
    assert listed["count"] == 1

    client.post("/api/search", json=SEARCH_BODY)
    notifications = client.get("/api/alerts", params={"user_id": "u1"}).json()
    assert notifications["count"] == 1
    assert notifications["alerts"][0]["alert_id"] == alert_id

    # Fired alerts are no longer active
    assert client.delete(f"/api/price-alerts/{alert_id}", params={"user_id": "u1"}).status_code == 404


def test_delete_price_alert(client):
    alert_id = client.post("/api/price-alerts", json={
        "user_id": "u1", "item_id": "hotel-paris", "target_price": 50,
    }).json()["alert_id"]

    resp = client.delete(f"/api/price-alerts/{alert_id}", params={"user_id": "u1"})
    assert resp.json() == {"deleted": True}
    assert client.get("/api/price-alerts", params={"user_id": "u1"}).json()["count"] == 0


def test_percentage_alert_requires_value(client):
    resp = client.post("/api/price-alerts", json={
        "user_id": "u1", "item_id": "hotel-paris", "target_price": 100, "condition": "drops_by",
    })
    assert resp.status_code == 422


def test_price_history(client):
    assert client.get("/api/price-history/hotel-paris").status_code == 404

    client.post("/api/search", json=SEARCH_BODY)
    data = client.get("/api/price-history/hotel-paris").json()
    assert data["item_type"] == "hotel"
    assert data["statistics"]["sample_size"] == 3
    assert data["statistics"]["min_price"] == 90


def test_booking_confirmation(client):
    results = client.post("/api/search", json=SEARCH_BODY).json()["results"]
    resp = client.post("/api/bookings/confirm", json={
        "quote_ids": [results[0]["id"]],
        "traveler_details": {"name": "Ada Lovelace"},
        "payment_token": "tok_1",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "pending"
    assert data["total_price"]["amount"] == 90
    assert data["reference_number"].startswith("TR")


def test_booking_stale_quote_conflict(client):
    resp = client.post("/api/bookings/confirm", json={"quote_ids": ["A_gone"], "payment_token": "tok_1"})
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["code"] == "QUOTE_EXPIRED"
    assert detail["quote_ids"] == ["A_gone"]


def test_scheduler_runs_maintenance_and_watch_refresh(test_settings):
    settings = test_settings.model_copy(update={"scheduler_enabled": True, "watch_refresh_interval_minutes": 15})
    app = create_app(settings=settings, engine=build_engine(settings, registry=make_registry(FixtureAdapter("A"))))

    with TestClient(app):
        jobs = {job.id: job for job in app.state.scheduler.get_jobs()}

    assert set(jobs) == {"maintenance", "watch_refresh"}
    assert jobs["watch_refresh"].trigger.interval == timedelta(minutes=15)
