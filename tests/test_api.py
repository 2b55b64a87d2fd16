"""Tests for the HTTP surface."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from salon_dialog.main import create_app

from tests.conftest import make_slot


@pytest.fixture
def client(router):
    with TestClient(create_app(router)) as test_client:
        yield test_client


def test_webhook_text(client, source):
    source.slots = [make_slot(date(2026, 10, 22), "13:00")]
    response = client.post(
        "/webhook",
        json={"salon_id": "salon-1", "customer_id": "+15550001", "text": "Haircut tomorrow at 3pm"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message_key"] == "SLOT_TAKEN"
    assert body["kind"] == "quick_reply"
    assert [o["id"] for o in body["options"]] == ["same_day_diff_time", "diff_day_same_time", "popular_times"]
    assert response.headers["X-Request-ID"]


def test_webhook_keeps_request_id(client):
    response = client.post(
        "/webhook",
        json={"salon_id": "salon-1", "customer_id": "+15550001", "button_id": "confirm"},
        headers={"X-Request-ID": "abc123"},
    )
    assert response.json()["message_key"] == "SESSION_EXPIRED"
    assert response.headers["X-Request-ID"] == "abc123"


def test_webhook_rejects_ambiguous_event(client):
    response = client.post(
        "/webhook",
        json={"salon_id": "salon-1", "customer_id": "+15550001", "text": "hi", "button_id": "confirm"},
    )
    assert response.status_code == 422


def test_booking_created_invalidates_cache(client, analyzer):
    client.portal.call(analyzer.analyze, "salon-1")
    response = client.post("/salons/salon-1/bookings/created")

    assert response.json() == {"status": "ok", "salon_id": "salon-1", "invalidated_entries": 1}


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["checks"]["redis"] == "connected"
    assert body["config"]["session_ttl_seconds"] == 1800


def test_health_reports_breakers(client, source):
    source.fail.add("get_available_slots")
    client.post(
        "/webhook",
        json={"salon_id": "salon-1", "customer_id": "+15550001", "text": "Haircut tomorrow at 3pm"},
    )
    breakers = client.get("/health").json()["checks"]["circuit_breakers"]
    assert breakers["slot_search"]["failures"] == 1
    assert breakers["slot_search"]["state"] == "closed"
