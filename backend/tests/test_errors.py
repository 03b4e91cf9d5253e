# backend/tests/test_errors.py
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from conftest import make_user
from fittrack.core.config import settings
from fittrack.main import app


@pytest.fixture
def lenient_client(client):
    # 500s come back as responses instead of being re-raised into the test
    return TestClient(app, raise_server_exceptions=False)


def test_unknown_route(client):
    res = client.get("/api/v1/nothing-here")

    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Cannot GET /api/v1/nothing-here - Route not found"
    assert body["timestamp"].endswith("Z")


def test_store_duplicate_key_becomes_conflict(auth_client, store, monkeypatch):
    # the pre-insert check loses the race; the unique constraint still holds
    make_user(store, email="dup@example.com")
    monkeypatch.setattr("fittrack.services.users._email_taken", AsyncMock(return_value=False))

    res = auth_client.post("/api/v1/users", json={"name": "Dup", "email": "dup@example.com"})

    assert res.status_code == 409
    body = res.json()
    assert body["message"] == "A record with email 'dup@example.com' already exists. Please use a different email."
    assert body["errors"][0]["field"] == "email"


def test_internal_error_detail_outside_production(lenient_client, store, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    store.aggregate = AsyncMock(side_effect=PyMongoError("socket closed"))

    res = lenient_client.get("/api/v1/workouts/stats")

    assert res.status_code == 500
    assert res.json()["message"] == "Failed to calculate workout statistics"


def test_internal_error_hidden_in_production(lenient_client, store, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    store.aggregate = AsyncMock(side_effect=PyMongoError("socket closed"))

    res = lenient_client.get("/api/v1/workouts/stats")

    assert res.status_code == 500
    assert res.json()["message"] == "Internal Server Error"


def test_unexpected_exception(lenient_client, store, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    store.find = AsyncMock(side_effect=RuntimeError("boom"))

    res = lenient_client.get("/api/v1/users")

    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "RuntimeError: boom"


def test_unexpected_exception_in_production(lenient_client, store, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    store.find = AsyncMock(side_effect=RuntimeError("boom"))

    res = lenient_client.get("/api/v1/users")

    assert res.status_code == 500
    assert res.json()["message"] == "Internal Server Error"


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["endpoints"]["users"] == "/api/v1/users"
    assert body["version"] == "1.0.0"


def test_health_with_memory_store():
    with TestClient(app) as c:
        body = c.get("/health").json()

    assert body["success"] is True
    assert body["store"] == "ok"
    assert body["environment"] == settings.ENVIRONMENT
