# backend/tests/conftest.py
"""
Shared fixtures.

Every test gets a fresh MemoryStore and a fixed clock. The app is driven through
TestClient without a `with` block, so startup never connects to MongoDB; the
store, clock and logged-in user come in through app.dependency_overrides.
"""
import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from fittrack.core.deps import current_user, get_clock
from fittrack.db.init import get_store
from fittrack.db.memory import MemoryStore
from fittrack.db.store import USERS, WORKOUTS
from fittrack.main import app
from fittrack.services.metrics import profile_completion

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

AUTH_USER = {
    "_id": ObjectId(),
    "name": "Session User",
    "email": "session@example.com",
    "username": "session-user",
    "profileCompletion": 29,
}


def fixed_clock():
    return NOW


def run(coro):
    return asyncio.run(coro)


def make_user(store, **fields):
    doc = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "activityLevel": "moderately_active",
        "isActive": True,
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    doc.update(fields)
    doc["profileCompletion"] = profile_completion(doc)
    return run(store.create(USERS, doc))


def make_workout(store, user, days_ago=1, **fields):
    doc = {
        "userId": user["_id"],
        "title": "Morning Run",
        "exerciseType": "running",
        "duration": 30,
        "caloriesBurned": 300,
        "intensity": "moderate",
        "completed": True,
        "exercises": [],
        "workoutDate": NOW - timedelta(days=days_ago),
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    doc.update(fields)
    return run(store.create(WORKOUTS, doc))


@pytest.fixture
def store():
    return MemoryStore(unique={USERS: ("email", "githubId")})


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client):
    """Same client, with a logged-in session user."""
    app.dependency_overrides[current_user] = lambda: AUTH_USER
    return client
