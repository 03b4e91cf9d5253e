# backend/tests/test_users_api.py
import pytest
from bson import ObjectId

from conftest import NOW, make_user, make_workout, run
from fittrack.db.store import USERS, WORKOUTS

NEW_USER = {
    "name": "  Jane Doe ",
    "email": "Jane.Doe@Example.com",
    "age": 30,
    "weight": 70,
    "height": 175,
}


class TestCreateUser:
    def test_requires_login(self, client, store):
        res = client.post("/api/v1/users", json=NEW_USER)

        assert res.status_code == 401
        body = res.json()
        assert body["success"] is False
        assert body["message"] == "User not authenticated"
        assert body["loginUrl"] == "/auth/github"
        assert run(store.count(USERS, {})) == 0

    def test_created(self, auth_client):
        res = auth_client.post("/api/v1/users", json=NEW_USER)

        assert res.status_code == 201
        body = res.json()
        assert body["message"] == "User created successfully"
        user = body["data"]
        assert user["name"] == "Jane Doe"
        assert user["email"] == "jane.doe@example.com"
        assert user["activityLevel"] == "moderately_active"
        assert user["isActive"] is True
        assert user["profileCompletion"] == 86
        assert user["bmi"] == 22.9
        assert user["bmiCategory"] == "Normal"
        assert user["dailyCalorieNeeds"] == 2556
        assert ObjectId.is_valid(user["id"])
        assert "timestamp" in body

    def test_duplicate_email(self, auth_client, store):
        make_user(store, email="jane.doe@example.com")

        res = auth_client.post("/api/v1/users", json=NEW_USER)

        assert res.status_code == 409
        assert res.json()["errors"][0]["field"] == "email"
        assert run(store.count(USERS, {})) == 1

    def test_validation_errors_listed_per_field(self, auth_client):
        res = auth_client.post("/api/v1/users", json={"name": "J", "email": "nope", "age": 9, "fitnessGoal": "fly"})

        assert res.status_code == 400
        body = res.json()
        assert body["message"] == "Validation failed"
        fields = {e["field"] for e in body["errors"]}
        assert fields == {"name", "email", "age", "fitnessGoal"}
        email_err = next(e for e in body["errors"] if e["field"] == "email")
        assert email_err["message"].startswith("value is not a valid email address")
        assert email_err["value"] == "nope"

    @pytest.mark.parametrize("email", ["jane..doe@example.com", "jane@", "@example.com", "jane doe@example.com"])
    def test_malformed_email_rejected(self, auth_client, store, email):
        res = auth_client.post("/api/v1/users", json={"name": "Jane Doe", "email": email})

        assert res.status_code == 400
        assert [e["field"] for e in res.json()["errors"]] == ["email"]
        assert run(store.count(USERS, {})) == 0


class TestReadUsers:
    def test_list_paginated(self, client, store):
        for i in range(12):
            make_user(store, name=f"User {i:02d}", email=f"user{i}@example.com")

        res = client.get("/api/v1/users", params={"page": 2, "limit": 5, "sort": "name", "order": "asc"})

        assert res.status_code == 200
        body = res.json()
        assert [u["name"] for u in body["data"]] == [f"User {i:02d}" for i in range(5, 10)]
        assert body["pagination"] == {
            "currentPage": 2,
            "itemsPerPage": 5,
            "totalItems": 12,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPrevPage": True,
            "nextPage": 3,
            "prevPage": 1,
        }

    def test_search_name_or_email(self, client, store):
        make_user(store, name="Jane Doe", email="jd@example.com")
        make_user(store, name="Bob", email="JANE.b@example.com")
        make_user(store, name="Carl", email="carl@example.com")

        res = client.get("/api/v1/users", params={"search": "jane"})

        assert sorted(u["name"] for u in res.json()["data"]) == ["Bob", "Jane Doe"]
        assert res.json()["pagination"]["totalItems"] == 2

    def test_filters(self, client, store):
        make_user(store, email="a@example.com", fitnessGoal="endurance", isActive=False)
        make_user(store, email="b@example.com", fitnessGoal="endurance")
        make_user(store, email="c@example.com", fitnessGoal="muscle_gain")

        res = client.get("/api/v1/users", params={"fitnessGoal": "endurance", "isActive": "true"})

        assert [u["email"] for u in res.json()["data"]] == ["b@example.com"]

    def test_empty_list(self, client):
        body = client.get("/api/v1/users").json()
        assert body["data"] == []
        assert body["pagination"]["totalPages"] == 0

    def test_bad_query_params(self, client):
        res = client.get("/api/v1/users", params={"page": 0, "limit": 101})

        assert res.status_code == 400
        body = res.json()
        assert body["message"] == "Invalid query parameters"
        assert {e["field"] for e in body["errors"]} == {"page", "limit"}

    def test_get_by_id(self, client, store):
        user = make_user(store, weight=70, height=175)

        res = client.get(f"/api/v1/users/{user['_id']}")

        assert res.status_code == 200
        assert res.json()["data"]["bmi"] == 22.9

    def test_unknown_id(self, client):
        oid = ObjectId()
        res = client.get(f"/api/v1/users/{oid}")

        assert res.status_code == 404
        assert res.json()["message"] == f"User with ID '{oid}' not found"

    def test_malformed_id(self, client):
        res = client.get("/api/v1/users/not-an-id")

        assert res.status_code == 400
        assert res.json()["errors"][0]["field"] == "id"

    def test_stats_endpoint(self, client, store):
        user = make_user(store)
        make_workout(store, user, caloriesBurned=300, duration=30)
        make_workout(store, user, caloriesBurned=250, duration=45)

        res = client.get(f"/api/v1/users/{user['_id']}/stats")

        assert res.status_code == 200
        data = res.json()["data"]
        assert data["workouts"]["total"] == 2
        assert data["calories"]["totalBurned"] == 550


class TestUpdateUser:
    def test_partial_merge(self, auth_client, store):
        user = make_user(store)

        res = auth_client.put(f"/api/v1/users/{user['_id']}", json={"age": 31, "weight": 80})

        assert res.status_code == 200
        data = res.json()["data"]
        assert data["name"] == "Jane Doe"
        assert data["age"] == 31
        assert data["weight"] == 80
        assert data["profileCompletion"] == 71

    def test_empty_body(self, auth_client, store):
        user = make_user(store)

        res = auth_client.put(f"/api/v1/users/{user['_id']}", json={})

        assert res.status_code == 400
        assert res.json()["errors"][0]["message"] == "Please provide at least one field to update"

    def test_email_taken(self, auth_client, store):
        make_user(store, email="taken@example.com")
        user = make_user(store, email="mine@example.com")

        res = auth_client.put(f"/api/v1/users/{user['_id']}", json={"email": "TAKEN@example.com"})

        assert res.status_code == 409
        assert run(store.find_by_id(USERS, user["_id"]))["email"] == "mine@example.com"

    def test_same_email_allowed(self, auth_client, store):
        user = make_user(store, email="mine@example.com")

        res = auth_client.put(f"/api/v1/users/{user['_id']}", json={"email": "mine@example.com", "name": "Janet"})

        assert res.status_code == 200
        assert res.json()["data"]["name"] == "Janet"

    def test_null_required_field(self, auth_client, store):
        user = make_user(store)

        res = auth_client.put(f"/api/v1/users/{user['_id']}", json={"name": None})

        assert res.status_code == 400

    def test_unknown_user(self, auth_client):
        res = auth_client.put(f"/api/v1/users/{ObjectId()}", json={"age": 40})
        assert res.status_code == 404

    def test_requires_login(self, client, store):
        user = make_user(store)
        assert client.put(f"/api/v1/users/{user['_id']}", json={"age": 40}).status_code == 401


class TestDeleteUser:
    def test_deleted(self, auth_client, store):
        user = make_user(store)

        res = auth_client.delete(f"/api/v1/users/{user['_id']}")

        assert res.status_code == 204
        assert run(store.find_by_id(USERS, user["_id"])) is None

    def test_blocked_while_workouts_exist(self, auth_client, store):
        user = make_user(store)
        make_workout(store, user)
        make_workout(store, user)

        res = auth_client.delete(f"/api/v1/users/{user['_id']}")

        assert res.status_code == 409
        body = res.json()
        assert body["message"].startswith("Cannot delete user. User has 2 workout(s).")
        assert body["data"] == {
            "workoutCount": 2,
            "suggestion": "Consider setting isActive to false instead of deleting",
        }
        assert run(store.find_by_id(USERS, user["_id"])) is not None
        assert run(store.count(WORKOUTS, {"userId": user["_id"]})) == 2

    def test_unknown_user(self, auth_client):
        assert auth_client.delete(f"/api/v1/users/{ObjectId()}").status_code == 404


def test_timestamps_set_from_clock(auth_client):
    res = auth_client.post("/api/v1/users", json=NEW_USER)
    assert res.json()["data"]["createdAt"] == NOW.isoformat()
