# fittrack/services/workouts.py
# Workout CRUD. Owner existence and date checks happen before any write.

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bson import ObjectId

from fittrack.core.clock import Clock, as_utc, utcnow
from fittrack.core.errors import NotFound, ValidationError, field_error
from fittrack.db.models.workout import WorkoutCreate, WorkoutUpdate
from fittrack.db.store import DESC, USERS, WORKOUTS, EntityStore, Query
from fittrack.services.metrics import user_summary, workout_view
from fittrack.services.query import ListQuery, build_workout_query

log = logging.getLogger(__name__)


def _checked_date(value: datetime, now: datetime) -> datetime:
    value = as_utc(value)
    if value > now:
        raise ValidationError(
            [field_error("workoutDate", "Workout date cannot be in the future", value.isoformat())],
            message="Workout validation failed",
        )
    return value


async def _require_user(store: EntityStore, user_id: ObjectId, message: str) -> Dict[str, Any]:
    user = await store.find_by_id(USERS, user_id)
    if user is None:
        log.warning("workout owner not found user=%s", user_id)
        raise NotFound("User", str(user_id), message=message)
    return user


async def _owners(store: EntityStore, workouts: List[Dict[str, Any]], *fields: str) -> Dict[ObjectId, Dict[str, Any]]:
    ids = list({w["userId"] for w in workouts})
    if not ids:
        return {}
    users = await store.find(USERS, Query(filter={"_id": {"$in": ids}}))
    return {u["_id"]: user_summary(u, *fields) for u in users}


async def create_workout(store: EntityStore, payload: WorkoutCreate, clock: Clock = utcnow) -> Dict[str, Any]:
    now = clock()
    workout_date = _checked_date(payload.workoutDate, now) if payload.workoutDate else now

    user_id = ObjectId(payload.userId)
    await _require_user(store, user_id, "User not found. Cannot create workout for non-existent user.")

    doc = payload.model_dump(exclude_none=True)
    doc.update(userId=user_id, workoutDate=workout_date, createdAt=now, updatedAt=now)

    workout = await store.create(WORKOUTS, doc)
    log.info("workout created id=%s user=%s title=%s", workout["_id"], user_id, workout["title"])
    return workout


async def list_workouts(store: EntityStore, params: Mapping[str, Any]) -> Tuple[List[Dict[str, Any]], int, ListQuery]:
    lq = build_workout_query(params)
    workouts, total = await asyncio.gather(
        store.find(WORKOUTS, lq.query),
        store.count(WORKOUTS, lq.filter),
    )
    owners = await _owners(store, workouts)
    data = [workout_view(w, owners.get(w["userId"])) for w in workouts]
    log.info("workouts listed count=%d total=%d page=%d", len(data), total, lq.page)
    return data, total, lq


async def get_workout(store: EntityStore, workout_id: ObjectId) -> Dict[str, Any]:
    workout = await store.find_by_id(WORKOUTS, workout_id)
    if workout is None:
        raise NotFound("Workout", str(workout_id), message="Workout not found with the provided ID")
    return workout


async def get_workout_detail(store: EntityStore, workout_id: ObjectId) -> Dict[str, Any]:
    workout = await get_workout(store, workout_id)
    owners = await _owners(store, [workout], "name", "email", "age", "weight", "height")
    return workout_view(workout, owners.get(workout["userId"]))


async def update_workout(store: EntityStore, workout_id: ObjectId, payload: WorkoutUpdate, clock: Clock = utcnow) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError([field_error("body", "Please provide at least one field to update")])

    now = clock()
    if "workoutDate" in changes:
        changes["workoutDate"] = _checked_date(changes["workoutDate"], now)

    existing = await get_workout(store, workout_id)

    if "userId" in changes:
        new_owner = ObjectId(changes["userId"])
        if new_owner != existing["userId"]:
            await _require_user(store, new_owner, "User not found. Cannot assign workout to non-existent user.")
        changes["userId"] = new_owner

    if "exercises" in changes:
        changes["exercises"] = [e.model_dump(exclude_none=True) for e in payload.exercises or []]
    changes["updatedAt"] = now

    workout = await store.update(WORKOUTS, workout_id, changes)
    if workout is None:
        raise NotFound("Workout", str(workout_id), message="Workout not found with the provided ID")
    log.info("workout updated id=%s fields=%s", workout_id, sorted(changes))
    return workout


async def delete_workout(store: EntityStore, workout_id: ObjectId) -> Dict[str, Any]:
    workout = await store.delete(WORKOUTS, workout_id)
    if workout is None:
        raise NotFound("Workout", str(workout_id), message="Workout not found with the provided ID")
    log.info("workout deleted id=%s user=%s", workout_id, workout.get("userId"))
    return workout


async def workouts_for_user(store: EntityStore, user_id: ObjectId) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    user = await store.find_by_id(USERS, user_id)
    if user is None:
        raise NotFound("User", str(user_id), message="User not found with the provided ID")
    workouts = await store.find(WORKOUTS, Query(filter={"userId": user_id}, sort=[("workoutDate", DESC), ("_id", DESC)]))
    return user, workouts


def deleted_summary(workout: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    return {"id": str(workout["_id"]), "title": workout.get("title"), "userId": str(workout.get("userId"))}
