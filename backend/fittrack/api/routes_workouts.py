# fittrack/api/routes_workouts.py
# Workout endpoints + global stats.
# /stats and /user/{userId} are declared before /{id} so they are not read as ids.

from __future__ import annotations

from typing import Any, Dict

from bson import ObjectId
from fastapi import APIRouter, Depends, Request

from fittrack.core.clock import Clock
from fittrack.core.deps import get_clock, path_id, path_user_id, require_auth
from fittrack.core.responses import success
from fittrack.db.init import get_store
from fittrack.db.models.workout import WorkoutCreate, WorkoutUpdate
from fittrack.db.store import EntityStore
from fittrack.services import stats, workouts
from fittrack.services.metrics import user_summary, workout_view
from fittrack.services.pagination import paginate

router = APIRouter(prefix="/api/v1/workouts", tags=["workouts"])


@router.post("", status_code=201)
async def create_workout(
    payload: WorkoutCreate,
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    workout = await workouts.create_workout(store, payload, clock)
    return success(workout_view(workout), "Workout created successfully")


@router.get("")
async def list_workouts(request: Request, store: EntityStore = Depends(get_store)):
    """Filters: userId, exerciseType, intensity, completed, startDate, endDate."""
    data, total, lq = await workouts.list_workouts(store, request.query_params)
    return paginate(data, lq.page, lq.limit, total, "Workouts retrieved successfully")


@router.get("/stats")
async def get_workout_stats(store: EntityStore = Depends(get_store), clock: Clock = Depends(get_clock)):
    data = await stats.get_workout_stats(store, clock)
    return success(data, "Global workout statistics retrieved successfully")


@router.get("/user/{userId}")
async def get_user_workouts(user_id: ObjectId = Depends(path_user_id), store: EntityStore = Depends(get_store)):
    user, docs = await workouts.workouts_for_user(store, user_id)
    data = {
        "user": user_summary(user),
        "count": len(docs),
        "workouts": [workout_view(w) for w in docs],
    }
    return success(data, "User workouts retrieved successfully")


@router.get("/{id}")
async def get_workout(workout_id: ObjectId = Depends(path_id), store: EntityStore = Depends(get_store)):
    data = await workouts.get_workout_detail(store, workout_id)
    return success(data, "Workout retrieved successfully")


@router.put("/{id}")
async def update_workout(
    payload: WorkoutUpdate,
    workout_id: ObjectId = Depends(path_id),
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    workout = await workouts.update_workout(store, workout_id, payload, clock)
    return success(workout_view(workout), "Workout updated successfully")


@router.delete("/{id}")
async def delete_workout(
    workout_id: ObjectId = Depends(path_id),
    store: EntityStore = Depends(get_store),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    workout = await workouts.delete_workout(store, workout_id)
    return success({"deletedWorkout": workouts.deleted_summary(workout)}, "Workout deleted successfully")
