# fittrack/api/routes_users.py
# User endpoints. Reads are public; writes need a logged-in session.

from __future__ import annotations

from typing import Any, Dict

from bson import ObjectId
from fastapi import APIRouter, Depends, Request, Response

from fittrack.core.clock import Clock
from fittrack.core.deps import get_clock, path_id, require_auth
from fittrack.core.responses import success
from fittrack.db.init import get_store
from fittrack.db.models.user import UserCreate, UserUpdate
from fittrack.db.store import EntityStore
from fittrack.services import stats, users
from fittrack.services.metrics import user_view
from fittrack.services.pagination import paginate

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", status_code=201)
async def create_user(
    payload: UserCreate,
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    user = await users.create_user(store, payload, clock)
    return success(user_view(user), "User created successfully")


@router.get("")
async def list_users(request: Request, store: EntityStore = Depends(get_store)):
    """Filters: fitnessGoal, activityLevel, isActive, search. Plus page/limit/sort/order."""
    docs, total, lq = await users.list_users(store, request.query_params)
    return paginate([user_view(u) for u in docs], lq.page, lq.limit, total, "Users retrieved successfully")


@router.get("/{id}")
async def get_user(user_id: ObjectId = Depends(path_id), store: EntityStore = Depends(get_store)):
    user = await users.get_user(store, user_id)
    return success(user_view(user), "User retrieved successfully")


@router.get("/{id}/stats")
async def get_user_stats(
    user_id: ObjectId = Depends(path_id),
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    data = await stats.get_user_stats(store, user_id, clock)
    return success(data, "User statistics retrieved successfully")


@router.put("/{id}")
async def update_user(
    payload: UserUpdate,
    user_id: ObjectId = Depends(path_id),
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    user = await users.update_user(store, user_id, payload, clock)
    return success(user_view(user), "User updated successfully")


@router.delete("/{id}", status_code=204)
async def delete_user(
    user_id: ObjectId = Depends(path_id),
    store: EntityStore = Depends(get_store),
    _auth: Dict[str, Any] = Depends(require_auth),
):
    await users.delete_user(store, user_id)
    return Response(status_code=204)
