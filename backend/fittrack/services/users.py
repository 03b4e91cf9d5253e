# fittrack/services/users.py
# User CRUD. All checks run before the write they guard.
#
# Email uniqueness is check-then-create: two concurrent creates with the same
# email can both pass the check. The unique index on users.email (db/indexes.py)
# is what finally rejects the second insert; its DuplicateKeyError becomes a 409.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bson import ObjectId

from fittrack.core.clock import Clock, utcnow
from fittrack.core.errors import Conflict, NotFound, ValidationError, field_error
from fittrack.db.models.user import DEFAULT_ACTIVITY_LEVEL, UserCreate, UserUpdate
from fittrack.db.store import USERS, WORKOUTS, EntityStore
from fittrack.services.metrics import profile_completion
from fittrack.services.query import ListQuery, build_user_query

log = logging.getLogger(__name__)

NAME_MAX = 50


async def _email_taken(store: EntityStore, email: str) -> bool:
    return await store.find_one(USERS, {"email": email}) is not None


async def create_user(store: EntityStore, payload: UserCreate, clock: Clock = utcnow) -> Dict[str, Any]:
    if await _email_taken(store, payload.email):
        log.warning("user create rejected, email exists: %s", payload.email)
        raise Conflict(
            "User with this email already exists",
            errors=[field_error("email", "Email already exists", payload.email)],
        )

    now = clock()
    doc = payload.model_dump(exclude_none=True)
    doc.update(isActive=True, createdAt=now, updatedAt=now)
    doc["profileCompletion"] = profile_completion(doc)

    user = await store.create(USERS, doc)
    log.info("user created id=%s email=%s completion=%d", user["_id"], user["email"], user["profileCompletion"])
    return user


async def list_users(store: EntityStore, params: Mapping[str, Any]) -> Tuple[List[Dict[str, Any]], int, ListQuery]:
    lq = build_user_query(params)
    users, total = await asyncio.gather(
        store.find(USERS, lq.query),
        store.count(USERS, lq.filter),
    )
    log.info("users listed count=%d total=%d page=%d", len(users), total, lq.page)
    return users, total, lq


async def get_user(store: EntityStore, user_id: ObjectId) -> Dict[str, Any]:
    user = await store.find_by_id(USERS, user_id)
    if user is None:
        raise NotFound("User", str(user_id))
    return user


async def update_user(store: EntityStore, user_id: ObjectId, payload: UserUpdate, clock: Clock = utcnow) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError([field_error("body", "Please provide at least one field to update")])

    existing = await get_user(store, user_id)

    email = changes.get("email")
    if email and email != existing.get("email") and await _email_taken(store, email):
        log.warning("user update rejected, email exists: %s", email)
        raise Conflict("Email already exists", errors=[field_error("email", "Email already exists", email)])

    changes["profileCompletion"] = profile_completion({**existing, **changes})
    changes["updatedAt"] = clock()

    user = await store.update(USERS, user_id, changes)
    if user is None:
        raise NotFound("User", str(user_id))
    log.info("user updated id=%s fields=%s", user_id, sorted(changes))
    return user


async def delete_user(store: EntityStore, user_id: ObjectId) -> Dict[str, Any]:
    user = await get_user(store, user_id)

    workout_count = await store.count(WORKOUTS, {"userId": user_id})
    if workout_count > 0:
        log.warning("user delete blocked id=%s workouts=%d", user_id, workout_count)
        raise Conflict(
            f"Cannot delete user. User has {workout_count} workout(s). "
            "Please delete all workouts first or set user as inactive.",
            data={
                "workoutCount": workout_count,
                "suggestion": "Consider setting isActive to false instead of deleting",
            },
        )

    await store.delete(USERS, user_id)
    log.info("user deleted id=%s email=%s", user_id, user.get("email"))
    return user


async def find_or_create_github_user(store: EntityStore, identity: Mapping[str, Any], clock: Clock = utcnow) -> Dict[str, Any]:
    """
    Local user for a verified GitHub identity {id, displayName, email, username, avatarUrl}.
    Looked up by githubId; created on first login.
    """
    github_id = str(identity["id"])
    user = await store.find_one(USERS, {"githubId": github_id})
    if user is not None:
        log.info("existing github user id=%s", user["_id"])
        return user

    username: Optional[str] = identity.get("username")
    name = (identity.get("displayName") or username or "GitHub User").strip()[:NAME_MAX]
    if len(name) < 2:
        name = "GitHub User"
    email = (identity.get("email") or f"{username}@github.user").strip().lower()

    if await _email_taken(store, email):
        raise Conflict(
            "An account with this email already exists",
            errors=[field_error("email", "Email already exists", email)],
        )

    now = clock()
    doc: Dict[str, Any] = {
        "githubId": github_id,
        "name": name,
        "email": email,
        "activityLevel": DEFAULT_ACTIVITY_LEVEL,
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    if username:
        doc["username"] = username[:NAME_MAX]
    if identity.get("avatarUrl"):
        doc["avatarUrl"] = identity["avatarUrl"]
    doc["profileCompletion"] = profile_completion(doc)

    user = await store.create(USERS, doc)
    log.info("github user created id=%s githubId=%s", user["_id"], github_id)
    return user
