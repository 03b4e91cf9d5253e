# fittrack/core/deps.py
# Shared dependencies (store/clock handles, path id parsing, session user)

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends, Request

from fittrack.core.clock import Clock, utcnow
from fittrack.core.errors import Unauthenticated, ValidationError, field_error
from fittrack.db.init import get_store
from fittrack.db.store import USERS, EntityStore

log = logging.getLogger(__name__)

SESSION_KEY = "user_id"
LOGIN_URL = "/auth/github"


def get_clock() -> Clock:
    # overridden in tests with a fixed clock
    return utcnow


def parse_object_id(value: str, field: str = "id") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValidationError([field_error(field, f"Invalid {field} format", value)])
    return ObjectId(value)


def path_id(id: str) -> ObjectId:
    return parse_object_id(id)


def path_user_id(userId: str) -> ObjectId:
    return parse_object_id(userId, "userId")


async def current_user(request: Request, store: EntityStore = Depends(get_store)) -> Optional[Dict[str, Any]]:
    raw = request.session.get(SESSION_KEY)
    if not raw or not ObjectId.is_valid(raw):
        return None
    user = await store.find_by_id(USERS, ObjectId(raw))
    if user is None:
        # account deleted while the session was alive
        request.session.pop(SESSION_KEY, None)
    return user


async def require_auth(user: Optional[Dict[str, Any]] = Depends(current_user)) -> Dict[str, Any]:
    if user is None:
        raise Unauthenticated(login_url=LOGIN_URL)
    return user
