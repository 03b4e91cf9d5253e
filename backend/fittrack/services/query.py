# fittrack/services/query.py
# Request query string -> store Query (filter + sort + page window).
# Pure: no store access. Every bad parameter is collected, then raised together.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import ObjectId

from fittrack.core.clock import as_utc
from fittrack.core.errors import FieldError, InvalidParameter, field_error
from fittrack.db.models.user import ACTIVITY_LEVELS, FITNESS_GOALS
from fittrack.db.models.workout import EXERCISE_TYPES, INTENSITIES
from fittrack.db.store import ASC, DESC, Query, SortSpec

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# keeps (page - 1) * limit inside a signed 64-bit skip
MAX_PAGE = 2**63 // MAX_LIMIT

ORDERS = {"asc": ASC, "1": ASC, "desc": DESC, "-1": DESC}
BOOLEANS = {"true": True, "1": True, "false": False, "0": False}

USER_SORT_FIELDS = (
    "name", "email", "age", "weight", "height", "fitnessGoal", "activityLevel",
    "isActive", "profileCompletion", "createdAt", "updatedAt",
)
WORKOUT_SORT_FIELDS = (
    "title", "exerciseType", "duration", "caloriesBurned", "intensity",
    "workoutDate", "completed", "createdAt", "updatedAt",
)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ListQuery:
    page: int
    limit: int
    query: Query

    @property
    def filter(self) -> Dict[str, Any]:
        # count() uses the filter alone, without the page window
        return self.query.filter


def _raw(params: Mapping[str, Any], name: str) -> Optional[str]:
    v = params.get(name)
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _int_param(params, name: str, default: int, lo: int, hi: Optional[int], message: str, errors: List[FieldError]) -> int:
    raw = _raw(params, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append(field_error(name, message, raw))
        return default
    if value < lo or (hi is not None and value > hi):
        errors.append(field_error(name, message, raw))
        return default
    return value


def _bool_param(params, name: str, errors: List[FieldError]) -> Optional[bool]:
    raw = _raw(params, name)
    if raw is None:
        return None
    value = BOOLEANS.get(raw.lower())
    if value is None:
        errors.append(field_error(name, f"{name} must be true or false", raw))
    return value


def _choice_param(params, name: str, choices: Sequence[str], errors: List[FieldError]) -> Optional[str]:
    raw = _raw(params, name)
    if raw is None:
        return None
    if raw not in choices:
        errors.append(field_error(name, f"{name} must be one of: {', '.join(choices)}", raw))
        return None
    return raw


def _date_param(params, name: str, errors: List[FieldError], end_of_day: bool = False) -> Optional[datetime]:
    raw = _raw(params, name)
    if raw is None:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        errors.append(field_error(name, f"{name} must be an ISO-8601 date", raw))
        return None
    if end_of_day and _DATE_ONLY.match(raw):
        # a bare end date covers the whole day
        value = datetime.combine(value.date(), time.max)
    return as_utc(value)


def parse_pagination(params: Mapping[str, Any], errors: List[FieldError]) -> tuple[int, int]:
    page = _int_param(params, "page", DEFAULT_PAGE, 1, MAX_PAGE, "Page must be a positive integer", errors)
    limit = _int_param(
        params, "limit", DEFAULT_LIMIT, 1, MAX_LIMIT,
        f"Limit must be a positive integer between 1 and {MAX_LIMIT}", errors,
    )
    return page, limit


def parse_sort(
    params: Mapping[str, Any],
    allowed: Sequence[str],
    default: SortSpec,
    errors: List[FieldError],
) -> SortSpec:
    field_name = _raw(params, "sort")
    order_raw = _raw(params, "order")

    direction: Optional[int] = None
    if order_raw is not None:
        direction = ORDERS.get(order_raw.lower())
        if direction is None:
            errors.append(field_error("order", 'Order must be "asc", "desc", "1", or "-1"', order_raw))

    if field_name is None:
        sort = [(f, direction if direction is not None else d) for f, d in default]
    elif field_name not in allowed:
        errors.append(field_error("sort", f"sort must be one of: {', '.join(allowed)}", field_name))
        sort = list(default)
    else:
        sort = [(field_name, direction if direction is not None else ASC)]

    # _id keeps page boundaries stable when the sort key ties
    return sort + [("_id", sort[0][1])]


def _window(page: int, limit: int, flt: Dict[str, Any], sort: SortSpec) -> ListQuery:
    return ListQuery(page=page, limit=limit, query=Query(filter=flt, sort=sort, skip=(page - 1) * limit, limit=limit))


def build_user_query(params: Mapping[str, Any]) -> ListQuery:
    errors: List[FieldError] = []
    flt: Dict[str, Any] = {}

    goal = _choice_param(params, "fitnessGoal", FITNESS_GOALS, errors)
    if goal:
        flt["fitnessGoal"] = goal

    level = _choice_param(params, "activityLevel", ACTIVITY_LEVELS, errors)
    if level:
        flt["activityLevel"] = level

    active = _bool_param(params, "isActive", errors)
    if active is not None:
        flt["isActive"] = active

    search = _raw(params, "search")
    if search:
        rx = re.compile(re.escape(search), re.IGNORECASE)
        flt["$or"] = [{"name": rx}, {"email": rx}]

    page, limit = parse_pagination(params, errors)
    sort = parse_sort(params, USER_SORT_FIELDS, [("createdAt", DESC)], errors)

    if errors:
        raise InvalidParameter(errors)
    return _window(page, limit, flt, sort)


def build_workout_query(params: Mapping[str, Any]) -> ListQuery:
    errors: List[FieldError] = []
    flt: Dict[str, Any] = {}

    user_id = _raw(params, "userId")
    if user_id:
        if ObjectId.is_valid(user_id):
            flt["userId"] = ObjectId(user_id)
        else:
            errors.append(field_error("userId", "Invalid User ID format", user_id))

    exercise_type = _choice_param(params, "exerciseType", EXERCISE_TYPES, errors)
    if exercise_type:
        flt["exerciseType"] = exercise_type

    intensity = _choice_param(params, "intensity", INTENSITIES, errors)
    if intensity:
        flt["intensity"] = intensity

    completed = _bool_param(params, "completed", errors)
    if completed is not None:
        flt["completed"] = completed

    start = _date_param(params, "startDate", errors)
    end = _date_param(params, "endDate", errors, end_of_day=True)
    if start and end and start > end:
        errors.append(field_error("endDate", "endDate must not be before startDate", _raw(params, "endDate")))
    elif start or end:
        rng: Dict[str, Any] = {}
        if start:
            rng["$gte"] = start
        if end:
            rng["$lte"] = end
        flt["workoutDate"] = rng

    page, limit = parse_pagination(params, errors)
    sort = parse_sort(params, WORKOUT_SORT_FIELDS, [("workoutDate", DESC)], errors)

    if errors:
        raise InvalidParameter(errors)
    return _window(page, limit, flt, sort)


def recent_window(now: datetime, days: int) -> Dict[str, Any]:
    """Rolling window [now - days, now] on workoutDate."""
    return {"$gte": now - timedelta(days=days), "$lte": now}
