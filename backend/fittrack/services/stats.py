# fittrack/services/stats.py
# Workout statistics: per user and global.
#
# Each number comes from its own store call, issued concurrently. Writes that
# land between those calls are visible to some of them and not others, so a
# result is best-effort and may not match any single database state. Nothing
# here writes; cancelling a call just drops the pending reads.

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from fittrack.core.clock import Clock, utcnow
from fittrack.core.errors import Internal, NotFound
from fittrack.db.store import ASC, DESC, USERS, WORKOUTS, EntityStore, Group, Query
from fittrack.services.metrics import round_half_up, user_metrics
from fittrack.services.query import recent_window

log = logging.getLogger(__name__)

RECENT_LIMIT = 5
TOP_USERS_LIMIT = 5


def _avg(total: float, count: int) -> int:
    return round_half_up(total / count) if count else 0


def _round1(value: Optional[float]) -> float:
    return round_half_up(value, 1) if value is not None else 0


def consistency_label(workouts_last_7_days: int) -> str:
    if workouts_last_7_days >= 3:
        return "High"
    if workouts_last_7_days >= 1:
        return "Moderate"
    return "Low"


async def _user_reads(store: EntityStore, user_id: ObjectId, now: datetime):
    completed = {"userId": user_id, "completed": True}
    return await asyncio.gather(
        store.aggregate(WORKOUTS, Group(
            key=None,
            match=completed,
            reducers={
                "totalWorkouts": ("count", None),
                "totalCalories": ("sum", "caloriesBurned"),
                "totalDuration": ("sum", "duration"),
            },
        )),
        store.find(WORKOUTS, Query(
            filter={"userId": user_id},
            sort=[("workoutDate", DESC), ("_id", DESC)],
            limit=RECENT_LIMIT,
        )),
        store.count(WORKOUTS, {**completed, "workoutDate": recent_window(now, 7)}),
        store.count(WORKOUTS, {**completed, "workoutDate": recent_window(now, 30)}),
    )


async def get_user_stats(store: EntityStore, user_id: ObjectId, clock: Clock = utcnow) -> Dict[str, Any]:
    user = await store.find_by_id(USERS, user_id)
    if user is None:
        raise NotFound("User", str(user_id))

    try:
        totals_rows, recent, this_week, this_month = await _user_reads(store, user_id, clock())
    except PyMongoError:
        log.exception("user stats failed user=%s", user_id)
        raise Internal("Failed to calculate user statistics")

    totals = totals_rows[0] if totals_rows else {}
    total_workouts = totals.get("totalWorkouts", 0)
    total_calories = totals.get("totalCalories", 0)
    total_duration = totals.get("totalDuration", 0)

    stats = {
        "user": {
            "id": str(user["_id"]),
            "name": user.get("name"),
            "email": user.get("email"),
            "profileCompletion": user.get("profileCompletion", 0),
            **user_metrics(user),
            "fitnessGoal": user.get("fitnessGoal"),
            "activityLevel": user.get("activityLevel"),
        },
        "workouts": {
            "total": total_workouts,
            "thisWeek": this_week,
            "thisMonth": this_month,
            "avgPerWeek": round_half_up(this_month / 4, 1),
        },
        "calories": {
            "totalBurned": total_calories,
            "avgPerWorkout": _avg(total_calories, total_workouts),
        },
        "time": {
            "totalMinutes": total_duration,
            "totalHours": round_half_up(total_duration / 60, 1),
            "avgPerWorkout": _avg(total_duration, total_workouts),
        },
        "recent": {
            "lastWorkouts": [
                {
                    "id": str(w["_id"]),
                    "title": w.get("title"),
                    "exerciseType": w.get("exerciseType"),
                    "duration": w.get("duration"),
                    "caloriesBurned": w.get("caloriesBurned"),
                    "workoutDate": w.get("workoutDate"),
                }
                for w in recent
            ],
        },
        "achievements": {
            "consistency": consistency_label(this_week),
            "totalCaloriesMilestone": int(total_calories // 1000) * 1000,
            "totalWorkoutsMilestone": int(total_workouts // 10) * 10,
        },
    }

    log.info("user stats computed user=%s workouts=%d calories=%s", user_id, total_workouts, total_calories)
    return stats


async def _most_active_users(store: EntityStore) -> List[Dict[str, Any]]:
    # ties on workoutCount go to the lower user id, i.e. the earlier-created user
    rows = await store.aggregate(WORKOUTS, Group(
        key="userId",
        match={"completed": True},
        reducers={
            "workoutCount": ("count", None),
            "totalCalories": ("sum", "caloriesBurned"),
            "totalDuration": ("sum", "duration"),
        },
        sort=[("workoutCount", DESC), ("_id", ASC)],
        limit=TOP_USERS_LIMIT,
    ))
    if not rows:
        return []

    users = await store.find(USERS, Query(filter={"_id": {"$in": [r["_id"] for r in rows]}}))
    by_id = {u["_id"]: u for u in users}

    out: List[Dict[str, Any]] = []
    for r in rows:
        user = by_id.get(r["_id"])
        if user is None:
            # owner deleted: dropped, like an inner join
            continue
        out.append({
            "userId": str(r["_id"]),
            "name": user.get("name"),
            "email": user.get("email"),
            "workoutCount": r["workoutCount"],
            "totalCalories": r["totalCalories"],
            "totalDuration": r["totalDuration"],
        })
    return out


def _group_rows(rows: List[Dict[str, Any]], key_name: str, with_total: bool) -> List[Dict[str, Any]]:
    out = []
    for r in rows:
        item = {key_name: r["_id"], "count": r["count"]}
        if with_total:
            item["totalCalories"] = r["totalCalories"]
        item["avgCalories"] = _round1(r.get("avgCalories"))
        item["avgDuration"] = _round1(r.get("avgDuration"))
        out.append(item)
    return out


async def _global_reads(store: EntityStore):
    done = {"completed": True}
    return await asyncio.gather(
        store.aggregate(WORKOUTS, Group(
            key=None,
            reducers={
                "totalWorkouts": ("count", None),
                "completedWorkouts": ("count_if", "completed"),
                "totalCalories": ("sum", "caloriesBurned"),
                "totalDuration": ("sum", "duration"),
                "avgDuration": ("avg", "duration"),
                "avgCalories": ("avg", "caloriesBurned"),
            },
        )),
        store.aggregate(WORKOUTS, Group(
            key="exerciseType",
            match=done,
            reducers={
                "count": ("count", None),
                "totalCalories": ("sum", "caloriesBurned"),
                "avgCalories": ("avg", "caloriesBurned"),
                "avgDuration": ("avg", "duration"),
            },
            sort=[("count", DESC), ("_id", ASC)],
        )),
        store.aggregate(WORKOUTS, Group(
            key="intensity",
            match=done,
            reducers={
                "count": ("count", None),
                "avgCalories": ("avg", "caloriesBurned"),
                "avgDuration": ("avg", "duration"),
            },
            sort=[("count", DESC), ("_id", ASC)],
        )),
        store.count(USERS, {"isActive": True}),
        _most_active_users(store),
    )


async def get_workout_stats(store: EntityStore, clock: Clock = utcnow) -> Dict[str, Any]:
    try:
        overall_rows, by_type, by_intensity, active_users, most_active = await _global_reads(store)
    except PyMongoError:
        log.exception("global workout stats failed")
        raise Internal("Failed to calculate workout statistics")

    overall = overall_rows[0] if overall_rows else {}
    total = overall.get("totalWorkouts", 0)
    completed = overall.get("completedWorkouts", 0)

    stats = {
        "overall": {
            "totalWorkouts": total,
            "completedWorkouts": completed,
            "totalUsers": active_users,
            "totalCalories": overall.get("totalCalories", 0),
            "totalDuration": overall.get("totalDuration", 0),
            "avgDuration": round_half_up(overall.get("avgDuration") or 0),
            "avgCalories": round_half_up(overall.get("avgCalories") or 0),
            "completionRate": round_half_up(completed / total * 100) if total else 0,
        },
        "byExerciseType": _group_rows(by_type, "exerciseType", with_total=True),
        "byIntensity": _group_rows(by_intensity, "intensity", with_total=False),
        "mostActiveUsers": most_active,
        "generatedAt": clock(),
    }

    log.info("global workout stats computed total=%d users=%d", total, active_users)
    return stats
