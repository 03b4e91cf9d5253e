# fittrack/db/indexes.py
# Collection indexes. Awaited once from app startup via ensure_indexes().

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from fittrack.db.store import USERS, WORKOUTS

log = logging.getLogger(__name__)

IndexKeys = List[Tuple[str, int]]


async def ensure_index(coll: AsyncIOMotorCollection, name: str, keys: IndexKeys, **options: Any) -> None:
    """
    Make sure index `name` exists with the wanted options.
    - already there with matching unique/sparse: leave it
    - options differ: drop and recreate
    """
    existing: Dict[str, Dict[str, Any]] = await coll.index_information()

    if name in existing:
        idx = existing[name]
        need_unique = bool(options.get("unique", False))
        need_sparse = options.get("sparse", None)

        unique_ok = bool(idx.get("unique", False)) == need_unique
        sparse_ok = (need_sparse is None) or (bool(idx.get("sparse", False)) == bool(need_sparse))

        if unique_ok and sparse_ok:
            return
        log.warning("index %s.%s has different options, recreating", coll.name, name)
        await coll.drop_index(name)

    await coll.create_index(keys, name=name, **options)


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    users = db[USERS]
    await ensure_index(users, "email_1", [("email", 1)], unique=True)
    await ensure_index(users, "githubId_1", [("githubId", 1)], unique=True, sparse=True)
    await ensure_index(users, "fitnessGoal_1_activityLevel_1", [("fitnessGoal", 1), ("activityLevel", 1)])
    await ensure_index(users, "isActive_1", [("isActive", 1)])

    workouts = db[WORKOUTS]
    await ensure_index(workouts, "userId_1_workoutDate_-1", [("userId", 1), ("workoutDate", -1)])
    await ensure_index(workouts, "workoutDate_-1", [("workoutDate", -1)])
