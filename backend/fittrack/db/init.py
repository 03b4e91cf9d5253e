# fittrack/db/init.py
# Store connection utils (motor, opened in on_event startup)
# init_store/close_db: create/tear down the process-wide store at startup/shutdown
# get_store: runtime handle (FastAPI dependency)

from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from fittrack.core.config import settings
from fittrack.db.memory import MemoryStore
from fittrack.db.store import USERS, EntityStore, MongoStore

log = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None
_store: EntityStore | None = None


async def init_db() -> AsyncIOMotorDatabase:
    # called once at startup; builds the global connection
    global _client, _db
    if _db is not None:
        return _db

    _client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    _db = _client[settings.MONGODB_DB]

    # raises if the server is not ready yet
    await _db.command("ping")
    return _db


def get_db() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB is not initialized yet.")
    return _db


async def init_store(backend: Optional[str] = None) -> EntityStore:
    global _store
    if _store is not None:
        return _store

    backend = backend or settings.STORE_BACKEND
    if backend == "memory":
        _store = MemoryStore(unique={USERS: ("email", "githubId")})
        log.info("using in-memory store")
    else:
        _store = MongoStore(await init_db())
        log.info("using mongo store db=%s", settings.MONGODB_DB)
    return _store


def get_store() -> EntityStore:
    if _store is None:
        raise RuntimeError("Entity store is not initialized yet.")
    return _store


async def close_db() -> None:
    # close the connection on shutdown
    global _client, _db, _store
    if _client:
        _client.close()
    _client = None
    _db = None
    _store = None
