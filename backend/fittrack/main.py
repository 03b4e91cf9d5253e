# fittrack/main.py
# FastAPI app setup and router wiring
# Each router defines its own prefix; don't repeat prefixes here.

from __future__ import annotations

import logging
import time
from asyncio import sleep

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from fittrack.api.routes_auth import router as auth_router
from fittrack.api.routes_users import router as users_router
from fittrack.api.routes_workouts import router as workouts_router
from fittrack.core.config import settings
from fittrack.core.logging import setup_logging
from fittrack.core.rate_limit import RateLimitMiddleware
from fittrack.core.responses import install_error_handlers, success
from fittrack.db.indexes import ensure_indexes
from fittrack.db.init import close_db, get_db, get_store, init_store

setup_logging(settings.LOG_LEVEL)
log = logging.getLogger(__name__)

VERSION = "1.0.0"
STARTED_AT = time.monotonic()

app = FastAPI(title="FitTrack - API", version=VERSION)

# added first so CORS headers still wrap its 429s
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.RATE_LIMIT_MAX,
        window=settings.RATE_LIMIT_WINDOW_SECONDS,
    )

# session cookie carries the logged-in user id (needed by the OAuth handshake too)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    same_site="lax",
    https_only=settings.is_production,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    log.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.on_event("startup")
async def on_startup() -> None:
    # 1) store first (up to DB_INIT_RETRIES tries, 1s apart)
    store = None
    for i in range(settings.DB_INIT_RETRIES):
        try:
            store = await init_store()
            log.info("store ready backend=%s", settings.STORE_BACKEND)
            break
        except Exception as e:
            log.warning("store init retry %d: %s", i + 1, e)
            await sleep(1.0)
    if store is None:
        log.error("store init failed after %d retries", settings.DB_INIT_RETRIES)
        return

    # 2) indexes (mongo only)
    if settings.STORE_BACKEND == "mongo":
        try:
            await ensure_indexes(get_db())
            log.info("indexes ensured")
        except Exception:
            log.exception("ensure_indexes failed")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_db()
    log.info("store closed")


@app.get("/")
async def root():
    return success(
        message="Welcome to FitTrack API",
        version=VERSION,
        documentation="/docs",
        endpoints={
            "users": "/api/v1/users",
            "workouts": "/api/v1/workouts",
            "auth": "/auth/github",
            "health": "/health",
        },
    )


@app.get("/health")
async def health():
    store_status = "ok"
    try:
        await get_store().ping()
    except Exception as e:
        store_status = f"error: {e}"
    return success(
        message="Server is running smoothly",
        uptime=round(time.monotonic() - STARTED_AT, 1),
        environment=settings.ENVIRONMENT,
        store=store_status,
    )


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(workouts_router)
