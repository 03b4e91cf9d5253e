# fittrack/core/rate_limit.py
# Per-IP fixed-window request limiter
"""
Every client IP gets `limit` requests per `window` seconds across all routes.
Counts live in process memory, so each worker keeps its own window.
Over the limit the request is answered with 429 in the usual error envelope.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Callable, Dict, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from fittrack.core.responses import error_response

log = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
EXEMPT_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")

# drop expired windows once the table grows past this
_PRUNE_AT = 10_000


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        limit: int = 100,
        window: int = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.limit = limit
        self.window = window
        self.clock = clock
        # key -> (window start, requests seen)
        self._hits: Dict[str, Tuple[float, int]] = {}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        key = self._client_key(request)
        allowed, remaining, reset_in = self._hit(key)
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(reset_in),
        }

        if not allowed:
            log.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            response = error_response(status.HTTP_429_TOO_MANY_REQUESTS, RATE_LIMIT_MESSAGE)
            response.headers.update(headers)
            response.headers["Retry-After"] = str(reset_in)
            return response

        response = await call_next(request)
        response.headers.update(headers)
        return response

    @staticmethod
    def _client_key(request: Request) -> str:
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    def _hit(self, key: str) -> Tuple[bool, int, int]:
        """Count one request for `key`. Returns (allowed, remaining, seconds until reset)."""
        now = self.clock()
        started, count = self._hits.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0

        reset_in = max(1, math.ceil(started + self.window - now))
        if count >= self.limit:
            return False, 0, reset_in

        count += 1
        if len(self._hits) >= _PRUNE_AT:
            self._prune(now)
        self._hits[key] = (started, count)
        return True, self.limit - count, reset_in

    def _prune(self, now: float) -> None:
        self._hits = {k: v for k, v in self._hits.items() if now - v[0] < self.window}
