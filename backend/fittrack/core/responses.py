# fittrack/core/responses.py
# Response envelopes + the one place that turns exceptions into HTTP error bodies.
# Routers return success(...) / paginate(...) and raise AppError subclasses.

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fittrack.core.clock import utcnow
from fittrack.core.config import settings
from fittrack.core.errors import AppError, FieldError, Internal, Unauthenticated, field_error

log = logging.getLogger(__name__)

_LOC_ROOTS = {"body", "query", "path", "header", "cookie"}


def timestamp() -> str:
    return utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def success(data: Any = None, message: str = "Success", **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    body["timestamp"] = timestamp()
    return body


def error_response(
    status_code: int,
    message: str,
    errors: Optional[List[FieldError]] = None,
    **extra: Any,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update({k: v for k, v in extra.items() if v is not None})
    body["timestamp"] = timestamp()
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _field_path(loc) -> str:
    parts = list(loc)
    if parts and parts[0] in _LOC_ROOTS:
        parts = parts[1:]
    out = ""
    for p in parts:
        if isinstance(p, int):
            out += f"[{p}]"
        else:
            out += f".{p}" if out else str(p)
    return out or "body"


def _clean_msg(msg: str) -> str:
    # pydantic prefixes custom ValueError messages
    return msg.removeprefix("Value error, ")


def request_errors(exc: RequestValidationError) -> List[FieldError]:
    out: List[FieldError] = []
    for err in exc.errors():
        value = None if err.get("type") == "missing" else err.get("input")
        out.append(field_error(_field_path(err.get("loc", ())), _clean_msg(err.get("msg", "")), value))
    return out


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, Internal):
        log.error("internal error on %s %s: %s", request.method, request.url.path, exc.message)
        message = "Internal Server Error" if settings.is_production else exc.message
        return error_response(exc.status_code, message)

    log.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    login_url = exc.login_url if isinstance(exc, Unauthenticated) else None
    return error_response(exc.status_code, exc.message, exc.errors, data=exc.data, loginUrl=login_url)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = request_errors(exc)
    log.warning("validation failed on %s %s fields=%s", request.method, request.url.path, [e["field"] for e in errors])
    return error_response(400, "Validation failed", errors)


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    key_value = (exc.details or {}).get("keyValue") or {}
    if key_value:
        field_name, value = next(iter(key_value.items()))
        message = f"A record with {field_name} '{value}' already exists. Please use a different {field_name}."
        errors = [field_error(field_name, message, value)]
    else:
        message, errors = "Duplicate key", None
    log.warning("duplicate key on %s %s: %s", request.method, request.url.path, key_value)
    return error_response(409, message, errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Cannot {request.method} {request.url.path} - Route not found"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    if settings.is_production:
        return error_response(500, "Internal Server Error")
    return error_response(500, f"{type(exc).__name__}: {exc}")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
