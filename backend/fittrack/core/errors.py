# fittrack/core/errors.py
# Application error taxonomy. Raised by services, translated once in core/responses.
from __future__ import annotations

from typing import Any, Dict, List, Optional

FieldError = Dict[str, Any]


def field_error(field: str, message: str, value: Any = None) -> FieldError:
    return {"field": field, "message": message, "value": value}


class AppError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        errors: Optional[List[FieldError]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.data = data


class ValidationError(AppError):
    """Malformed or out-of-range input, one or more field violations."""

    status_code = 400

    def __init__(self, errors: List[FieldError], message: str = "Validation failed") -> None:
        super().__init__(message, errors=errors)


class InvalidParameter(ValidationError):
    """Malformed pagination/sort/filter query parameter."""

    def __init__(self, errors: List[FieldError], message: str = "Invalid query parameters") -> None:
        super().__init__(errors, message=message)


class NotFound(AppError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None, message: Optional[str] = None) -> None:
        if message is None:
            message = (
                f"{resource} with ID '{identifier}' not found"
                if identifier is not None
                else f"{resource} not found"
            )
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class Conflict(AppError):
    """Duplicate unique key, or delete blocked by dependents."""

    status_code = 409


class Unauthenticated(AppError):
    status_code = 401

    def __init__(self, login_url: str, message: str = "User not authenticated") -> None:
        super().__init__(message)
        self.login_url = login_url


class Internal(AppError):
    status_code = 500
