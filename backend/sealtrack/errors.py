"""Error taxonomy raised by the custody services and rendered by the API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CustodyError(Exception):
    """Base class; carries the HTTP status the API maps it to."""

    status_code = 500
    error_code = "custody_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(CustodyError):
    status_code = 401
    error_code = "authentication_required"


class AuthorizationError(CustodyError):
    """Wrong actor or device; always audited by the raiser."""

    status_code = 403
    error_code = "permission_denied"


class ValidationError(CustodyError):
    """Rejected before anything was persisted."""

    status_code = 400
    error_code = "validation_error"


class WindowClosedError(ValidationError):
    error_code = "outside_time_window"


class StateError(CustodyError):
    """The entity is in a state that forbids the request (e.g. task locked)."""

    status_code = 400
    error_code = "invalid_state"


class NotFoundError(CustodyError):
    status_code = 404
    error_code = "not_found"

    def __init__(self, resource: str, identifier: object | None = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message)


class ConflictError(CustodyError):
    status_code = 409
    error_code = "conflict"


async def custody_error_handler(request: Request, exc: CustodyError) -> JSONResponse:
    logger.warning(
        "%s on %s %s: %s",
        exc.error_code,
        request.method,
        request.url.path,
        exc.message,
        extra={"error_code": exc.error_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "message": exc.message, "detail": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request parsing failures render as a 400 in the same shape as ValidationError."""

    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:]) or "request"
        problems.append(f"{field}: {error.get('msg', 'invalid')}")
    return await custody_error_handler(request, ValidationError("; ".join(problems) or "Invalid request"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        exc,
        exc_info=True,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error", "detail": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CustodyError, custody_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
