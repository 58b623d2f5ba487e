"""
Error taxonomy for the API.

Every business-rule rejection is raised as an ``AppError`` subclass before any
state is mutated; ``register_error_handlers`` renders them as ``{"error": ...}``.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class DuplicateRequest(AppError):
    status_code = 400
    code = "DUPLICATE_REQUEST"

    def __init__(self, message: str = "Duplicate action log") -> None:
        super().__init__(message)


class DailyActionCapReached(AppError):
    status_code = 400
    code = "DAILY_ACTION_CAP"


class DailyPointsCapReached(AppError):
    status_code = 400
    code = "DAILY_POINTS_CAP"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMITED"


class UpstreamError(AppError):
    """Third-party failure. ``detail`` is logged, never sent to the client."""

    status_code = 500
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("upstream.error path=%s message=%s detail=%s", request.url.path, exc.message, exc.detail)
    elif exc.status_code >= 500:
        logger.error("app.error path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    else:
        logger.info("app.rejected path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    return _error_response(exc.status_code, exc.message)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in errors]
    fields = [f for f in fields if f]
    message = "Missing required fields" if any(e.get("type") == "missing" for e in errors) else "Invalid request"
    if fields:
        message = f"{message}: {', '.join(fields)}"
    return _error_response(400, message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled.error path=%s", request.url.path)
    return _error_response(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
