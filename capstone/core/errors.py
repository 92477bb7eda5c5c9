"""
Error Handling - application exceptions and FastAPI exception handlers.

Every error response has the same JSON shape:
    {"success": false, "error": "...", "code": "...", "timestamp": "...",
     "request_id": "...", "details": ...}
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from capstone.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """Base application error: an HTTPException with a machine-readable code."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None,
                 status_code: Optional[int] = None, headers: Optional[dict] = None):
        super().__init__(status_code=status_code or self.status_code, detail=message, headers=headers)
        self.code = code or self.code
        self.details = details

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None, details: Any = None):
        super().__init__(message, code=code, details=details, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str = "Too many requests, please try again later",
                 code: Optional[str] = None, retry_after: Optional[int] = None):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(message, code=code, headers=headers)


# Codes for plain HTTPExceptions raised by FastAPI/Starlette itself
STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_body(request: Request, message: str, code: str, details: Any = None) -> dict:
    body = {
        "success": False,
        "error": message,
        "code": code,
        "timestamp": _now(),
        "request_id": getattr(request.state, "request_id", None),
    }
    if details is not None:
        body["details"] = details
    return body


def request_context(request: Request, code: Optional[str] = None) -> dict:
    """Extra fields picked up by the database log handler."""
    user = getattr(request.state, "user", None) or {}
    return {
        "error_code": code,
        "request_method": request.method,
        "request_url": str(request.url.path),
        "user_id": user.get("id"),
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def _log_client_error(request: Request, status_code: int, message: str, code: str) -> None:
    # 401/404 are routine and only go to the log file
    level = logging.INFO if status_code in (401, 404) else logging.WARNING
    logger.log(level, f"{request.method} {request.url.path} -> {status_code} {code}: {message}",
               extra=request_context(request, code))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    _log_client_error(request, exc.status_code, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.message, exc.code, exc.details),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = exc.detail if not isinstance(exc.detail, str) else None
    _log_client_error(request, exc.status_code, message, code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, message, code, details),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    _log_client_error(request, 400, "Validation failed", "VALIDATION_ERROR")
    return JSONResponse(
        status_code=400,
        content=error_body(request, "Validation failed", "VALIDATION_ERROR", errors),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    _log_client_error(request, 409, str(exc.orig), "CONSTRAINT_ERROR")
    return JSONResponse(
        status_code=409,
        content=error_body(request, "Database constraint violation", "CONSTRAINT_ERROR"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}",
                 exc_info=exc, extra=request_context(request, "INTERNAL_ERROR"))
    details = None
    message = "Internal server error"
    if settings.debug and not settings.is_production:
        message = str(exc) or message
        details = {"stack": traceback.format_exception(type(exc), exc, exc.__traceback__)}
    return JSONResponse(
        status_code=500,
        content=error_body(request, message, "INTERNAL_ERROR", details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
