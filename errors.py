"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to the uniform response envelope:

    {"success": false, "message": ..., "code": ..., "data": ...}

Non-AppError exceptions are logged and answered with a generic 500 envelope;
no storage or stack detail crosses the boundary.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {
            "success": False,
            "message": self.message,
            "code": self.error_code,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["data"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class LockedError(AppError):
    status_code = 423
    error_code = "account_locked"


class InvalidCodeError(AppError):
    status_code = 400
    error_code = "invalid_code"


class CodeExpiredError(AppError):
    status_code = 400
    error_code = "code_expired"


class AttemptsExhaustedError(AppError):
    status_code = 429
    error_code = "attempts_exhausted"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class DeliveryError(AppError):
    status_code = 503
    error_code = "delivery_failed"


class InternalError(AppError):
    status_code = 500
    error_code = "internal_error"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", "invalid value"),
            }
            for err in exc.errors()
        ]
        body = ValidationError("Validation failed", details={"errors": errors})
        return JSONResponse(status_code=400, content=body.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "An internal server error occurred.",
                "code": "internal_error",
            },
        )
