"""Application errors and the JSON error envelope they render to."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.enums import DenialReasonEnum

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Error with an HTTP status and a stable machine-readable code."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundException(AppException):
    """Requested record does not exist."""

    status_code = 404
    code = "not_found"


class SessionNotFoundException(NotFoundException):
    """Raised when a catalog session id does not exist."""

    code = "session_not_found"


class ConflictException(AppException):
    """Write collides with an existing student or booking."""

    status_code = 409
    code = "conflict"


class UnauthorizedException(AppException):
    """Caller is identified but not allowed here (bad instructor key)."""

    status_code = 403
    code = "forbidden"


class AuthenticationRequiredException(AppException):
    """Raised when no valid identity accompanies the request."""

    status_code = 401
    code = "unauthorized"


class BusinessRuleException(AppException):
    """Input is well formed but breaks a catalog or identity rule."""

    status_code = 422
    code = "business_rule_violation"


class RateLimitException(AppException):
    """Raised when a caller exceeds its request budget."""

    status_code = 429
    code = "rate_limited"


_DENIAL_STATUS_CODES: dict[DenialReasonEnum, int] = {
    DenialReasonEnum.SESSION_NOT_FOUND: 404,
    DenialReasonEnum.SESSION_DISABLED: 422,
    DenialReasonEnum.SESSION_FULL: 409,
    DenialReasonEnum.DAY_ALREADY_BOOKED: 422,
    DenialReasonEnum.MAX_DAYS_REACHED: 422,
    DenialReasonEnum.DUPLICATE_BOOKING: 409,
    DenialReasonEnum.NOT_FOUND_OR_UNAUTHORIZED: 404,
}


class BookingDeniedException(AppException):
    """Raised when the constraint validator refuses a booking mutation.

    The error code is the denial reason itself, so clients can branch on it.
    """

    def __init__(self, reason: DenialReasonEnum, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.code = reason.value
        self.status_code = _DENIAL_STATUS_CODES[reason]


class ConcurrencyConflictException(AppException):
    """Raised when a storage uniqueness constraint rejects a validated booking."""

    status_code = 409
    code = "concurrency_conflict"


class TransientStorageException(AppException):
    """Raised on connectivity or lock-timeout failures; safe to retry."""

    status_code = 503
    code = "transient_storage_error"


def error_body(code: str, message: str) -> dict[str, dict[str, str]]:
    return {"error": {"code": code, "message": message}}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Framework errors (401 from token checks, 503 from readiness) share the envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body("http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("internal_error", "Internal server error"))


def register_exception_handlers(app) -> None:
    """Attach the envelope handlers to the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
