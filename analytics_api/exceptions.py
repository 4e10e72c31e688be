
from fastapi import Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
import logging

logger = logging.getLogger(__name__)


class AnalyticsAPIException(Exception):
    """Base exception for the application"""
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class DuplicateOwnerException(AnalyticsAPIException):
    status_code = 409
    message = "An app is already registered with this email"


class NotFoundException(AnalyticsAPIException):
    status_code = 404
    message = "Not found"


class UnauthorizedException(AnalyticsAPIException):
    # One message for missing, malformed, unknown, revoked and expired keys
    status_code = 401
    message = "Invalid or expired API key"

    def __init__(self):
        super().__init__()


class ValidationFailedException(AnalyticsAPIException):
    status_code = 400
    message = "Validation failed"


class StoreUnavailableException(AnalyticsAPIException):
    status_code = 503
    message = "Data store temporarily unavailable"


class CacheUnavailableException(AnalyticsAPIException):
    """Raised inside the result cache only; never reaches a handler."""
    status_code = 503
    message = "Cache unavailable"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def analytics_exception_handler(request: Request, exc: AnalyticsAPIException):
    request_id = _request_id(request)

    if exc.status_code >= 500:
        logger.error(exc.message, extra={"request_id": request_id, "path": request.url.path})
    else:
        logger.info(exc.message, extra={"request_id": request_id, "path": request.url.path})

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "request_id": request_id},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler to execute last (if registered appropriately).
    Returns 500 JSON response and hides internal error details.
    """
    request_id = _request_id(request)

    logger.error(
        "Unhandled exception occurred",
        extra={"request_id": request_id, "path": request.url.path},
        exc_info=exc
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "request_id": request_id
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle standard FastAPI HTTPExceptions (unknown routes, wrong methods).
    """
    request_id = _request_id(request)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error", extra={"request_id": request_id, "detail": exc.detail})
    else:
        logger.info(f"HTTP {exc.status_code} error", extra={"request_id": request_id, "detail": exc.detail})

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "request_id": request_id},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle Pydantic validation errors.
    """
    request_id = _request_id(request)
    details = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.info("Validation error", extra={"request_id": request_id, "path": request.url.path})

    return JSONResponse(
        status_code=ValidationFailedException.status_code,
        content={
            "success": False,
            "error": ValidationFailedException.message,
            "details": details,
            "request_id": request_id
        },
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    request_id = _request_id(request)
    logger.info("Rate limit exceeded", extra={"request_id": request_id, "path": request.url.path})

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests, please try again later",
            "request_id": request_id
        },
    )
