"""
Error responses for the NextStep API.

Engine failures (quota, storage, lookups, invalid transitions) are raised as
ServiceError subclasses and answered with one JSON body shape carrying a
short error id that also appears in the log line.

Usage:
    from nextstep.middleware.error_handling import NotFoundError, setup_error_handling

    setup_error_handling(app, debug=settings.DEBUG)
    raise NotFoundError("Roadmap 42 not found")

HTTPException is left to FastAPI's own handler.
"""

import functools
import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """JSON body of every ServiceError response."""

    error: str  # quota_exceeded, storage_failure, not_found, ...
    message: str
    error_id: str
    details: Optional[dict] = None  # Only when exposed or in debug mode
    timestamp: datetime


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base of the engine's HTTP-mapped failures.

    Subclasses fix status_code and error_code. Details are only sent to clients in debug mode unless the subclass sets
    ``expose_details``.

    Example:
        raise ServiceError("Roadmap catalogue unavailable", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"
    expose_details: bool = False

    def __init__(
        self,
        message: str,
        status_code: int = None,
        error_code: str = None,
        details: dict = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class QuotaExceededError(ServiceError):
    """
    Daily AI usage limit reached.

    Raised when the QuotaLedger denies an AI question. Nothing was recorded.
    """

    status_code = 429
    error_code = "quota_exceeded"
    expose_details = True


class StorageFailureError(ServiceError):
    """
    A store read or write failed.

    Raised when the quota stage fails (nothing recorded) or when a later
    recording stage fails; details then list the failed stages and the
    stages that were applied.
    """

    status_code = 503
    error_code = "storage_failure"
    expose_details = True


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when input data fails validation.
    """

    status_code = 422
    error_code = "validation_error"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a user, roadmap, step or progress row doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class InvalidTransitionError(ServiceError):
    """
    State machine transition not allowed from the current state.

    Example: pausing a roadmap that is not in progress.
    """

    status_code = 409
    error_code = "invalid_transition"


# =============================================================================
# Error Handling Middleware
# =============================================================================


def _service_error_content(e: ServiceError, error_id: str, debug: bool) -> dict:
    return ErrorResponse(
        error=e.error_code,
        message=e.message,
        error_id=error_id,
        details=e.details if (debug or e.expose_details) else None,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Turn errors escaping the app into JSON responses.

    ServiceErrors keep their status; anything else becomes a 500 whose
    body only carries the exception and traceback when debug is on.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())[:8]
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except ServiceError as e:
            logger.error(
                f"[{error_id}] {e.error_code} on {request.method} {request.url.path}: "
                f"{e.message} {e.details or ''}"
            )
            return JSONResponse(
                status_code=e.status_code,
                content=_service_error_content(e, error_id, self.debug),
            )

        except Exception as e:
            logger.exception(
                f"[{error_id}] Unhandled {type(e).__name__} on "
                f"{request.method} {request.url.path}: {e}"
            )
            details = None
            if self.debug:
                details = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }
            body = ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                error_id=error_id,
                details=details,
                timestamp=datetime.now(timezone.utc),
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    ServiceErrors are answered by an exception handler as well, so they get
    the structured response even when raised below other middleware.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """

    async def service_error_handler(request: Request, exc: ServiceError):
        error_id = str(uuid4())[:8]
        logger.warning(
            f"[{error_id}] {exc.error_code}: {exc.message} "
            f"({request.method} {request.url.path})"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_service_error_content(exc, error_id, debug),
        )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")


# =============================================================================
# Endpoint Decorator
# =============================================================================


def handle_endpoint_errors(operation: str):
    """
    Wrap a route handler so unexpected errors become logged 500 responses.

    HTTPException and ServiceError pass through unchanged; anything else is
    logged with the operation name and re-raised as HTTPException(500).

    Usage:
        @router.get("/{user_id}/daily")
        @handle_endpoint_errors("Get daily stats")
        async def get_daily(...):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (HTTPException, ServiceError):
                raise
            except Exception as e:
                logger.error(f"{operation} failed: {type(e).__name__}: {e}")
                raise HTTPException(
                    status_code=500, detail=f"{operation} failed"
                ) from e

        return wrapper

    return decorator

