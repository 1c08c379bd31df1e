"""
Middleware Package

Provides FastAPI middleware for:
- Rate limiting
- Error handling

Rate limiting usage:
    from nextstep.middleware import limit_activity

    @router.post("")
    @limit_activity
    async def record_activity(request: Request, ...):
        ...
"""

from nextstep.middleware.rate_limit import (
    setup_rate_limiting,
    limiter,
    get_rate_limit,
    limit_activity,
    limit_analytics,
)
from nextstep.middleware.error_handling import (
    ErrorHandlingMiddleware,
    ServiceError,
    QuotaExceededError,
    StorageFailureError,
    NotFoundError,
    InvalidTransitionError,
    ValidationError,
    handle_endpoint_errors,
    setup_error_handling,
)

__all__ = [
    "setup_rate_limiting",
    "limiter",
    "get_rate_limit",
    "limit_activity",
    "limit_analytics",
    "ErrorHandlingMiddleware",
    "ServiceError",
    "QuotaExceededError",
    "StorageFailureError",
    "NotFoundError",
    "InvalidTransitionError",
    "ValidationError",
    "handle_endpoint_errors",
    "setup_error_handling",
]
