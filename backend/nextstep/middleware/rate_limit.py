"""
Rate Limiting Middleware

Protects the ingestion and analytics endpoints using SlowAPI.

Usage:
    from nextstep.middleware.rate_limit import limiter
    from nextstep.enums import RateLimitType
    from nextstep.config import settings

    @router.post("/activities")
    @limiter.limit(settings.get_rate_limit(RateLimitType.ACTIVITY))
    async def record_activity(request: Request, ...):
        ...

Rate limit configurations (from settings):
- DEFAULT: General API endpoints (100/minute)
- ACTIVITY: Activity ingestion (60/minute)
- ANALYTICS: Stats, streak and usage reads (30/minute)
"""

import logging

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from nextstep.config import settings
from nextstep.enums import RateLimitType

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """
    Get client identifier for rate limiting.

    Uses X-Forwarded-For header if behind a proxy,
    otherwise falls back to direct IP address.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def setup_rate_limiting(app: FastAPI, enabled: bool = True) -> None:
    """
    Configure rate limiting on the FastAPI app.

    Args:
        app: FastAPI application instance
        enabled: Whether to enable rate limiting
    """
    # Decorated routes look the limiter up in app state either way
    app.state.limiter = limiter

    if not enabled:
        limiter.enabled = False
        logger.info("Rate limiting disabled")
        return

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info("Rate limiting enabled")


def get_rate_limit(rate_limit_type: RateLimitType) -> str:
    """
    Get rate limit string for an endpoint type.

    Args:
        rate_limit_type: RateLimitType enum value

    Returns:
        Rate limit string (e.g., "60/minute")
    """
    return settings.get_rate_limit(rate_limit_type)


def limit_activity(func):
    """Decorator for activity ingestion endpoints."""
    return limiter.limit(get_rate_limit(RateLimitType.ACTIVITY))(func)


def limit_analytics(func):
    """Decorator for stats and usage read endpoints."""
    return limiter.limit(get_rate_limit(RateLimitType.ANALYTICS))(func)
