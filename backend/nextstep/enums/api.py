"""
API Enums

Enums used by the HTTP layer (rate limiting categories).
"""

from enum import Enum


class RateLimitType(str, Enum):
    """
    Rate limit categories for different endpoint types.

    Each category has a corresponding rate limit configured in settings.
    Usage:
        from nextstep.enums import RateLimitType
        from nextstep.config import settings

        limit = settings.get_rate_limit(RateLimitType.ACTIVITY)
    """

    # General API endpoints
    DEFAULT = "default"

    # Activity ingestion (one call per learner action)
    ACTIVITY = "activity"

    # Stats, streak and history reads
    ANALYTICS = "analytics"
