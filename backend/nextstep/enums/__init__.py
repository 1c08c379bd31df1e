"""
Centralized enum definitions for the application.

All enums are organized by domain:
- progress.py: Roles, roadmap/step states, activity and notification types
- api.py: Rate limit categories

Usage:
    from nextstep.enums import UserRole, ActivityType

    # Or import from specific module
    from nextstep.enums.progress import StepStatus
"""

from nextstep.enums.progress import (
    UserRole,
    QuotaKind,
    StepStatus,
    RoadmapStatus,
    ActivityType,
    TargetType,
    NotificationType,
    RecordStatus,
)
from nextstep.enums.api import RateLimitType

__all__ = [
    # Progress
    "UserRole",
    "QuotaKind",
    "StepStatus",
    "RoadmapStatus",
    "ActivityType",
    "TargetType",
    "NotificationType",
    "RecordStatus",
    # API
    "RateLimitType",
]
