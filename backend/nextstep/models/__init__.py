"""Pydantic models for the application."""

from nextstep.models.base import StrictRequest, StrictResponse
from nextstep.models.progress import (
    Activity,
    ActivityRequest,
    UserIdentity,
    QuotaDecision,
    UsageSummary,
    StepProgressSnapshot,
    RoadmapProgressSnapshot,
    DailyStatSnapshot,
    ProgressEvent,
    StageFailure,
    RecordResult,
)

__all__ = [
    "StrictRequest",
    "StrictResponse",
    "Activity",
    "ActivityRequest",
    "UserIdentity",
    "QuotaDecision",
    "UsageSummary",
    "StepProgressSnapshot",
    "RoadmapProgressSnapshot",
    "DailyStatSnapshot",
    "ProgressEvent",
    "StageFailure",
    "RecordResult",
]
