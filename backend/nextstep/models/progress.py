"""
Progress Engine API Models (Pydantic)

Value objects and request/response schemas for the activity ingestion
engine including:
- Activities and user identity (engine inputs)
- Quota decisions and usage summaries
- Step/roadmap progress snapshots
- Daily stats, streaks and study history
- Activity record results and progress events

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    There are corresponding SQLAlchemy files: nextstep/db/models.py and
    nextstep/db/models_progress.py

    Data flows: API Request → Pydantic → Service → SQLAlchemy → Database

API Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import AwareDatetime, BaseModel, Field, model_validator

from nextstep.enums.progress import (
    ActivityType,
    NotificationType,
    RecordStatus,
    RoadmapStatus,
    StepStatus,
    TargetType,
    UserRole,
)
from nextstep.models.base import StrictRequest, StrictResponse


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Target a bare activity points at when the caller does not say
_DEFAULT_TARGET_TYPES = {
    ActivityType.ROADMAP_START: TargetType.ROADMAP,
    ActivityType.STEP_COMPLETE: TargetType.STEP,
    ActivityType.AI_QUESTION: TargetType.AI_SESSION,
    ActivityType.SEARCH: TargetType.SEARCH,
}


# ===========================================
# Engine Inputs
# ===========================================


class UserIdentity(BaseModel):
    """
    Identity facts the engine needs about the acting user.

    Supplied by an IdentityProvider. premium_valid is False when the user
    holds the premium role but the subscription has lapsed.
    """

    user_id: int
    role: UserRole
    premium_valid: bool = True


class Activity(BaseModel):
    """
    One learner activity, consumed once by the ActivityRouter.

    Attributes:
        user_id: Acting user.
        type: What happened.
        target_id: Roadmap template id (ROADMAP_START), step id (STEP or
            step-targeted STUDY_SESSION), AI session id, etc.
        target_type: What target_id refers to. Defaults from the type.
        duration_minutes: Study time carried by the activity.
        tokens: AI tokens consumed (AI_QUESTION only).
        timestamp: When the activity happened; its UTC date selects the
            daily stat row. AI quota is always charged to the current day.
        metadata: Free-form details kept in the audit log (query text, ...).
    """

    user_id: int
    type: ActivityType
    target_id: Optional[int] = None
    target_type: Optional[TargetType] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    tokens: int = Field(0, ge=0)
    timestamp: datetime = Field(default_factory=_utc_now)
    metadata: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def _default_target_type(self) -> "Activity":
        if self.target_type is None and (
            self.target_id is not None or self.type == ActivityType.SEARCH
        ):
            self.target_type = _DEFAULT_TARGET_TYPES.get(self.type)
        return self

    @property
    def day(self) -> date:
        """UTC calendar day the activity is accounted to."""
        if self.timestamp.tzinfo is None:
            return self.timestamp.date()
        return self.timestamp.astimezone(timezone.utc).date()

    @property
    def targets_step(self) -> bool:
        return self.target_type == TargetType.STEP and self.target_id is not None

    @property
    def has_study_time(self) -> bool:
        return bool(self.duration_minutes)


class ActivityRequest(StrictRequest):
    """
    Request to record an activity.

    Note: Uses StrictRequest - unknown fields will be rejected with 422.
    """

    user_id: int
    type: ActivityType
    target_id: Optional[int] = None
    target_type: Optional[TargetType] = None
    duration_minutes: Optional[int] = Field(
        None, ge=0, le=24 * 60, description="Study minutes carried by the activity"
    )
    tokens: int = Field(0, ge=0, description="AI tokens consumed (ai_question only)")
    timestamp: Optional[AwareDatetime] = Field(
        None, description="When it happened; defaults to now"
    )
    metadata: Optional[dict[str, Any]] = None

    def to_activity(self) -> Activity:
        data = self.model_dump(exclude_none=True)
        return Activity(**data)


# ===========================================
# Quotas
# ===========================================


class QuotaDecision(BaseModel):
    """
    Result of QuotaLedger.check_and_reserve.

    Allowed decisions have already been applied to the counters; denied
    ones changed nothing. Remaining values are None for unlimited roles.
    """

    allowed: bool
    reason: Optional[str] = None
    role: UserRole
    usage_date: date
    message_count: int
    token_count: int
    remaining_messages: Optional[int] = None
    remaining_tokens: Optional[int] = None


class UsageSummary(BaseModel):
    """Today's AI usage against the role's daily limits."""

    user_id: int
    role: UserRole
    usage_date: date
    message_count: int = 0
    token_count: int = 0
    message_limit: Optional[int] = Field(None, description="None means unlimited")
    token_limit: Optional[int] = Field(None, description="None means unlimited")
    remaining_messages: Optional[int] = None
    remaining_tokens: Optional[int] = None
    message_usage_percentage: float = Field(0.0, ge=0.0, le=100.0)
    token_usage_percentage: float = Field(0.0, ge=0.0, le=100.0)
    limit_info: str


class UsageHistoryDay(StrictResponse):
    usage_date: date
    message_count: int
    token_count: int


class UsageHistoryResponse(BaseModel):
    user_id: int
    days: list[UsageHistoryDay] = Field(default_factory=list)
    total_messages: int = 0
    total_tokens: int = 0


# ===========================================
# Step & Roadmap Progress
# ===========================================


class StepProgressSnapshot(StrictResponse):
    """State of one step progress row."""

    id: int
    user_roadmap_id: int
    step_id: int
    status: StepStatus
    percentage: Decimal
    study_hours: Decimal
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RoadmapProgressSnapshot(StrictResponse):
    """State of one roadmap enrollment."""

    id: int
    user_id: int
    template_id: int
    title: str
    status: RoadmapStatus
    percentage: Decimal
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_completion_date: Optional[datetime] = None
    daily_goal_hours: int


class RoadmapProgressDetail(BaseModel):
    """Roadmap enrollment together with its step rows."""

    roadmap: RoadmapProgressSnapshot
    steps: list[StepProgressSnapshot] = Field(default_factory=list)
    completed_steps: int = 0
    total_steps: int = 0


class EnrollRequest(StrictRequest):
    user_id: int


class StepProgressUpdateRequest(StrictRequest):
    percentage: Decimal = Field(..., ge=0, le=100)


class DailyGoalRequest(StrictRequest):
    hours: int = Field(..., ge=0, le=24)


# ===========================================
# Daily Stats, Streaks & History
# ===========================================


class DailyStatSnapshot(BaseModel):
    """One day's totals plus the derived readings."""

    user_id: int
    study_date: date
    study_minutes: int = 0
    completed_steps: int = 0
    ai_questions: int = 0
    searches: int = 0
    streak_day_number: int = 0
    has_activity: bool = False
    is_active_day: bool = False
    efficiency_score: int = Field(0, ge=0, le=100)
    formatted_study_time: str = "0m"


class StreakData(BaseModel):
    """
    Study streak information.

    Tracks consecutive active days to motivate consistent learning habits.
    Includes current and longest streaks, milestone tracking, and weekly/monthly
    activity counts.
    """

    current_streak: int  # Days
    longest_streak: int
    streak_start: Optional[date] = None
    last_active_day: Optional[date] = None
    is_active_today: bool
    days_this_week: int
    days_this_month: int
    # Milestones
    milestones_reached: list[int] = Field(default_factory=list)  # e.g., [7, 30, 100]
    next_milestone: Optional[int] = None


class StudyHistoryDay(BaseModel):
    """One heatmap cell."""

    study_date: date
    minutes: int
    count: int  # Steps + AI questions + searches + study time blocks
    level: int = Field(0, ge=0, le=4)


class StudyHistoryResponse(BaseModel):
    """Daily study activity for a GitHub-style heatmap."""

    days: list[StudyHistoryDay] = Field(default_factory=list)
    total_active_days: int = 0
    total_minutes: int = 0
    max_daily_count: int = 0


# ===========================================
# Recording Results & Events
# ===========================================


class ProgressEvent(BaseModel):
    """
    Signal emitted by the engine for the notification dispatcher.
    """

    type: NotificationType
    user_id: int
    title: str
    message: str
    action_url: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class StageFailure(BaseModel):
    """A recording stage that failed; earlier stages stay applied."""

    stage: str
    error: str


class RecordResult(BaseModel):
    """
    Outcome of ActivityRouter.record.

    DENIED results carry only the quota decision. RECORDED results carry
    snapshots of whatever each stage touched, plus any stage failures.
    """

    status: RecordStatus
    activity_type: ActivityType
    quota: Optional[QuotaDecision] = None
    step_progress: Optional[StepProgressSnapshot] = None
    roadmap_progress: Optional[RoadmapProgressSnapshot] = None
    daily_stat: Optional[DailyStatSnapshot] = None
    streak_day_number: Optional[int] = None
    duplicate: bool = False
    events: list[ProgressEvent] = Field(default_factory=list)
    failures: list[StageFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == RecordStatus.RECORDED and not self.failures
