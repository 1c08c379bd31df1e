"""
SQLAlchemy Database Models for the Progress Engine

These models hold the aggregates owned by the activity ingestion engine.

Tables:
- usage_quotas: Per-user, per-day AI usage counters (QuotaLedger)
- user_roadmaps: Roadmap enrollments and their completion (RoadmapProgressAggregator)
- user_step_progress: Per-enrollment step state (StepProgressTracker)
- daily_study_stats: Per-user, per-day activity totals and streaks
  (DailyStatRollup / StreakCalculator)

ARCHITECTURE NOTE:
    Step rows reference their enrollment by user_roadmap_id only. The
    enrollment does not hold a collection of its steps; services query
    the steps by parent id instead.

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from nextstep.db.base import Base
from nextstep.enums.progress import RoadmapStatus, StepStatus


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _status_column(enum_cls, default):
    return mapped_column(
        SQLEnum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        default=default,
    )


# ===========================================
# AI Usage Quotas
# ===========================================


class UsageQuota(Base):
    """
    Daily AI usage counters for one user.

    Created lazily on the first AI usage of the day and kept afterwards
    for history and analytics.

    Attributes:
        id: Primary key.
        user_id: Owning user.
        usage_date: Calendar day the counters belong to.
        message_count: AI messages sent that day. Never negative.
        token_count: AI tokens consumed that day. Never negative.
    """

    __tablename__ = "usage_quotas"
    __table_args__ = (
        UniqueConstraint("user_id", "usage_date", name="uq_usage_quotas_user_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    usage_date: Mapped[date] = mapped_column(Date, index=True)

    message_count: Mapped[int] = mapped_column(Integer, default=0)
    token_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Roadmap & Step Progress
# ===========================================


class UserRoadmap(Base):
    """
    A user's enrollment in a roadmap template.

    Attributes:
        id: Primary key.
        user_id: Enrolled user.
        template_id: Roadmap template this enrollment follows.
        title: Title copied from the template at enrollment time.
        status: NOT_STARTED, IN_PROGRESS, PAUSED or COMPLETED.
        percentage: round_half_up(100 * completed steps / total steps, 2).
        started_at: When the roadmap was started.
        completed_at: When the last step completed the roadmap.
        estimated_completion_date: Projected finish based on the daily goal.
        daily_goal_hours: Planned study hours per day (estimate is skipped
            when not positive).
    """

    __tablename__ = "user_roadmaps"
    __table_args__ = (
        UniqueConstraint("user_id", "template_id", name="uq_user_roadmaps_user_template"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("roadmap_templates.id"))
    title: Mapped[str] = mapped_column(String(200))

    status: Mapped[RoadmapStatus] = _status_column(
        RoadmapStatus, RoadmapStatus.NOT_STARTED
    )
    percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0.00")
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    estimated_completion_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    daily_goal_hours: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class UserStepProgress(Base):
    """
    Progress of one user on one step of an enrolled roadmap.

    Invariant: percentage == 100 if and only if status == COMPLETED.

    Attributes:
        id: Primary key.
        user_roadmap_id: Parent enrollment.
        user_id: Denormalised owner, for (user, step) lookups.
        step_id: Template step this row tracks.
        status: NOT_STARTED, IN_PROGRESS or COMPLETED.
        percentage: 0-100 with two decimals.
        study_hours: Accumulated study time in hours.
        started_at: Set on the first transition to IN_PROGRESS.
        completed_at: Set when the step completes.
        user_notes: Free-form learner notes.
    """

    __tablename__ = "user_step_progress"
    __table_args__ = (
        UniqueConstraint("user_roadmap_id", "step_id", name="uq_user_step_progress_roadmap_step"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_roadmap_id: Mapped[int] = mapped_column(
        ForeignKey("user_roadmaps.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    step_id: Mapped[int] = mapped_column(ForeignKey("roadmap_steps.id"), index=True)

    status: Mapped[StepStatus] = _status_column(StepStatus, StepStatus.NOT_STARTED)
    percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0.00")
    )
    study_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), default=Decimal("0.00")
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    user_notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Daily Study Statistics
# ===========================================


class DailyStudyStat(Base):
    """
    Per-user, per-day activity totals.

    Counters are written by DailyStatRollup; streak_day_number is written
    by StreakCalculator only.

    Attributes:
        id: Primary key.
        user_id: Owning user.
        study_date: Calendar day of the activities.
        study_minutes: Minutes studied.
        completed_steps: Steps completed.
        ai_questions: AI questions asked.
        searches: Searches performed.
        streak_day_number: Position of this day in the current streak
            (0 until the day first becomes active).
    """

    __tablename__ = "daily_study_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "study_date", name="uq_daily_study_stats_user_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    study_date: Mapped[date] = mapped_column(Date, index=True)

    study_minutes: Mapped[int] = mapped_column(Integer, default=0)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)
    ai_questions: Mapped[int] = mapped_column(Integer, default=0)
    searches: Mapped[int] = mapped_column(Integer, default=0)
    streak_day_number: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
