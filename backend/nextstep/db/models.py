"""
SQLAlchemy Database Models

Tables the progress engine reads from or appends to, but does not own:

Tables:
- users: Identity and role lookup (role, premium subscription end)
- roadmap_templates: Roadmap catalogue entries
- roadmap_steps: Ordered steps of a roadmap template
- learning_activities: Append-only audit log of recorded activities
- notifications: Progress notifications persisted for the user

The engine-owned aggregates (quotas, step/roadmap progress, daily stats)
live in nextstep/db/models_progress.py.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from nextstep.db.base import Base
from nextstep.enums.progress import ActivityType, NotificationType, UserRole


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    """Persist enum values (not member names) in VARCHAR columns."""
    return [member.value for member in enum_cls]


class User(Base):
    """
    User identity record.

    Only the fields the engine needs for quota decisions are modelled here;
    account management lives outside this service.

    Attributes:
        id: Primary key.
        email: Login email, unique.
        role: Current role (drives the daily AI limits).
        subscription_end_date: End of the paid subscription. A premium member
            whose subscription has lapsed is metered as a free member.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            native_enum=False,
            length=30,
            values_callable=_enum_values,
        ),
        default=UserRole.FREE_MEMBER,
    )
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class RoadmapTemplate(Base):
    """
    Roadmap catalogue entry.

    Attributes:
        id: Primary key.
        title: Display title, copied onto enrollments.
        estimated_hours: Total estimated study hours. When null, the sum of
            the steps' estimates is used for completion estimates.
        is_active: Inactive templates cannot be enrolled in.
    """

    __tablename__ = "roadmap_templates"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    estimated_hours: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class RoadmapStep(Base):
    """
    One ordered step of a roadmap template.
    """

    __tablename__ = "roadmap_steps"

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("roadmap_templates.id", ondelete="CASCADE"), index=True
    )
    step_order: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(200))
    estimated_hours: Mapped[Optional[int]] = mapped_column(Integer)


class LearningActivity(Base):
    """
    Audit log of recorded activities.

    Written once per accepted request by the HTTP layer; the engine never
    reads it back.
    """

    __tablename__ = "learning_activities"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    activity_type: Mapped[ActivityType] = mapped_column(
        SQLEnum(
            ActivityType,
            native_enum=False,
            length=30,
            values_callable=_enum_values,
        )
    )
    target_id: Mapped[Optional[int]] = mapped_column(Integer)
    target_type: Mapped[Optional[str]] = mapped_column(String(50))
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class Notification(Base):
    """
    Persisted progress notification.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    notification_type: Mapped[NotificationType] = mapped_column(
        SQLEnum(
            NotificationType,
            native_enum=False,
            length=30,
            values_callable=_enum_values,
        )
    )
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    action_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
