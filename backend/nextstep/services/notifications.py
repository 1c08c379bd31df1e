"""
Progress Notifications

The engine emits ProgressEvents (step completed, roadmap completed, streak
milestone); a NotificationDispatcher delivers them.

Dispatchers:
- LoggingNotificationDispatcher: writes events to the log
- DatabaseNotificationDispatcher: persists them as notifications rows

Usage:
    from nextstep.services.notifications import DatabaseNotificationDispatcher

    dispatcher = DatabaseNotificationDispatcher(db)
    await dispatcher.dispatch(result.events)
"""

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models import Notification
from nextstep.enums.progress import NotificationType
from nextstep.models.progress import ProgressEvent

logger = logging.getLogger(__name__)

DASHBOARD_URL = "/dashboard"


# ===========================================
# Event builders
# ===========================================


def step_completed_event(
    user_id: int, step_progress_id: int, step_title: str, roadmap_title: str
) -> ProgressEvent:
    return ProgressEvent(
        type=NotificationType.STEP_COMPLETE,
        user_id=user_id,
        title="Step completed!",
        message=f"You completed the '{step_title}' step of the '{roadmap_title}' roadmap! 🎉",
        action_url=DASHBOARD_URL,
        payload={"step_progress_id": step_progress_id},
    )


def roadmap_completed_event(user_id: int, user_roadmap_id: int, roadmap_title: str) -> ProgressEvent:
    return ProgressEvent(
        type=NotificationType.ROADMAP_COMPLETED,
        user_id=user_id,
        title="Goal achieved!",
        message=f"Congratulations! You completed the '{roadmap_title}' roadmap! 🏆",
        action_url=f"/roadmaps/{user_roadmap_id}",
        payload={"user_roadmap_id": user_roadmap_id},
    )


def streak_milestone_event(user_id: int, streak_days: int) -> ProgressEvent:
    return ProgressEvent(
        type=NotificationType.STREAK_MILESTONE,
        user_id=user_id,
        title="Study streak!",
        message=f"Wow! You have studied {streak_days} days in a row! 🔥",
        action_url=DASHBOARD_URL,
        payload={"streak_days": streak_days},
    )


# ===========================================
# Dispatchers
# ===========================================


class NotificationDispatcher(Protocol):
    """Delivers progress events; formatting and transport are its concern."""

    async def dispatch(self, events: list[ProgressEvent]) -> None:
        ...


class LoggingNotificationDispatcher:
    """Writes events to the application log."""

    async def dispatch(self, events: list[ProgressEvent]) -> None:
        for event in events:
            logger.info(f"Notify user {event.user_id} [{event.type.value}]: {event.title}")


class DatabaseNotificationDispatcher:
    """Persists events as unread notifications for the user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def dispatch(self, events: list[ProgressEvent]) -> None:
        if not events:
            return
        now = datetime.now(timezone.utc)
        self.db.add_all(
            [
                Notification(
                    user_id=event.user_id,
                    notification_type=event.type,
                    title=event.title,
                    message=event.message,
                    action_url=event.action_url,
                    is_read=False,
                    created_at=now,
                )
                for event in events
            ]
        )
        await self.db.flush()
        logger.debug(f"Stored {len(events)} notifications")
