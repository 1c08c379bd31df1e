"""
Activity audit log.

Every accepted activity is appended to learning_activities exactly as it
was received; the progress engine never reads these rows back.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models import LearningActivity
from nextstep.models.progress import Activity

logger = logging.getLogger(__name__)


async def log_activity(db: AsyncSession, activity: Activity) -> LearningActivity:
    """Append an activity to the audit log."""
    entry = LearningActivity(
        user_id=activity.user_id,
        activity_type=activity.type,
        target_id=activity.target_id,
        target_type=activity.target_type.value if activity.target_type else None,
        duration_minutes=activity.duration_minutes,
        details=_details(activity),
        occurred_at=activity.timestamp,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    await db.flush()
    logger.debug(f"Audit: user {activity.user_id} {activity.type.value} (entry {entry.id})")
    return entry


def _details(activity: Activity):
    details = dict(activity.metadata or {})
    if activity.tokens:
        details["tokens"] = activity.tokens
    return details or None
