"""
Daily Study Statistics Rollup

Folds recorded activities into per-user, per-day counters and derives the
daily readings (active day, efficiency score, formatted study time).

Activity dispatch:
- STEP_COMPLETE: completed_steps + 1, plus its duration if any
- STUDY_SESSION: duration added to study_minutes
- AI_QUESTION: ai_questions + 1
- SEARCH: searches + 1
- ROADMAP_START: no counter change

The day row is locked (SELECT ... FOR UPDATE) while it is updated so
concurrent activities of the same user never lose an increment.

Usage:
    from nextstep.services.progress.daily_rollup import DailyStatRollup

    rollup = DailyStatRollup(db)
    stat, became_active = await rollup.apply(activity)
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.config import settings
from nextstep.db.models_progress import DailyStudyStat
from nextstep.enums.progress import ActivityType
from nextstep.models.progress import Activity, DailyStatSnapshot
from nextstep.services.progress.common import stamps_updated_at, utc_now

logger = logging.getLogger(__name__)


# ===========================================
# Derived readings
# ===========================================


def has_activity(stat: DailyStudyStat) -> bool:
    """True if any counter of the day is positive."""
    return (
        (stat.study_minutes or 0) > 0
        or (stat.completed_steps or 0) > 0
        or (stat.ai_questions or 0) > 0
        or (stat.searches or 0) > 0
    )


def is_active_day(stat: DailyStudyStat) -> bool:
    """A day counts for streaks at 30+ minutes or any completed step."""
    return (stat.study_minutes or 0) >= settings.ACTIVE_DAY_MIN_MINUTES or (
        stat.completed_steps or 0
    ) > 0


def efficiency_score(stat: DailyStudyStat) -> int:
    """
    Score the day from 0 to 100.

    Components (each capped on its own):
    - study time: 1 point per 3 whole minutes, up to 40
    - completed steps: 15 points each, up to 30
    - AI questions: 3 points each, up to 15
    - searches: 1.5 points each, up to 15

    The sum is truncated to an integer and capped at 100.
    """
    score = min(40, (stat.study_minutes or 0) // 3)
    score += min(30, (stat.completed_steps or 0) * 15)
    score += min(15, (stat.ai_questions or 0) * 3)
    total = score + min(15.0, (stat.searches or 0) * 1.5)
    return min(100, int(total))


def formatted_study_time(minutes: int) -> str:
    """
    Format study minutes for display.

    Example:
        >>> formatted_study_time(65)
        '1h 05m'
        >>> formatted_study_time(45)
        '45m'
    """
    hours, rest = divmod(minutes or 0, 60)
    if hours > 0:
        return f"{hours}h {rest:02d}m"
    return f"{rest}m"


def summary(stat: DailyStudyStat) -> str:
    """One-line description of the day."""
    return (
        f"{stat.study_date}: studied {formatted_study_time(stat.study_minutes)}, "
        f"completed {stat.completed_steps} steps, asked {stat.ai_questions} AI questions, "
        f"searched {stat.searches} times (efficiency {efficiency_score(stat)})"
    )


def snapshot(stat: DailyStudyStat) -> DailyStatSnapshot:
    """Detach a stat row into its API representation."""
    return DailyStatSnapshot(
        user_id=stat.user_id,
        study_date=stat.study_date,
        study_minutes=stat.study_minutes,
        completed_steps=stat.completed_steps,
        ai_questions=stat.ai_questions,
        searches=stat.searches,
        streak_day_number=stat.streak_day_number,
        has_activity=has_activity(stat),
        is_active_day=is_active_day(stat),
        efficiency_score=efficiency_score(stat),
        formatted_study_time=formatted_study_time(stat.study_minutes),
    )


# ===========================================
# Rollup service
# ===========================================


class DailyStatRollup:
    """
    Per-user, per-day activity counters.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the rollup.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    async def apply(self, activity: Activity) -> tuple[DailyStudyStat, bool]:
        """
        Fold one activity into the user's stat for the activity's day.

        Args:
            activity: Activity to count.

        Returns:
            (stat, became_active): became_active is True only for the
            activity that turned the day from inactive to active.
        """
        stat = await self.get_or_create(activity.user_id, activity.day)
        was_active = is_active_day(stat)
        self._count(stat, activity)
        return stat, (not was_active and is_active_day(stat))

    @stamps_updated_at
    def _count(self, stat: DailyStudyStat, activity: Activity) -> bool:
        minutes = activity.duration_minutes or 0

        if activity.type == ActivityType.STEP_COMPLETE:
            stat.completed_steps += 1
            stat.study_minutes += minutes
        elif activity.type == ActivityType.STUDY_SESSION:
            stat.study_minutes += minutes
        elif activity.type == ActivityType.AI_QUESTION:
            stat.ai_questions += 1
        elif activity.type == ActivityType.SEARCH:
            stat.searches += 1
        else:
            return False
        return True

    async def get_or_create(self, user_id: int, day: date) -> DailyStudyStat:
        """
        Lock the user's stat row for the day, creating it if missing.

        A concurrent insert of the same row is tolerated: the loser reads
        the winner's row.
        """
        stat = await self._locked(user_id, day)
        if stat is not None:
            return stat

        now = utc_now()
        stat = DailyStudyStat(
            user_id=user_id,
            study_date=day,
            study_minutes=0,
            completed_steps=0,
            ai_questions=0,
            searches=0,
            streak_day_number=0,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(stat)
        except IntegrityError:
            stat = await self._locked(user_id, day)
            if stat is None:
                raise
            logger.debug(f"Daily stat for user {user_id} on {day} created concurrently")
        return stat

    async def get_daily_stat(self, user_id: int, day: date) -> Optional[DailyStudyStat]:
        return await self.db.scalar(
            select(DailyStudyStat).where(
                DailyStudyStat.user_id == user_id,
                DailyStudyStat.study_date == day,
            )
        )

    async def list_range(self, user_id: int, start: date, end: date) -> list[DailyStudyStat]:
        """Stats between two days inclusive, oldest first."""
        result = await self.db.execute(
            select(DailyStudyStat)
            .where(
                DailyStudyStat.user_id == user_id,
                DailyStudyStat.study_date >= start,
                DailyStudyStat.study_date <= end,
            )
            .order_by(DailyStudyStat.study_date)
        )
        return list(result.scalars().all())

    async def _locked(self, user_id: int, day: date) -> Optional[DailyStudyStat]:
        return await self.db.scalar(
            select(DailyStudyStat)
            .where(
                DailyStudyStat.user_id == user_id,
                DailyStudyStat.study_date == day,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
