"""
Study Streak Calculator

Maintains consecutive-active-day streaks on the daily stat rows and serves
streak and history data for the dashboard.

Responsibilities:
- Number a day within its streak the moment it first becomes active
- Detect streak milestones (settings.STREAK_MILESTONES)
- Current/longest streak, weekly/monthly active day counts
- Daily study history for heatmaps

Streak numbers are written once, when a day turns active, from the
previous day's stored number. They are never recomputed afterwards: an
activity that arrives late and activates a past day does not renumber the
days after it.

Usage:
    from nextstep.services.progress.streaks import StreakCalculator

    streaks = StreakCalculator(db)
    day_number = await streaks.on_day_activated(stat)
    data = await streaks.get_streak_data(user_id)
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.config import settings
from nextstep.db.models_progress import DailyStudyStat
from nextstep.models.progress import StreakData, StudyHistoryDay, StudyHistoryResponse
from nextstep.services.progress.common import stamps_updated_at, utc_now
from nextstep.services.progress.daily_rollup import has_activity, is_active_day


def calculate_activity_level(count: int, max_count: int) -> int:
    """
    Calculate activity level (0-4) based on count relative to max.

    Thresholds are configured in settings (ACTIVITY_LEVEL_*).

    Args:
        count: Activity count for the day.
        max_count: Maximum activity count across all days.

    Returns:
        Activity level from 0 (no activity) to 4 (high activity).
    """
    if max_count == 0 or count == 0:
        return 0

    ratio = count / max_count
    if ratio >= settings.ACTIVITY_LEVEL_HIGH:
        return 4
    elif ratio >= settings.ACTIVITY_LEVEL_MEDIUM_HIGH:
        return 3
    elif ratio >= settings.ACTIVITY_LEVEL_MEDIUM:
        return 2
    else:
        return 1


def activity_count(stat: DailyStudyStat) -> int:
    """
    Heatmap intensity of a day.

    Completed steps, AI questions and searches count one each; study time
    counts one per ACTIVE_DAY_MIN_MINUTES block.
    """
    return (
        stat.completed_steps
        + stat.ai_questions
        + stat.searches
        + stat.study_minutes // settings.ACTIVE_DAY_MIN_MINUTES
    )


def milestone_for(streak_day_number: int) -> Optional[int]:
    """The milestone a streak day number lands on, if any."""
    if streak_day_number in settings.STREAK_MILESTONES:
        return streak_day_number
    return None


class StreakCalculator:
    """
    Streak numbering and streak/history queries over daily stats.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the streak calculator.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    @stamps_updated_at
    async def on_day_activated(self, stat: DailyStudyStat) -> int:
        """
        Number a day that just became active.

        Continues yesterday's streak when yesterday was active, otherwise
        starts a new streak at 1. Only ``stat`` is written.

        Returns:
            The streak day number written to ``stat``.
        """
        yesterday = await self.db.scalar(
            select(DailyStudyStat).where(
                DailyStudyStat.user_id == stat.user_id,
                DailyStudyStat.study_date == stat.study_date - timedelta(days=1),
            )
        )
        if yesterday is not None and is_active_day(yesterday):
            stat.streak_day_number = (yesterday.streak_day_number or 0) + 1
        else:
            stat.streak_day_number = 1
        return stat.streak_day_number

    async def get_streak_data(
        self, user_id: int, today: Optional[date] = None
    ) -> StreakData:
        """
        Get detailed study streak information.

        The current streak is the stored number of the most recent active
        day, provided that day is today or yesterday.

        Returns:
            StreakData with comprehensive streak information.
        """
        today = today or utc_now().date()
        active_days = await self._fetch_active_days(user_id)
        milestones = settings.STREAK_MILESTONES

        if not active_days:
            return StreakData(
                current_streak=0,
                longest_streak=0,
                is_active_today=False,
                days_this_week=0,
                days_this_month=0,
                milestones_reached=[],
                next_milestone=milestones[0] if milestones else None,
            )

        last_day, last_number = active_days[0]
        current_streak = 0
        streak_start = None
        if last_day >= today - timedelta(days=1):
            current_streak = last_number
            streak_start = last_day - timedelta(days=max(last_number - 1, 0))

        longest_streak = max(number for _, number in active_days)
        dates = [day for day, _ in active_days]

        return StreakData(
            current_streak=current_streak,
            longest_streak=longest_streak,
            streak_start=streak_start,
            last_active_day=last_day,
            is_active_today=last_day == today,
            days_this_week=self._count_days_in_period(dates, today, 7),
            days_this_month=self._count_days_in_period(dates, today, 30),
            milestones_reached=[m for m in milestones if longest_streak >= m],
            next_milestone=next((m for m in milestones if m > current_streak), None),
        )

    async def get_study_history(
        self, user_id: int, weeks: int = 52, today: Optional[date] = None
    ) -> StudyHistoryResponse:
        """
        Get study history for an activity heatmap.

        Args:
            user_id: User to report on.
            weeks: Number of weeks of history to return (default 52).
            today: Last day of the window (defaults to today, UTC).

        Returns:
            StudyHistoryResponse with one entry per day that had activity.
        """
        today = today or utc_now().date()
        cutoff = today - timedelta(weeks=weeks)

        result = await self.db.execute(
            select(DailyStudyStat)
            .where(
                DailyStudyStat.user_id == user_id,
                DailyStudyStat.study_date > cutoff,
                DailyStudyStat.study_date <= today,
            )
            .order_by(DailyStudyStat.study_date)
        )
        stats = [s for s in result.scalars().all() if has_activity(s)]

        days = [
            StudyHistoryDay(
                study_date=s.study_date,
                minutes=s.study_minutes,
                count=activity_count(s),
            )
            for s in stats
        ]
        max_count = max((d.count for d in days), default=0)

        # Calculate activity levels (0-4 based on count relative to max)
        for day in days:
            day.level = calculate_activity_level(day.count, max_count)

        return StudyHistoryResponse(
            days=days,
            total_active_days=sum(1 for s in stats if is_active_day(s)),
            total_minutes=sum(d.minutes for d in days),
            max_daily_count=max_count,
        )

    async def _fetch_active_days(self, user_id: int) -> list[tuple[date, int]]:
        """(study_date, streak_day_number) of active days, most recent first."""
        result = await self.db.execute(
            select(DailyStudyStat.study_date, DailyStudyStat.streak_day_number)
            .where(
                DailyStudyStat.user_id == user_id,
                or_(
                    DailyStudyStat.study_minutes >= settings.ACTIVE_DAY_MIN_MINUTES,
                    DailyStudyStat.completed_steps > 0,
                ),
            )
            .order_by(DailyStudyStat.study_date.desc())
        )
        return [(row.study_date, row.streak_day_number) for row in result]

    @staticmethod
    def _count_days_in_period(dates: list[date], today: date, days: int) -> int:
        """Count active days within the last ``days`` days, today included."""
        cutoff = today - timedelta(days=days)
        return len([d for d in set(dates) if cutoff < d <= today])
