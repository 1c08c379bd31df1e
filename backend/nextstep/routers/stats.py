"""
Study Stats API Router

Daily statistics, streaks and study history for the learner dashboard.

Endpoints:
- GET /api/stats/{user_id}/daily - One day's totals and efficiency score
- GET /api/stats/{user_id}/streak - Current/longest streak and milestones
- GET /api/stats/{user_id}/history - Daily activity for a heatmap
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.base import get_db
from nextstep.middleware.error_handling import handle_endpoint_errors
from nextstep.middleware.rate_limit import limit_analytics
from nextstep.models.progress import DailyStatSnapshot, StreakData, StudyHistoryResponse
from nextstep.services.progress import DailyStatRollup, StreakCalculator
from nextstep.services.progress.common import utc_now
from nextstep.services.progress.daily_rollup import snapshot

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stats", tags=["stats"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_daily_rollup(db: AsyncSession = Depends(get_db)) -> DailyStatRollup:
    """Get daily stat rollup."""
    return DailyStatRollup(db)


async def get_streak_calculator(db: AsyncSession = Depends(get_db)) -> StreakCalculator:
    """Get streak calculator."""
    return StreakCalculator(db)


# ===========================================
# Endpoints
# ===========================================


@router.get("/{user_id}/daily", response_model=DailyStatSnapshot)
@limit_analytics
@handle_endpoint_errors("Get daily stats")
async def get_daily_stats(
    request: Request,
    user_id: int,
    day: Optional[date] = Query(None, description="Day to report (defaults to today, UTC)"),
    rollup: DailyStatRollup = Depends(get_daily_rollup),
) -> DailyStatSnapshot:
    """
    Get one day's study totals.

    Includes whether the day counts for streaks and its efficiency score.
    A day without activity reports zeros.
    """
    day = day or utc_now().date()
    stat = await rollup.get_daily_stat(user_id, day)
    if stat is None:
        return DailyStatSnapshot(user_id=user_id, study_date=day)
    return snapshot(stat)


@router.get("/{user_id}/streak", response_model=StreakData)
@limit_analytics
@handle_endpoint_errors("Get study streak")
async def get_streak(
    request: Request,
    user_id: int,
    streaks: StreakCalculator = Depends(get_streak_calculator),
) -> StreakData:
    """
    Get study streak information.

    Returns current and longest streak, days studied this week and month,
    and streak milestones.
    """
    return await streaks.get_streak_data(user_id)


@router.get("/{user_id}/history", response_model=StudyHistoryResponse)
@limit_analytics
@handle_endpoint_errors("Get study history")
async def get_study_history(
    request: Request,
    user_id: int,
    weeks: int = Query(52, ge=1, le=104, description="Number of weeks of history"),
    streaks: StreakCalculator = Depends(get_streak_calculator),
) -> StudyHistoryResponse:
    """
    Get study history for an activity heatmap.

    Suitable for rendering a GitHub-style contribution heatmap.
    """
    return await streaks.get_study_history(user_id, weeks=weeks)
