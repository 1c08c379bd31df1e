"""
Roadmap Progress Aggregator

Derives a roadmap enrollment's completion from its step rows and owns the
enrollment's own state machine.

Responsibilities:
- Enroll a user in a template (one step row per template step)
- Recompute percentage from completed/total steps
- Complete, pause, resume and start the enrollment
- Estimate the completion date from the daily study goal

Recompute is the only automatic path to COMPLETED and it never moves the
status backwards. A direct complete() leaves the step rows as they are;
callers that need the steps completed too use the bulk flow on
ActivityRouter.

Usage:
    from nextstep.services.progress.roadmap_aggregator import RoadmapProgressAggregator

    aggregator = RoadmapProgressAggregator(db)
    roadmap, created = await aggregator.enroll(user_id, template_id)
    await aggregator.start(roadmap)
"""

import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.config import settings
from nextstep.db.models import RoadmapStep, RoadmapTemplate
from nextstep.db.models_progress import UserRoadmap, UserStepProgress
from nextstep.enums.progress import RoadmapStatus, StepStatus
from nextstep.middleware.error_handling import NotFoundError
from nextstep.models.progress import (
    RoadmapProgressDetail,
    RoadmapProgressSnapshot,
    StepProgressSnapshot,
)
from nextstep.services.progress.common import (
    HUNDRED,
    ZERO,
    round_half_up,
    stamps_updated_at,
    utc_now,
)

logger = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> Decimal:
    """round_half_up(100 * completed / total, 2); 0 for an empty roadmap."""
    if total == 0:
        return ZERO
    return round_half_up(Decimal(100 * completed) / Decimal(total))


class RoadmapProgressAggregator:
    """
    Enrollment lifecycle and completion tracking for roadmaps.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the aggregator.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    async def enroll(self, user_id: int, template_id: int) -> tuple[UserRoadmap, bool]:
        """
        Enroll a user in a roadmap template.

        Creates the enrollment plus one NOT_STARTED step row per template
        step. Enrolling twice returns the existing enrollment.

        Returns:
            (enrollment, created)

        Raises:
            NotFoundError: If the template doesn't exist or is inactive.
        """
        existing = await self.get_enrollment(user_id, template_id)
        if existing is not None:
            return existing, False

        template = await self.db.get(RoadmapTemplate, template_id)
        if template is None or not template.is_active:
            raise NotFoundError(f"Roadmap template {template_id} not found")

        step_ids = (
            await self.db.scalars(
                select(RoadmapStep.id)
                .where(RoadmapStep.template_id == template_id)
                .order_by(RoadmapStep.step_order)
            )
        ).all()

        now = utc_now()
        roadmap = UserRoadmap(
            user_id=user_id,
            template_id=template_id,
            title=template.title,
            status=RoadmapStatus.NOT_STARTED,
            percentage=ZERO,
            daily_goal_hours=settings.DEFAULT_DAILY_GOAL_HOURS,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(roadmap)
                await self.db.flush()
                self.db.add_all(
                    [
                        UserStepProgress(
                            user_roadmap_id=roadmap.id,
                            user_id=user_id,
                            step_id=step_id,
                            status=StepStatus.NOT_STARTED,
                            percentage=ZERO,
                            study_hours=ZERO,
                            created_at=now,
                            updated_at=now,
                        )
                        for step_id in step_ids
                    ]
                )
        except IntegrityError:
            existing = await self.get_enrollment(user_id, template_id)
            if existing is None:
                raise
            return existing, False

        logger.info(
            f"User {user_id} enrolled in roadmap template {template_id} "
            f"({len(step_ids)} steps)"
        )
        return roadmap, True

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @stamps_updated_at
    async def recompute(self, roadmap: UserRoadmap) -> Decimal:
        """
        Recalculate completion from the step rows.

        An enrollment without steps stays at 0 with its status unchanged.
        Reaching exactly 100.00 completes the roadmap; a lower value never
        reopens a completed one.

        Returns:
            The new percentage.
        """
        total, completed = await self._count_steps(roadmap.id)
        if total == 0:
            roadmap.percentage = ZERO
            return ZERO

        percentage = completion_percentage(completed, total)
        if percentage == HUNDRED:
            self.complete(roadmap)
        roadmap.percentage = percentage
        return percentage

    @stamps_updated_at
    def complete(self, roadmap: UserRoadmap) -> bool:
        """
        Mark the roadmap completed with percentage pinned to 100.00.

        Does not touch the step rows.
        """
        if roadmap.status == RoadmapStatus.COMPLETED:
            return False
        roadmap.status = RoadmapStatus.COMPLETED
        roadmap.completed_at = utc_now()
        roadmap.percentage = HUNDRED
        logger.info(f"Roadmap {roadmap.id} completed by user {roadmap.user_id}")
        return True

    @stamps_updated_at
    def pause(self, roadmap: UserRoadmap) -> bool:
        """IN_PROGRESS → PAUSED."""
        if roadmap.status != RoadmapStatus.IN_PROGRESS:
            logger.debug(f"Pause ignored: roadmap {roadmap.id} is {roadmap.status.value}")
            return False
        roadmap.status = RoadmapStatus.PAUSED
        return True

    @stamps_updated_at
    def resume(self, roadmap: UserRoadmap) -> bool:
        """PAUSED → IN_PROGRESS."""
        if roadmap.status != RoadmapStatus.PAUSED:
            logger.debug(f"Resume ignored: roadmap {roadmap.id} is {roadmap.status.value}")
            return False
        roadmap.status = RoadmapStatus.IN_PROGRESS
        return True

    @stamps_updated_at
    async def start(self, roadmap: UserRoadmap) -> bool:
        """
        NOT_STARTED → IN_PROGRESS and set the first completion estimate.

        No-op in any other state.
        """
        if roadmap.status != RoadmapStatus.NOT_STARTED:
            logger.debug(f"Start ignored: roadmap {roadmap.id} is {roadmap.status.value}")
            return False

        now = utc_now()
        roadmap.status = RoadmapStatus.IN_PROGRESS
        roadmap.started_at = now
        roadmap.estimated_completion_date = await self._estimate_for(roadmap, now)
        return True

    @stamps_updated_at
    async def set_daily_goal(self, roadmap: UserRoadmap, hours: int) -> bool:
        """
        Change the daily study goal and re-estimate a running roadmap.

        Raises:
            ValueError: If hours is negative.
        """
        if hours < 0:
            raise ValueError(f"Daily goal must be non-negative, got {hours}")
        roadmap.daily_goal_hours = hours
        if roadmap.status in (RoadmapStatus.IN_PROGRESS, RoadmapStatus.PAUSED):
            roadmap.estimated_completion_date = await self._estimate_for(
                roadmap, utc_now()
            )
        return True

    @staticmethod
    def estimate_completion_date(
        total_hours: Optional[int],
        studied_hours: int,
        daily_goal_hours: Optional[int],
        now: datetime,
    ) -> Optional[datetime]:
        """
        now + ceil((total - studied) / daily goal) days.

        Returns None when the goal is not positive or the total is unknown.
        """
        if not daily_goal_hours or daily_goal_hours <= 0 or total_hours is None:
            return None
        remaining_hours = max(0, total_hours - studied_hours)
        return now + timedelta(days=math.ceil(remaining_hours / daily_goal_hours))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_roadmap(
        self, user_roadmap_id: int, for_update: bool = False
    ) -> Optional[UserRoadmap]:
        query = select(UserRoadmap).where(UserRoadmap.id == user_roadmap_id)
        if for_update:
            query = query.with_for_update()
        return await self.db.scalar(query)

    async def get_enrollment(self, user_id: int, template_id: int) -> Optional[UserRoadmap]:
        return await self.db.scalar(
            select(UserRoadmap).where(
                UserRoadmap.user_id == user_id,
                UserRoadmap.template_id == template_id,
            )
        )

    async def get_detail(self, roadmap: UserRoadmap) -> RoadmapProgressDetail:
        """Enrollment snapshot with its step rows."""
        result = await self.db.execute(
            select(UserStepProgress)
            .where(UserStepProgress.user_roadmap_id == roadmap.id)
            .order_by(UserStepProgress.step_id)
        )
        steps = [StepProgressSnapshot.model_validate(s) for s in result.scalars().all()]
        return RoadmapProgressDetail(
            roadmap=RoadmapProgressSnapshot.model_validate(roadmap),
            steps=steps,
            completed_steps=sum(1 for s in steps if s.status == StepStatus.COMPLETED),
            total_steps=len(steps),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _count_steps(self, user_roadmap_id: int) -> tuple[int, int]:
        """(total, completed) step rows of an enrollment."""
        result = await self.db.execute(
            select(UserStepProgress.status, func.count(UserStepProgress.id))
            .where(UserStepProgress.user_roadmap_id == user_roadmap_id)
            .group_by(UserStepProgress.status)
        )
        counts = {status: count for status, count in result.all()}
        return sum(counts.values()), counts.get(StepStatus.COMPLETED, 0)

    async def _estimate_for(self, roadmap: UserRoadmap, now: datetime) -> Optional[datetime]:
        total_hours = await self._total_estimated_hours(roadmap.template_id)
        studied = (
            await self.db.scalars(
                select(UserStepProgress.study_hours).where(
                    UserStepProgress.user_roadmap_id == roadmap.id
                )
            )
        ).all()
        # Whole hours per step, as booked on the steps
        studied_hours = sum(int(hours or 0) for hours in studied)
        return self.estimate_completion_date(
            total_hours, studied_hours, roadmap.daily_goal_hours, now
        )

    async def _total_estimated_hours(self, template_id: int) -> Optional[int]:
        """Template estimate, falling back to the sum of its steps' estimates."""
        template = await self.db.get(RoadmapTemplate, template_id)
        if template is not None and template.estimated_hours is not None:
            return template.estimated_hours
        return await self.db.scalar(
            select(func.sum(RoadmapStep.estimated_hours)).where(
                RoadmapStep.template_id == template_id
            )
        )
