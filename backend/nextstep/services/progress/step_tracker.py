"""
Step Progress Tracker

State machine for one learner's progress on one roadmap step.

States: NOT_STARTED → IN_PROGRESS → COMPLETED, plus an explicit reset back
to NOT_STARTED. The invariant ``percentage == 100.00 ⇔ status == COMPLETED``
holds after every transition.

Mutators work on a loaded UserStepProgress row, stamp ``updated_at`` and
return whether anything changed; they never flush. Lookups are async.

Usage:
    from nextstep.services.progress.step_tracker import StepProgressTracker

    tracker = StepProgressTracker(db)
    progress = await tracker.get_step_progress(user_id, step_id, for_update=True)
    tracker.update_progress(progress, Decimal("40"))
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models_progress import UserStepProgress
from nextstep.enums.progress import StepStatus
from nextstep.services.progress.common import (
    HUNDRED,
    ZERO,
    round_half_up,
    stamps_updated_at,
    utc_now,
)

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]


class StepProgressTracker:
    """
    Transitions and lookups for UserStepProgress rows.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the tracker.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @stamps_updated_at
    def start(self, progress: UserStepProgress) -> bool:
        """NOT_STARTED → IN_PROGRESS. No-op in any other state."""
        if progress.status != StepStatus.NOT_STARTED:
            logger.debug(f"Step progress {progress.id} already {progress.status.value}")
            return False
        progress.status = StepStatus.IN_PROGRESS
        progress.started_at = utc_now()
        return True

    @stamps_updated_at
    def update_progress(self, progress: UserStepProgress, percentage: Number) -> bool:
        """
        Set the completion percentage.

        The value is rounded half-up to two decimals. Any positive value
        starts a not-started step; a value that rounds to 100 completes it.
        A completed step ignores further updates (use reset to reopen it).

        Raises:
            ValueError: If percentage is outside [0, 100].
        """
        value = round_half_up(percentage)
        if value < ZERO or value > HUNDRED:
            raise ValueError(f"Progress percentage must be within 0-100, got {percentage}")

        if progress.status == StepStatus.COMPLETED:
            logger.debug(f"Ignoring progress update on completed step progress {progress.id}")
            return False

        if value == HUNDRED:
            self._mark_completed(progress)
            return True

        if value > ZERO and progress.status == StepStatus.NOT_STARTED:
            progress.status = StepStatus.IN_PROGRESS
            progress.started_at = utc_now()
        progress.percentage = value
        return True

    @stamps_updated_at
    def add_study_time(self, progress: UserStepProgress, hours: Number) -> bool:
        """
        Add study hours, whatever the state.

        Raises:
            ValueError: If hours is negative.
        """
        value = round_half_up(hours)
        if value < ZERO:
            raise ValueError(f"Study time must be non-negative, got {hours}")
        if value == ZERO:
            return False
        progress.study_hours = round_half_up((progress.study_hours or ZERO) + value)
        return True

    @stamps_updated_at
    def reset(self, progress: UserStepProgress) -> bool:
        """
        Any state → NOT_STARTED, clearing percentage and timestamps.

        Resetting a step that was never touched is an invalid transition
        and is ignored.
        """
        untouched = (
            progress.status == StepStatus.NOT_STARTED
            and (progress.percentage or ZERO) == ZERO
            and progress.started_at is None
        )
        if untouched:
            logger.debug(f"Reset ignored: step progress {progress.id} has no progress")
            return False

        progress.status = StepStatus.NOT_STARTED
        progress.percentage = ZERO
        progress.started_at = None
        progress.completed_at = None
        return True

    @stamps_updated_at
    def complete(self, progress: UserStepProgress) -> bool:
        """
        Mark the step completed regardless of its current percentage.

        Shortcut for bulk-completion flows. No-op on a completed step.
        """
        if progress.status == StepStatus.COMPLETED:
            return False
        self._mark_completed(progress)
        return True

    def complete_with_study_time(self, progress: UserStepProgress, hours: Number) -> bool:
        """Complete the step and book the study time spent on it."""
        studied = self.add_study_time(progress, hours)
        completed = self.complete(progress)
        return studied or completed

    @staticmethod
    def _mark_completed(progress: UserStepProgress) -> None:
        now = utc_now()
        if progress.started_at is None:
            progress.started_at = now
        progress.status = StepStatus.COMPLETED
        progress.percentage = HUNDRED
        progress.completed_at = now

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_step_progress(
        self, user_id: int, step_id: int, for_update: bool = False
    ) -> Optional[UserStepProgress]:
        """
        Find a user's progress row for a template step.

        When the user is enrolled in several roadmaps sharing the step, the
        earliest enrollment's row is returned.
        """
        query = (
            select(UserStepProgress)
            .where(
                UserStepProgress.user_id == user_id,
                UserStepProgress.step_id == step_id,
            )
            .order_by(UserStepProgress.id)
            .limit(1)
        )
        if for_update:
            query = query.with_for_update()
        return await self.db.scalar(query)

    async def get_by_id(
        self, step_progress_id: int, for_update: bool = False
    ) -> Optional[UserStepProgress]:
        query = select(UserStepProgress).where(UserStepProgress.id == step_progress_id)
        if for_update:
            query = query.with_for_update()
        return await self.db.scalar(query)

    async def list_for_roadmap(self, user_roadmap_id: int) -> list[UserStepProgress]:
        """All step rows of an enrollment, in step id order."""
        result = await self.db.execute(
            select(UserStepProgress)
            .where(UserStepProgress.user_roadmap_id == user_roadmap_id)
            .order_by(UserStepProgress.step_id)
        )
        return list(result.scalars().all())
