"""
Activity Router

Single entry point that records one learner activity across the progress
engine's aggregates.

Pipeline (fixed order):
    1. QuotaLedger           (AI_QUESTION only; a denial stops everything)
    2. StepProgressTracker   (step-targeted STEP_COMPLETE / STUDY_SESSION)
    3. RoadmapProgressAggregator
                             (ROADMAP_START enrolls/starts; a completed step
                              recomputes its roadmap)
    4. DailyStatRollup       (counters for the activity's day)
    5. StreakCalculator      (only when the day just became active)
    6. NotificationDispatcher (events collected by the stages above)

Failure model:
    Stages 2-5 each run in their own SAVEPOINT. A storage error inside a
    stage rolls back that stage only, is logged and is reported on
    RecordResult.failures; stages already applied are kept. There is no
    compensation, so a resubmitted activity relies on the state machines
    being idempotent (a second STEP_COMPLETE for a completed step is
    detected and not counted again).

Usage:
    from nextstep.services.progress import ActivityRouter

    router = ActivityRouter(db, dispatcher)
    result = await router.record(activity, identity)
"""

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models import RoadmapStep
from nextstep.db.models_progress import DailyStudyStat, UserRoadmap, UserStepProgress
from nextstep.enums.progress import (
    ActivityType,
    QuotaKind,
    RecordStatus,
    RoadmapStatus,
    StepStatus,
)
from nextstep.middleware.error_handling import StorageFailureError
from nextstep.models.progress import (
    Activity,
    ProgressEvent,
    RecordResult,
    RoadmapProgressDetail,
    RoadmapProgressSnapshot,
    StageFailure,
    StepProgressSnapshot,
    UserIdentity,
)
from nextstep.services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    roadmap_completed_event,
    step_completed_event,
    streak_milestone_event,
)
from nextstep.services.progress.common import HUNDRED, round_half_up
from nextstep.services.progress.daily_rollup import DailyStatRollup, snapshot
from nextstep.services.progress.quota_ledger import QuotaLedger, effective_role
from nextstep.services.progress.roadmap_aggregator import RoadmapProgressAggregator
from nextstep.services.progress.step_tracker import StepProgressTracker
from nextstep.services.progress.streaks import StreakCalculator, milestone_for

logger = logging.getLogger(__name__)

_FAILED = object()


class ActivityRouter:
    """
    Composes the engine components for each recorded activity.

    Args:
        db: SQLAlchemy async database session shared by all components.
        dispatcher: Receives the progress events; logs them by default.
    """

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.quota = QuotaLedger(db)
        self.steps = StepProgressTracker(db)
        self.roadmaps = RoadmapProgressAggregator(db)
        self.daily = DailyStatRollup(db)
        self.streaks = StreakCalculator(db)
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()

    async def record(self, activity: Activity, identity: UserIdentity) -> RecordResult:
        """
        Record one activity.

        Args:
            activity: The activity to apply.
            identity: Role facts of the acting user (for AI quotas).

        Returns:
            RecordResult. DENIED means the AI quota was exhausted and nothing
            was written; RECORDED may still carry stage failures.

        Raises:
            ValueError: If the identity belongs to another user.
            StorageFailureError: If the quota check itself could not run.
        """
        if identity.user_id != activity.user_id:
            raise ValueError(
                f"Identity of user {identity.user_id} cannot record for user {activity.user_id}"
            )

        result = RecordResult(status=RecordStatus.RECORDED, activity_type=activity.type)

        if activity.type == ActivityType.AI_QUESTION:
            result.quota = await self._reserve_quota(activity, identity)
            if not result.quota.allowed:
                result.status = RecordStatus.DENIED
                return result

        # Step progress
        completed_roadmap_id = None
        if activity.targets_step and activity.type in (
            ActivityType.STEP_COMPLETE,
            ActivityType.STUDY_SESSION,
        ):
            outcome = await self._run_stage(result, "step_progress", self._apply_step, activity)
            if outcome is not _FAILED and outcome is not None:
                snap, duplicate, completed_now, events = outcome
                result.step_progress = snap
                result.duplicate = duplicate
                result.events.extend(events)
                if completed_now:
                    completed_roadmap_id = snap.user_roadmap_id

        # Roadmap progress
        if activity.type == ActivityType.ROADMAP_START and activity.target_id is not None:
            outcome = await self._run_stage(
                result, "roadmap_progress", self._start_roadmap, activity
            )
            if outcome is not _FAILED:
                result.roadmap_progress = outcome
        elif completed_roadmap_id is not None:
            outcome = await self._run_stage(
                result, "roadmap_progress", self._recompute_roadmap, completed_roadmap_id
            )
            if outcome is not _FAILED and outcome is not None:
                snap, events = outcome
                result.roadmap_progress = snap
                result.events.extend(events)

        # Daily stat and streak
        if result.duplicate:
            logger.debug(
                f"Step {activity.target_id} already completed by user {activity.user_id}; "
                "daily counters left unchanged"
            )
        else:
            outcome = await self._run_stage(result, "daily_stat", self._apply_daily, activity)
            if outcome is not _FAILED:
                stat, became_active = outcome
                result.daily_stat = snapshot(stat)
                if became_active:
                    outcome = await self._run_stage(result, "streak", self._number_streak, stat)
                    if outcome is not _FAILED:
                        day_number, events = outcome
                        result.streak_day_number = day_number
                        result.daily_stat.streak_day_number = day_number
                        result.events.extend(events)

        failure = await self._dispatch(result.events)
        if failure is not None:
            result.failures.append(failure)
        return result

    async def complete_all_steps(self, roadmap: UserRoadmap) -> RoadmapProgressDetail:
        """
        Complete every step of an enrollment, then recompute it.

        Bulk flow for callers that complete a roadmap outright: the steps
        go through the completion shortcut, so the roadmap reaches
        COMPLETED the regular way (an enrollment without steps stays as it
        is).
        """
        for progress in await self.steps.list_for_roadmap(roadmap.id):
            self.steps.complete(progress)
        await self.db.flush()

        await self._dispatch(await self._recompute(roadmap))
        return await self.roadmaps.get_detail(roadmap)

    async def update_step_progress(
        self, progress: UserStepProgress, percentage: Decimal
    ) -> RoadmapProgressDetail:
        """
        Set a step's percentage and keep its roadmap in line.

        A step that completes here recomputes its roadmap and emits the
        same events as a STEP_COMPLETE activity.

        Raises:
            ValueError: If percentage is outside [0, 100].
        """
        was_completed = progress.status == StepStatus.COMPLETED
        self.steps.update_progress(progress, percentage)
        await self.db.flush()

        roadmap = await self.roadmaps.get_roadmap(progress.user_roadmap_id, for_update=True)
        events: list[ProgressEvent] = []
        if not was_completed and progress.status == StepStatus.COMPLETED:
            events.append(await self._step_completed_event(progress))
            events.extend(await self._recompute(roadmap))

        await self._dispatch(events)
        return await self.roadmaps.get_detail(roadmap)

    async def reset_step(self, progress: UserStepProgress) -> RoadmapProgressDetail:
        """
        Reset a step and recompute its roadmap.

        A roadmap that was already completed keeps its status; only its
        percentage follows the steps.
        """
        changed = self.steps.reset(progress)
        await self.db.flush()

        roadmap = await self.roadmaps.get_roadmap(progress.user_roadmap_id, for_update=True)
        if changed:
            await self._recompute(roadmap)
        return await self.roadmaps.get_detail(roadmap)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _reserve_quota(self, activity: Activity, identity: UserIdentity):
        # Charged to the current UTC day whatever the activity timestamp says
        role = effective_role(identity)
        try:
            return await self.quota.check_and_reserve(
                activity.user_id,
                role,
                kind=QuotaKind.MESSAGE,
                amount=1,
                tokens=activity.tokens,
            )
        except SQLAlchemyError as e:
            logger.error(f"Quota check failed for user {activity.user_id}: {e}")
            raise StorageFailureError(
                "Could not check AI usage quota",
                details={"stage": "quota"},
            ) from e

    async def _apply_step(self, activity: Activity):
        progress = await self.steps.get_step_progress(
            activity.user_id, activity.target_id, for_update=True
        )
        if progress is None:
            logger.warning(
                f"User {activity.user_id} has no progress row for step {activity.target_id}; "
                "step stage skipped"
            )
            return None

        events: list[ProgressEvent] = []
        duplicate = completed_now = False
        if activity.type == ActivityType.STEP_COMPLETE:
            if progress.status == StepStatus.COMPLETED:
                duplicate = True
            else:
                completed_now = self.steps.update_progress(progress, HUNDRED)
                if activity.has_study_time:
                    self.steps.add_study_time(progress, _minutes_to_hours(activity.duration_minutes))
                events.append(await self._step_completed_event(progress))
        elif activity.has_study_time:
            self.steps.add_study_time(progress, _minutes_to_hours(activity.duration_minutes))

        await self.db.flush()
        return StepProgressSnapshot.model_validate(progress), duplicate, completed_now, events

    async def _start_roadmap(self, activity: Activity) -> RoadmapProgressSnapshot:
        roadmap, _ = await self.roadmaps.enroll(activity.user_id, activity.target_id)
        roadmap = await self.roadmaps.get_roadmap(roadmap.id, for_update=True)
        await self.roadmaps.start(roadmap)
        await self.db.flush()
        return RoadmapProgressSnapshot.model_validate(roadmap)

    async def _recompute_roadmap(self, user_roadmap_id: int):
        roadmap = await self.roadmaps.get_roadmap(user_roadmap_id, for_update=True)
        if roadmap is None:
            return None
        events = await self._recompute(roadmap)
        return RoadmapProgressSnapshot.model_validate(roadmap), events

    async def _apply_daily(self, activity: Activity) -> tuple[DailyStudyStat, bool]:
        stat, became_active = await self.daily.apply(activity)
        await self.db.flush()
        return stat, became_active

    async def _number_streak(self, stat: DailyStudyStat) -> tuple[int, list[ProgressEvent]]:
        day_number = await self.streaks.on_day_activated(stat)
        await self.db.flush()

        events = []
        milestone = milestone_for(day_number)
        if milestone is not None:
            events.append(streak_milestone_event(stat.user_id, milestone))
        return day_number, events

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _recompute(self, roadmap: UserRoadmap) -> list[ProgressEvent]:
        """Recompute a roadmap; returns the completion event if it just completed."""
        previous_status = roadmap.status
        await self.roadmaps.recompute(roadmap)
        await self.db.flush()

        if previous_status != RoadmapStatus.COMPLETED and roadmap.status == RoadmapStatus.COMPLETED:
            return [roadmap_completed_event(roadmap.user_id, roadmap.id, roadmap.title)]
        return []

    async def _run_stage(
        self,
        result: RecordResult,
        stage: str,
        func: Callable[..., Awaitable[Any]],
        *args,
    ) -> Any:
        """
        Run one stage inside a SAVEPOINT.

        Returns the stage's value, or _FAILED after recording the failure.
        """
        try:
            async with self.db.begin_nested():
                return await func(*args)
        except SQLAlchemyError as e:
            logger.error(f"Stage '{stage}' failed for {result.activity_type.value} activity: {e}")
            result.failures.append(StageFailure(stage=stage, error=str(e)))
            return _FAILED

    async def _dispatch(self, events: list[ProgressEvent]) -> Optional[StageFailure]:
        """Hand events to the dispatcher; a failure is returned, not raised."""
        if not events:
            return None
        try:
            async with self.db.begin_nested():
                await self.dispatcher.dispatch(events)
        except Exception as e:
            logger.error(f"Notification dispatch failed: {type(e).__name__}: {e}")
            return StageFailure(stage="notifications", error=str(e))
        return None

    async def _step_completed_event(self, progress: UserStepProgress) -> ProgressEvent:
        step = await self.db.get(RoadmapStep, progress.step_id)
        roadmap = await self.db.get(UserRoadmap, progress.user_roadmap_id)
        return step_completed_event(
            progress.user_id,
            progress.id,
            step.title if step else f"#{progress.step_id}",
            roadmap.title if roadmap else "",
        )


def _minutes_to_hours(minutes: int) -> Decimal:
    return round_half_up(Decimal(minutes) / Decimal(60))
