"""
Unit tests for RoadmapProgressAggregator.

Tests cover:
- Enrollment (step rows, idempotence, unknown/inactive templates)
- Recompute: percentage formula, zero steps, completion, no regression
- Direct complete/pause/resume/start transitions
- Completion date estimates and the daily goal
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from nextstep.enums.progress import RoadmapStatus, StepStatus
from nextstep.middleware.error_handling import NotFoundError
from nextstep.services.progress.common import HUNDRED, ZERO
from nextstep.services.progress.roadmap_aggregator import (
    RoadmapProgressAggregator,
    completion_percentage,
)
from nextstep.services.progress.step_tracker import StepProgressTracker


async def enroll_and_start(db_session, make_user, make_template, **template_kwargs):
    user = await make_user()
    template, _ = await make_template(**template_kwargs)
    aggregator = RoadmapProgressAggregator(db_session)
    roadmap, _ = await aggregator.enroll(user.id, template.id)
    await aggregator.start(roadmap)
    steps = await StepProgressTracker(db_session).list_for_roadmap(roadmap.id)
    return aggregator, roadmap, steps


# =============================================================================
# Percentage Formula
# =============================================================================


class TestCompletionPercentage:
    """Tests for completion_percentage."""

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            pytest.param(0, 0, ZERO, id="no_steps"),
            pytest.param(0, 4, ZERO, id="none_done"),
            pytest.param(2, 4, Decimal("50.00"), id="half"),
            pytest.param(1, 3, Decimal("33.33"), id="one_third"),
            pytest.param(2, 3, Decimal("66.67"), id="two_thirds_rounds_up"),
            pytest.param(1, 8, Decimal("12.50"), id="eighth"),
            pytest.param(7, 7, HUNDRED, id="all"),
        ],
    )
    def test_formula(self, completed: int, total: int, expected: Decimal) -> None:
        assert completion_percentage(completed, total) == expected


# =============================================================================
# Enrollment
# =============================================================================


class TestEnroll:
    """Tests for enroll()."""

    @pytest.mark.asyncio
    async def test_creates_enrollment_and_steps(self, db_session, make_user, make_template) -> None:
        user = await make_user()
        template, steps = await make_template(step_count=3, title="Data Engineer")
        aggregator = RoadmapProgressAggregator(db_session)

        roadmap, created = await aggregator.enroll(user.id, template.id)

        assert created is True
        assert roadmap.title == "Data Engineer"
        assert roadmap.status == RoadmapStatus.NOT_STARTED
        assert roadmap.daily_goal_hours == 1

        detail = await aggregator.get_detail(roadmap)
        assert detail.total_steps == 3
        assert detail.completed_steps == 0
        assert {s.step_id for s in detail.steps} == {s.id for s in steps}
        assert all(s.status == StepStatus.NOT_STARTED for s in detail.steps)

    @pytest.mark.asyncio
    async def test_enroll_twice_returns_existing(self, db_session, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(step_count=2)
        aggregator = RoadmapProgressAggregator(db_session)

        first, _ = await aggregator.enroll(user.id, template.id)
        second, created = await aggregator.enroll(user.id, template.id)

        assert created is False
        assert second.id == first.id
        assert (await aggregator.get_detail(second)).total_steps == 2

    @pytest.mark.asyncio
    async def test_unknown_template(self, db_session, make_user) -> None:
        user = await make_user()
        with pytest.raises(NotFoundError):
            await RoadmapProgressAggregator(db_session).enroll(user.id, 404)

    @pytest.mark.asyncio
    async def test_inactive_template(self, db_session, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(is_active=False)
        with pytest.raises(NotFoundError):
            await RoadmapProgressAggregator(db_session).enroll(user.id, template.id)


# =============================================================================
# Recompute
# =============================================================================


class TestRecompute:
    """Tests for recompute()."""

    @pytest.mark.asyncio
    async def test_half_of_four_steps(self, db_session, make_user, make_template) -> None:
        """2 of 4 steps completed: 50.00 and still in progress."""
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=4
        )
        tracker = StepProgressTracker(db_session)
        for progress in steps[:2]:
            tracker.update_progress(progress, 100)

        percentage = await aggregator.recompute(roadmap)

        assert percentage == Decimal("50.00")
        assert roadmap.percentage == Decimal("50.00")
        assert roadmap.status == RoadmapStatus.IN_PROGRESS
        assert roadmap.completed_at is None

    @pytest.mark.asyncio
    async def test_all_steps_complete_roadmap(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=4
        )
        tracker = StepProgressTracker(db_session)
        for progress in steps:
            tracker.update_progress(progress, 100)

        percentage = await aggregator.recompute(roadmap)

        assert percentage == HUNDRED
        assert roadmap.status == RoadmapStatus.COMPLETED
        assert roadmap.completed_at is not None
        assert roadmap.updated_at is not None

    @pytest.mark.asyncio
    async def test_rounding_of_thirds(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=3
        )
        tracker = StepProgressTracker(db_session)
        tracker.update_progress(steps[0], 100)
        assert await aggregator.recompute(roadmap) == Decimal("33.33")

        tracker.update_progress(steps[1], 100)
        assert await aggregator.recompute(roadmap) == Decimal("66.67")

    @pytest.mark.asyncio
    async def test_partial_steps_do_not_count(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=2
        )
        StepProgressTracker(db_session).update_progress(steps[0], "99.99")

        assert await aggregator.recompute(roadmap) == ZERO

    @pytest.mark.asyncio
    async def test_zero_steps(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, _ = await enroll_and_start(
            db_session, make_user, make_template, step_count=0
        )

        assert await aggregator.recompute(roadmap) == ZERO
        assert roadmap.status == RoadmapStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_recompute_never_reopens(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=2
        )
        tracker = StepProgressTracker(db_session)
        for progress in steps:
            tracker.update_progress(progress, 100)
        await aggregator.recompute(roadmap)

        tracker.reset(steps[0])
        percentage = await aggregator.recompute(roadmap)

        assert percentage == Decimal("50.00")
        assert roadmap.status == RoadmapStatus.COMPLETED


# =============================================================================
# Direct Transitions
# =============================================================================


class TestTransitions:
    """Tests for complete/pause/resume/start."""

    @pytest.mark.asyncio
    async def test_direct_complete_leaves_steps(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=3
        )

        assert aggregator.complete(roadmap) is True
        assert roadmap.status == RoadmapStatus.COMPLETED
        assert roadmap.percentage == HUNDRED
        assert all(s.status == StepStatus.NOT_STARTED for s in steps)
        assert aggregator.complete(roadmap) is False

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, steps = await enroll_and_start(
            db_session, make_user, make_template, step_count=2
        )
        StepProgressTracker(db_session).update_progress(steps[0], 100)
        await aggregator.recompute(roadmap)

        assert aggregator.pause(roadmap) is True
        assert roadmap.status == RoadmapStatus.PAUSED
        assert roadmap.percentage == Decimal("50.00")
        assert aggregator.pause(roadmap) is False

        assert aggregator.resume(roadmap) is True
        assert roadmap.status == RoadmapStatus.IN_PROGRESS
        assert aggregator.resume(roadmap) is False

    @pytest.mark.asyncio
    async def test_pause_requires_in_progress(self, db_session, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template()
        aggregator = RoadmapProgressAggregator(db_session)
        roadmap, _ = await aggregator.enroll(user.id, template.id)

        assert aggregator.pause(roadmap) is False
        assert roadmap.status == RoadmapStatus.NOT_STARTED

    @pytest.mark.asyncio
    async def test_start_only_from_not_started(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, _ = await enroll_and_start(db_session, make_user, make_template)
        started_at = roadmap.started_at

        assert roadmap.status == RoadmapStatus.IN_PROGRESS
        assert started_at is not None
        assert await aggregator.start(roadmap) is False
        assert roadmap.started_at == started_at


# =============================================================================
# Estimates
# =============================================================================


class TestEstimates:
    """Tests for the completion date estimate."""

    NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "total,studied,goal,days",
        [
            pytest.param(10, 0, 1, 10, id="whole_days"),
            pytest.param(10, 4, 4, 2, id="rounds_up"),
            pytest.param(10, 12, 2, 0, id="over_studied"),
        ],
    )
    def test_estimate_completion_date(self, total, studied, goal, days) -> None:
        estimate = RoadmapProgressAggregator.estimate_completion_date(total, studied, goal, self.NOW)
        assert estimate == self.NOW + timedelta(days=days)

    @pytest.mark.parametrize("goal", [0, -1, None])
    def test_no_estimate_without_positive_goal(self, goal) -> None:
        assert RoadmapProgressAggregator.estimate_completion_date(10, 0, goal, self.NOW) is None

    def test_no_estimate_without_total(self) -> None:
        assert RoadmapProgressAggregator.estimate_completion_date(None, 0, 2, self.NOW) is None

    @pytest.mark.asyncio
    async def test_start_sets_estimate_from_template(
        self, db_session, make_user, make_template
    ) -> None:
        _, roadmap, _ = await enroll_and_start(
            db_session, make_user, make_template, step_count=2, estimated_hours=10
        )

        assert roadmap.estimated_completion_date - roadmap.started_at == timedelta(days=10)

    @pytest.mark.asyncio
    async def test_estimate_falls_back_to_step_hours(
        self, db_session, make_user, make_template
    ) -> None:
        _, roadmap, _ = await enroll_and_start(
            db_session, make_user, make_template, step_hours=[2, 3, None]
        )

        assert roadmap.estimated_completion_date - roadmap.started_at == timedelta(days=5)

    @pytest.mark.asyncio
    async def test_daily_goal_reestimates(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, _ = await enroll_and_start(
            db_session, make_user, make_template, step_count=1, estimated_hours=10
        )

        assert await aggregator.set_daily_goal(roadmap, 3) is True
        assert roadmap.daily_goal_hours == 3
        delta = roadmap.estimated_completion_date - roadmap.started_at
        assert timedelta(days=4) <= delta < timedelta(days=4, minutes=1)

    @pytest.mark.asyncio
    async def test_zero_goal_clears_estimate(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, _ = await enroll_and_start(
            db_session, make_user, make_template, estimated_hours=10
        )

        await aggregator.set_daily_goal(roadmap, 0)

        assert roadmap.estimated_completion_date is None

    @pytest.mark.asyncio
    async def test_negative_goal_rejected(self, db_session, make_user, make_template) -> None:
        aggregator, roadmap, _ = await enroll_and_start(db_session, make_user, make_template)
        with pytest.raises(ValueError):
            await aggregator.set_daily_goal(roadmap, -2)

    @pytest.mark.asyncio
    async def test_goal_on_not_started_roadmap_has_no_estimate(
        self, db_session, make_user, make_template
    ) -> None:
        user = await make_user()
        template, _ = await make_template(estimated_hours=10)
        aggregator = RoadmapProgressAggregator(db_session)
        roadmap, _ = await aggregator.enroll(user.id, template.id)

        await aggregator.set_daily_goal(roadmap, 2)

        assert roadmap.daily_goal_hours == 2
        assert roadmap.estimated_completion_date is None
