"""
Roadmaps API Router

Roadmap enrollment lifecycle and step progress.

Endpoints:
- POST /api/roadmaps/{template_id}/enroll - Enroll a user in a roadmap
- GET /api/roadmaps/{user_roadmap_id} - Enrollment with its steps
- POST /api/roadmaps/{user_roadmap_id}/start - Start the roadmap
- POST /api/roadmaps/{user_roadmap_id}/pause - Pause a running roadmap
- POST /api/roadmaps/{user_roadmap_id}/resume - Resume a paused roadmap
- POST /api/roadmaps/{user_roadmap_id}/complete-all - Complete every step
- PUT /api/roadmaps/{user_roadmap_id}/daily-goal - Change the daily study goal
- PUT /api/steps/{step_progress_id}/progress - Set a step's percentage
- POST /api/steps/{step_progress_id}/reset - Reset a step
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.base import get_db
from nextstep.db.models_progress import UserRoadmap, UserStepProgress
from nextstep.dependencies import get_activity_router, get_identity_provider, require_identity
from nextstep.middleware.error_handling import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    handle_endpoint_errors,
)
from nextstep.models.progress import (
    DailyGoalRequest,
    EnrollRequest,
    RoadmapProgressDetail,
    RoadmapProgressSnapshot,
    StepProgressUpdateRequest,
)
from nextstep.services.identity import IdentityProvider
from nextstep.services.progress import (
    ActivityRouter,
    RoadmapProgressAggregator,
    StepProgressTracker,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/roadmaps", tags=["roadmaps"])
steps_router = APIRouter(prefix="/api/steps", tags=["roadmaps"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_aggregator(db: AsyncSession = Depends(get_db)) -> RoadmapProgressAggregator:
    """Get roadmap progress aggregator."""
    return RoadmapProgressAggregator(db)


async def get_step_tracker(db: AsyncSession = Depends(get_db)) -> StepProgressTracker:
    """Get step progress tracker."""
    return StepProgressTracker(db)


async def _load_roadmap(
    aggregator: RoadmapProgressAggregator, user_roadmap_id: int
) -> UserRoadmap:
    roadmap = await aggregator.get_roadmap(user_roadmap_id, for_update=True)
    if roadmap is None:
        raise NotFoundError(f"Roadmap enrollment {user_roadmap_id} not found")
    return roadmap


async def _load_step(tracker: StepProgressTracker, step_progress_id: int) -> UserStepProgress:
    progress = await tracker.get_by_id(step_progress_id, for_update=True)
    if progress is None:
        raise NotFoundError(f"Step progress {step_progress_id} not found")
    return progress


# ===========================================
# Enrollment Endpoints
# ===========================================


@router.post(
    "/{template_id}/enroll",
    response_model=RoadmapProgressDetail,
    status_code=status.HTTP_201_CREATED,
)
@handle_endpoint_errors("Enroll in roadmap")
async def enroll(
    template_id: int,
    body: EnrollRequest,
    identities: IdentityProvider = Depends(get_identity_provider),
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressDetail:
    """
    Enroll a user in a roadmap template.

    Creates one not-started step row per template step. Enrolling again
    returns the existing enrollment.
    """
    await require_identity(identities, body.user_id)
    roadmap, _ = await aggregator.enroll(body.user_id, template_id)
    return await aggregator.get_detail(roadmap)


@router.get("/{user_roadmap_id}", response_model=RoadmapProgressDetail)
@handle_endpoint_errors("Get roadmap progress")
async def get_roadmap(
    user_roadmap_id: int,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressDetail:
    """Get an enrollment with its step progress."""
    roadmap = await aggregator.get_roadmap(user_roadmap_id)
    if roadmap is None:
        raise NotFoundError(f"Roadmap enrollment {user_roadmap_id} not found")
    return await aggregator.get_detail(roadmap)


# ===========================================
# Lifecycle Endpoints
# ===========================================


@router.post("/{user_roadmap_id}/start", response_model=RoadmapProgressSnapshot)
@handle_endpoint_errors("Start roadmap")
async def start_roadmap(
    user_roadmap_id: int,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressSnapshot:
    """Start a not-started roadmap and estimate its completion date."""
    roadmap = await _load_roadmap(aggregator, user_roadmap_id)
    if not await aggregator.start(roadmap):
        raise InvalidTransitionError(
            f"Roadmap {user_roadmap_id} cannot be started: it is {roadmap.status.value}"
        )
    return RoadmapProgressSnapshot.model_validate(roadmap)


@router.post("/{user_roadmap_id}/pause", response_model=RoadmapProgressSnapshot)
@handle_endpoint_errors("Pause roadmap")
async def pause_roadmap(
    user_roadmap_id: int,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressSnapshot:
    """Pause a roadmap in progress. Percentage is unchanged."""
    roadmap = await _load_roadmap(aggregator, user_roadmap_id)
    if not aggregator.pause(roadmap):
        raise InvalidTransitionError(
            f"Roadmap {user_roadmap_id} cannot be paused: it is {roadmap.status.value}"
        )
    return RoadmapProgressSnapshot.model_validate(roadmap)


@router.post("/{user_roadmap_id}/resume", response_model=RoadmapProgressSnapshot)
@handle_endpoint_errors("Resume roadmap")
async def resume_roadmap(
    user_roadmap_id: int,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressSnapshot:
    """Resume a paused roadmap."""
    roadmap = await _load_roadmap(aggregator, user_roadmap_id)
    if not aggregator.resume(roadmap):
        raise InvalidTransitionError(
            f"Roadmap {user_roadmap_id} cannot be resumed: it is {roadmap.status.value}"
        )
    return RoadmapProgressSnapshot.model_validate(roadmap)


@router.post("/{user_roadmap_id}/complete-all", response_model=RoadmapProgressDetail)
@handle_endpoint_errors("Complete roadmap")
async def complete_all_steps(
    user_roadmap_id: int,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
    activity_router: ActivityRouter = Depends(get_activity_router),
) -> RoadmapProgressDetail:
    """Complete every step of the roadmap; the roadmap completes with them."""
    roadmap = await _load_roadmap(aggregator, user_roadmap_id)
    return await activity_router.complete_all_steps(roadmap)


@router.put("/{user_roadmap_id}/daily-goal", response_model=RoadmapProgressSnapshot)
@handle_endpoint_errors("Set daily goal")
async def set_daily_goal(
    user_roadmap_id: int,
    body: DailyGoalRequest,
    aggregator: RoadmapProgressAggregator = Depends(get_aggregator),
) -> RoadmapProgressSnapshot:
    """
    Change the daily study goal in hours.

    A running roadmap is re-estimated; a goal of 0 clears the estimate.
    """
    roadmap = await _load_roadmap(aggregator, user_roadmap_id)
    await aggregator.set_daily_goal(roadmap, body.hours)
    return RoadmapProgressSnapshot.model_validate(roadmap)


# ===========================================
# Step Endpoints
# ===========================================


@steps_router.put("/{step_progress_id}/progress", response_model=RoadmapProgressDetail)
@handle_endpoint_errors("Update step progress")
async def update_step_progress(
    step_progress_id: int,
    body: StepProgressUpdateRequest,
    tracker: StepProgressTracker = Depends(get_step_tracker),
    activity_router: ActivityRouter = Depends(get_activity_router),
) -> RoadmapProgressDetail:
    """
    Set a step's completion percentage (rounded half-up to 2 decimals).

    Reaching 100 completes the step and recomputes the roadmap. Completed
    steps ignore updates until they are reset.
    """
    progress = await _load_step(tracker, step_progress_id)
    try:
        return await activity_router.update_step_progress(progress, body.percentage)
    except ValueError as e:
        raise ValidationError(str(e)) from e


@steps_router.post("/{step_progress_id}/reset", response_model=RoadmapProgressDetail)
@handle_endpoint_errors("Reset step progress")
async def reset_step(
    step_progress_id: int,
    tracker: StepProgressTracker = Depends(get_step_tracker),
    activity_router: ActivityRouter = Depends(get_activity_router),
) -> RoadmapProgressDetail:
    """
    Reset a step to not started.

    Resetting a step without progress changes nothing.
    """
    progress = await _load_step(tracker, step_progress_id)
    return await activity_router.reset_step(progress)
