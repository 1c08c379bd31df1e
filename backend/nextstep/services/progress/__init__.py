"""
Progress Engine Services

Activity ingestion and aggregation: AI quotas, step and roadmap progress,
daily statistics and study streaks.

Modules:
- quota_ledger: Per-role daily AI message/token limits
- step_tracker: Step progress state machine
- roadmap_aggregator: Roadmap enrollment, completion and estimates
- daily_rollup: Per-day activity counters and efficiency score
- streaks: Streak numbering, streak data and study history
- activity_router: Records one activity across all of the above

Usage:
    from nextstep.services.progress import ActivityRouter

    router = ActivityRouter(db)
    result = await router.record(activity, identity)
"""

from nextstep.services.progress.quota_ledger import (
    QuotaLedger,
    ROLE_LIMITS,
    RoleLimits,
    effective_role,
)
from nextstep.services.progress.step_tracker import StepProgressTracker
from nextstep.services.progress.roadmap_aggregator import RoadmapProgressAggregator
from nextstep.services.progress.daily_rollup import DailyStatRollup
from nextstep.services.progress.streaks import StreakCalculator
from nextstep.services.progress.activity_router import ActivityRouter

__all__ = [
    "QuotaLedger",
    "ROLE_LIMITS",
    "RoleLimits",
    "effective_role",
    "StepProgressTracker",
    "RoadmapProgressAggregator",
    "DailyStatRollup",
    "StreakCalculator",
    "ActivityRouter",
]
