"""API Routers package."""

from nextstep.routers import health as health_router
from nextstep.routers import activities as activities_router
from nextstep.routers import usage as usage_router
from nextstep.routers import roadmaps as roadmaps_router
from nextstep.routers import stats as stats_router

__all__ = [
    "health_router",
    "activities_router",
    "usage_router",
    "roadmaps_router",
    "stats_router",
]
