"""
NextStep Progress Engine API

FastAPI application exposing activity ingestion, AI usage quotas, roadmap
progress and study statistics.

Run:
    uvicorn nextstep.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from nextstep.config import settings
from nextstep.db.base import init_db
from nextstep.logging_config import setup_logging
from nextstep.middleware import setup_error_handling, setup_rate_limiting
from nextstep.routers import (
    activities_router,
    health_router,
    roadmaps_router,
    stats_router,
    usage_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup (use Alembic migrations in production)."""
    await init_db()
    logger.info(f"{settings.APP_NAME} started")
    yield
    logger.info(f"{settings.APP_NAME} shutting down")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Activity ingestion, AI usage quotas, roadmap progress and study stats",
        version="0.1.0",
        lifespan=lifespan,
    )

    setup_error_handling(app, debug=settings.DEBUG)
    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)

    app.include_router(health_router.router)
    app.include_router(activities_router.router)
    app.include_router(usage_router.router)
    app.include_router(roadmaps_router.router)
    app.include_router(roadmaps_router.steps_router)
    app.include_router(stats_router.router)

    return app


app = create_app()
