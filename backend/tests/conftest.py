"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests:
- An in-memory SQLite database (aiosqlite) with the full schema
- Factories for users and roadmap templates
- Mock collaborators (database session, notification dispatcher)
"""

import itertools
import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Settings are read when nextstep.config is first imported, so the test
# configuration has to be in place before any test module imports the app.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ.update(
    {
        "DATABASE_URL": TEST_DATABASE_URL,
        "RATE_LIMIT_ENABLED": "false",
        "DEBUG": "false",
        "LOG_LEVEL": "WARNING",
    }
)

from nextstep.db.base import Base  # noqa: E402
from nextstep.db.models import RoadmapStep, RoadmapTemplate, User  # noqa: E402
from nextstep.enums.progress import UserRole  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh in-memory database with every table created.

    pysqlite's own transaction handling is switched off and BEGIN is
    emitted by SQLAlchemy instead, so SAVEPOINTs (begin_nested) behave as
    they do on PostgreSQL.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session bound to the test database (same options as the app's)."""
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session


# ============================================================================
# Data Factories
# ============================================================================


_emails = itertools.count(1)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """
    Factory for users.

    Usage:
        user = await make_user(UserRole.PREMIUM_MEMBER, subscription_end_date=...)
    """

    async def _make(
        role: UserRole = UserRole.FREE_MEMBER,
        subscription_end_date=None,
    ) -> User:
        user = User(
            email=f"learner{next(_emails)}@example.com",
            role=role,
            subscription_end_date=subscription_end_date,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def make_template(db_session: AsyncSession):
    """
    Factory for roadmap templates with their steps.

    Usage:
        template, steps = await make_template(step_count=4, estimated_hours=20)
    """

    async def _make(
        step_count: int = 4,
        estimated_hours: Optional[int] = None,
        step_hours: Optional[list[Optional[int]]] = None,
        is_active: bool = True,
        title: str = "Backend Developer",
    ) -> tuple[RoadmapTemplate, list[RoadmapStep]]:
        template = RoadmapTemplate(
            title=title,
            estimated_hours=estimated_hours,
            is_active=is_active,
        )
        db_session.add(template)
        await db_session.flush()

        hours = step_hours if step_hours is not None else [None] * step_count
        steps = [
            RoadmapStep(
                template_id=template.id,
                step_order=order,
                title=f"Step {order}",
                estimated_hours=step_estimate,
            )
            for order, step_estimate in enumerate(hours, start=1)
        ]
        db_session.add_all(steps)
        await db_session.flush()
        return template, steps

    return _make


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.scalar = AsyncMock()
    mock.flush = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_dispatcher() -> MagicMock:
    """Notification dispatcher that records the events it receives."""
    mock = MagicMock()
    mock.dispatch = AsyncMock(return_value=None)
    return mock
