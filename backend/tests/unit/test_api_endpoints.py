"""
API Endpoint Tests

Exercises the HTTP surface against the in-memory test database:
- Activity recording (success, quota denial, validation, partial failure)
- Roadmap enrollment, lifecycle transitions and step progress
- Study stats and AI usage views
- Health checks

Run with: pytest tests/unit/test_api_endpoints.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from nextstep.db.base import get_db
from nextstep.db.models import LearningActivity
from nextstep.dependencies import get_activity_router
from nextstep.enums.progress import UserRole
from nextstep.main import app
from nextstep.services.notifications import DatabaseNotificationDispatcher
from nextstep.services.progress import ActivityRouter

ERROR_KEYS = {"error", "message", "error_id", "details", "timestamp"}


@pytest_asyncio.fixture
async def client(db_session):
    """HTTP client for the app with get_db bound to the test session."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def enroll(client, user, template) -> dict:
    response = await client.post(
        f"/api/roadmaps/{template.id}/enroll", json={"user_id": user.id}
    )
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Activities
# =============================================================================


class TestRecordActivity:
    """POST /api/activities"""

    @pytest.mark.asyncio
    async def test_study_session(self, client, make_user) -> None:
        user = await make_user()

        response = await client.post(
            "/api/activities",
            json={"user_id": user.id, "type": "study_session", "duration_minutes": 45},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "recorded"
        assert data["daily_stat"]["study_minutes"] == 45
        assert data["daily_stat"]["is_active_day"] is True
        assert data["streak_day_number"] == 1
        assert data["failures"] == []

    @pytest.mark.asyncio
    async def test_writes_audit_entry(self, client, db_session, make_user) -> None:
        user = await make_user()

        await client.post(
            "/api/activities",
            json={
                "user_id": user.id,
                "type": "search",
                "metadata": {"query": "python decorators"},
            },
        )

        entries = (
            await db_session.scalars(
                select(LearningActivity).where(LearningActivity.user_id == user.id)
            )
        ).all()
        assert len(entries) == 1
        assert entries[0].target_type == "search"
        assert entries[0].details == {"query": "python decorators"}

    @pytest.mark.asyncio
    async def test_quota_exhausted_returns_429(self, client, db_session, make_user) -> None:
        user = await make_user(UserRole.GUEST)

        response = await client.post(
            "/api/activities", json={"user_id": user.id, "type": "ai_question"}
        )

        assert response.status_code == 429
        body = response.json()
        assert set(body) == ERROR_KEYS
        assert body["error"] == "quota_exceeded"
        assert body["details"]["remaining_messages"] == 0
        audit = await db_session.scalar(
            select(LearningActivity).where(LearningActivity.user_id == user.id)
        )
        assert audit is None

    @pytest.mark.asyncio
    async def test_unknown_user_returns_404(self, client) -> None:
        response = await client.post("/api/activities", json={"user_id": 4242, "type": "search"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_template_returns_404(self, client, make_user) -> None:
        user = await make_user()

        response = await client.post(
            "/api/activities",
            json={"user_id": user.id, "type": "roadmap_start", "target_id": 999},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, client, make_user) -> None:
        user = await make_user()

        response = await client.post(
            "/api/activities",
            json={"user_id": user.id, "type": "search", "points": 10},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_naive_timestamp_rejected(self, client, make_user) -> None:
        user = await make_user()

        response = await client.post(
            "/api/activities",
            json={"user_id": user.id, "type": "search", "timestamp": "2026-06-15T12:00:00"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_partial_failure_returns_503(self, client, db_session, make_user) -> None:
        user = await make_user()
        activity_router = ActivityRouter(db_session, DatabaseNotificationDispatcher(db_session))
        activity_router.daily.apply = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("disk full"))
        )
        app.dependency_overrides[get_activity_router] = lambda: activity_router

        response = await client.post(
            "/api/activities", json={"user_id": user.id, "type": "search"}
        )

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "storage_failure"
        assert [f["stage"] for f in body["details"]["failures"]] == ["daily_stat"]
        # The audit entry is kept with the applied stages
        audit = await db_session.scalar(
            select(LearningActivity).where(LearningActivity.user_id == user.id)
        )
        assert audit is not None


# =============================================================================
# Roadmaps
# =============================================================================


class TestRoadmaps:
    """Roadmap and step endpoints."""

    @pytest.mark.asyncio
    async def test_enroll(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(step_count=3)

        data = await enroll(client, user, template)

        assert data["roadmap"]["status"] == "not_started"
        assert data["total_steps"] == 3
        assert data["completed_steps"] == 0
        assert all(step["status"] == "not_started" for step in data["steps"])

    @pytest.mark.asyncio
    async def test_enroll_unknown_user(self, client, make_template) -> None:
        template, _ = await make_template()

        response = await client.post(f"/api/roadmaps/{template.id}/enroll", json={"user_id": 777})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_get_missing_roadmap(self, client) -> None:
        response = await client.get("/api/roadmaps/31337")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_lifecycle(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(estimated_hours=8)
        roadmap_id = (await enroll(client, user, template))["roadmap"]["id"]

        early_pause = await client.post(f"/api/roadmaps/{roadmap_id}/pause")
        assert early_pause.status_code == 409
        assert early_pause.json()["error"] == "invalid_transition"

        started = await client.post(f"/api/roadmaps/{roadmap_id}/start")
        assert started.status_code == 200
        assert started.json()["status"] == "in_progress"
        assert started.json()["estimated_completion_date"] is not None

        assert (await client.post(f"/api/roadmaps/{roadmap_id}/start")).status_code == 409

        paused = await client.post(f"/api/roadmaps/{roadmap_id}/pause")
        assert paused.json()["status"] == "paused"

        resumed = await client.post(f"/api/roadmaps/{roadmap_id}/resume")
        assert resumed.json()["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_zero_daily_goal_clears_estimate(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(estimated_hours=8)
        roadmap_id = (await enroll(client, user, template))["roadmap"]["id"]
        await client.post(f"/api/roadmaps/{roadmap_id}/start")

        response = await client.put(f"/api/roadmaps/{roadmap_id}/daily-goal", json={"hours": 0})

        assert response.status_code == 200
        assert response.json()["daily_goal_hours"] == 0
        assert response.json()["estimated_completion_date"] is None

    @pytest.mark.asyncio
    async def test_step_progress(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(step_count=2)
        data = await enroll(client, user, template)
        roadmap_id = data["roadmap"]["id"]
        step_id = data["steps"][0]["id"]
        await client.post(f"/api/roadmaps/{roadmap_id}/start")

        response = await client.put(f"/api/steps/{step_id}/progress", json={"percentage": 100})

        assert response.status_code == 200
        detail = response.json()
        assert detail["completed_steps"] == 1
        assert Decimal(detail["roadmap"]["percentage"]) == Decimal("50")

        reset = await client.post(f"/api/steps/{step_id}/reset")
        assert reset.status_code == 200
        assert reset.json()["completed_steps"] == 0
        assert Decimal(reset.json()["roadmap"]["percentage"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_step_progress_out_of_range(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template()
        step_id = (await enroll(client, user, template))["steps"][0]["id"]

        response = await client.put(f"/api/steps/{step_id}/progress", json={"percentage": 150})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_step(self, client) -> None:
        response = await client.post("/api/steps/555/reset")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_all(self, client, make_user, make_template) -> None:
        user = await make_user()
        template, _ = await make_template(step_count=3)
        roadmap_id = (await enroll(client, user, template))["roadmap"]["id"]
        await client.post(f"/api/roadmaps/{roadmap_id}/start")

        response = await client.post(f"/api/roadmaps/{roadmap_id}/complete-all")

        assert response.status_code == 200
        detail = response.json()
        assert detail["roadmap"]["status"] == "completed"
        assert detail["completed_steps"] == 3


# =============================================================================
# Stats & Usage
# =============================================================================


class TestStats:
    """GET /api/stats/..."""

    @pytest.mark.asyncio
    async def test_daily_without_activity(self, client, make_user) -> None:
        user = await make_user()

        response = await client.get(f"/api/stats/{user.id}/daily", params={"day": "2026-01-05"})

        assert response.status_code == 200
        data = response.json()
        assert data["study_date"] == "2026-01-05"
        assert data["study_minutes"] == 0
        assert data["formatted_study_time"] == "0m"

    @pytest.mark.asyncio
    async def test_stats_after_activity(self, client, make_user) -> None:
        user = await make_user()
        today = datetime.now(timezone.utc).date()
        await client.post(
            "/api/activities",
            json={"user_id": user.id, "type": "study_session", "duration_minutes": 65},
        )

        daily = (await client.get(f"/api/stats/{user.id}/daily")).json()
        streak = (await client.get(f"/api/stats/{user.id}/streak")).json()
        history = (await client.get(f"/api/stats/{user.id}/history", params={"weeks": 1})).json()

        assert daily["study_date"] == today.isoformat()
        assert daily["formatted_study_time"] == "1h 05m"
        assert streak["current_streak"] == 1
        assert streak["is_active_today"] is True
        assert history["total_active_days"] == 1
        assert history["total_minutes"] == 65

    @pytest.mark.asyncio
    async def test_history_weeks_bounded(self, client, make_user) -> None:
        user = await make_user()
        response = await client.get(f"/api/stats/{user.id}/history", params={"weeks": 0})
        assert response.status_code == 422


class TestUsage:
    """GET /api/usage/..."""

    @pytest.mark.asyncio
    async def test_summary(self, client, make_user) -> None:
        user = await make_user()
        await client.post(
            "/api/activities", json={"user_id": user.id, "type": "ai_question", "tokens": 500}
        )

        data = (await client.get(f"/api/usage/{user.id}")).json()

        assert data["role"] == UserRole.FREE_MEMBER.value
        assert data["message_count"] == 1
        assert data["remaining_messages"] == 9
        assert data["token_count"] == 500
        assert data["limit_info"] == "messages: 1/10, tokens: 500/50000"

    @pytest.mark.asyncio
    async def test_lapsed_premium_sees_free_limits(self, client, make_user) -> None:
        user = await make_user(
            UserRole.PREMIUM_MEMBER,
            subscription_end_date=datetime(2020, 1, 1, tzinfo=timezone.utc),
        )

        data = (await client.get(f"/api/usage/{user.id}")).json()

        assert data["role"] == UserRole.FREE_MEMBER.value
        assert data["message_limit"] == 10

    @pytest.mark.asyncio
    async def test_history(self, client, make_user) -> None:
        user = await make_user(UserRole.ADMIN)
        for _ in range(3):
            await client.post("/api/activities", json={"user_id": user.id, "type": "ai_question"})

        data = (await client.get(f"/api/usage/{user.id}/history", params={"days": 7})).json()

        assert data["total_messages"] == 3
        assert len(data["days"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, client) -> None:
        assert (await client.get("/api/usage/999")).status_code == 404


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    """Health check endpoints."""

    @pytest.mark.asyncio
    async def test_basic(self, client) -> None:
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_detailed(self, client) -> None:
        data = (await client.get("/api/health/detailed")).json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"]["status"] == "healthy"
