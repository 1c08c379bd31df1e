"""
Activities API Router

Inbound trigger of the progress engine: turns a request into an Activity
and records it.

Endpoints:
- POST /api/activities - Record a learner activity

Responses:
- 200: Activity recorded (RecordResult)
- 404: Unknown user or roadmap template
- 429: Daily AI quota exhausted (nothing recorded)
- 503: Storage failure; details carry the partial result, whose applied
  stages were committed
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.base import get_db
from nextstep.dependencies import get_activity_router, get_identity_provider, require_identity
from nextstep.enums.progress import RecordStatus
from nextstep.middleware.error_handling import (
    QuotaExceededError,
    StorageFailureError,
    ValidationError,
    handle_endpoint_errors,
)
from nextstep.middleware.rate_limit import limit_activity
from nextstep.models.progress import ActivityRequest, RecordResult
from nextstep.services.audit import log_activity
from nextstep.services.identity import IdentityProvider
from nextstep.services.progress import ActivityRouter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.post("", response_model=RecordResult)
@limit_activity
@handle_endpoint_errors("Record activity")
async def record_activity(
    request: Request,
    body: ActivityRequest,
    db: AsyncSession = Depends(get_db),
    identities: IdentityProvider = Depends(get_identity_provider),
    activity_router: ActivityRouter = Depends(get_activity_router),
) -> RecordResult:
    """
    Record one learner activity.

    AI questions are charged against the user's daily quota first; a denied
    question is rejected with 429 and has no other effect. Every other
    stage is applied best-effort in a fixed order.
    """
    activity = body.to_activity()
    identity = await require_identity(identities, activity.user_id)

    try:
        result = await activity_router.record(activity, identity)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    if result.status == RecordStatus.DENIED:
        quota = result.quota
        raise QuotaExceededError(
            quota.reason or "Daily AI usage limit reached",
            details={
                "usage_date": quota.usage_date.isoformat(),
                "message_count": quota.message_count,
                "token_count": quota.token_count,
                "remaining_messages": quota.remaining_messages,
                "remaining_tokens": quota.remaining_tokens,
            },
        )

    await log_activity(db, activity)

    if result.failures:
        # Keep what the successful stages applied
        await db.commit()
        raise StorageFailureError(
            "Activity was only partially recorded; retry the request",
            details=result.model_dump(mode="json"),
        )

    return result
