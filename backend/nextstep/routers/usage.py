"""
AI Usage API Router

Read-only views of the AI usage quota ledger.

Endpoints:
- GET /api/usage/{user_id} - Today's usage against the role's limits
- GET /api/usage/{user_id}/history - Daily usage over recent days
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.config import settings
from nextstep.db.base import get_db
from nextstep.dependencies import get_identity_provider, require_identity
from nextstep.middleware.error_handling import handle_endpoint_errors
from nextstep.middleware.rate_limit import limit_analytics
from nextstep.models.progress import UsageHistoryResponse, UsageSummary
from nextstep.services.identity import IdentityProvider
from nextstep.services.progress import QuotaLedger, effective_role

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/usage", tags=["usage"])


async def get_quota_ledger(db: AsyncSession = Depends(get_db)) -> QuotaLedger:
    """Get quota ledger."""
    return QuotaLedger(db)


@router.get("/{user_id}", response_model=UsageSummary)
@limit_analytics
@handle_endpoint_errors("Get AI usage")
async def get_usage(
    request: Request,
    user_id: int,
    on: Optional[date] = Query(None, description="Usage day (defaults to today, UTC)"),
    identities: IdentityProvider = Depends(get_identity_provider),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> UsageSummary:
    """
    Get a user's AI usage for one day.

    Limits are those of the role the user is metered as: a premium member
    whose subscription lapsed sees the free tier.
    """
    identity = await require_identity(identities, user_id)
    return await ledger.get_usage_summary(user_id, effective_role(identity), on)


@router.get("/{user_id}/history", response_model=UsageHistoryResponse)
@limit_analytics
@handle_endpoint_errors("Get AI usage history")
async def get_usage_history(
    request: Request,
    user_id: int,
    days: int = Query(
        settings.USAGE_HISTORY_DAYS, ge=1, le=365, description="Number of days of history"
    ),
    identities: IdentityProvider = Depends(get_identity_provider),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> UsageHistoryResponse:
    """Get daily AI usage, oldest day first. Days without usage are omitted."""
    await require_identity(identities, user_id)
    return await ledger.get_usage_history(user_id, days=days)
