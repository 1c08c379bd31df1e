"""
AI Usage Quota Ledger

Enforces per-role daily limits on AI messages and tokens.

Responsibilities:
- Map roles to their daily limits (ROLE_LIMITS)
- Check and reserve usage in one atomic conditional UPDATE
- Lazily create the per-user, per-day counter row
- Report remaining quota, usage percentages and usage history

Concurrency:
    The reservation is a single ``UPDATE ... WHERE count + n <= limit``.
    Concurrent requests for the same user and day serialise on the row
    lock the UPDATE takes, so two requests can never both pass a check
    that only one of them fits under.

Usage:
    from nextstep.services.progress.quota_ledger import QuotaLedger

    ledger = QuotaLedger(db)
    decision = await ledger.check_and_reserve(user_id, UserRole.FREE_MEMBER, tokens=120)
    if not decision.allowed:
        ...
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models_progress import UsageQuota
from nextstep.enums.progress import QuotaKind, UserRole
from nextstep.models.progress import (
    QuotaDecision,
    UsageHistoryDay,
    UsageHistoryResponse,
    UsageSummary,
    UserIdentity,
)
from nextstep.services.progress.common import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleLimits:
    """Daily AI limits for one role. None means unlimited."""

    messages: Optional[int]
    tokens: Optional[int]

    @property
    def unlimited(self) -> bool:
        return self.messages is None and self.tokens is None


ROLE_LIMITS: dict[UserRole, RoleLimits] = {
    UserRole.GUEST: RoleLimits(messages=0, tokens=0),
    UserRole.FREE_MEMBER: RoleLimits(messages=10, tokens=50_000),
    UserRole.PREMIUM_MEMBER: RoleLimits(messages=100, tokens=500_000),
    UserRole.MENTOR: RoleLimits(messages=200, tokens=1_000_000),
    UserRole.ADMIN: RoleLimits(messages=None, tokens=None),
    UserRole.SUPER_ADMIN: RoleLimits(messages=None, tokens=None),
}


def get_role_limits(role: UserRole) -> RoleLimits:
    """Look up the daily limits for a role."""
    return ROLE_LIMITS[role]


def effective_role(identity: UserIdentity) -> UserRole:
    """
    Role the user is metered as.

    A premium member whose subscription has lapsed gets the free tier.
    """
    if identity.role == UserRole.PREMIUM_MEMBER and not identity.premium_valid:
        return UserRole.FREE_MEMBER
    return identity.role


def remaining(count: int, limit: Optional[int]) -> Optional[int]:
    """Units left under a limit; None when unlimited."""
    if limit is None:
        return None
    return max(0, limit - count)


def usage_percentage(count: int, limit: Optional[int]) -> float:
    """Share of a limit used, capped at 100. Zero for unlimited or zero limits."""
    if not limit:
        return 0.0
    return min(100.0, round(count * 100.0 / limit, 2))


def limit_info(role: UserRole, message_count: int, token_count: int) -> str:
    """
    Human-readable usage summary.

    Example:
        >>> limit_info(UserRole.FREE_MEMBER, 3, 1200)
        'messages: 3/10, tokens: 1200/50000'
    """
    limits = get_role_limits(role)
    if limits.unlimited:
        return "unlimited"
    return (
        f"messages: {message_count}/{limits.messages}, "
        f"tokens: {token_count}/{limits.tokens}"
    )


class QuotaLedger:
    """
    Per-user, per-day AI usage counters with role-based limits.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the quota ledger.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    async def check_and_reserve(
        self,
        user_id: int,
        role: UserRole,
        kind: QuotaKind = QuotaKind.MESSAGE,
        amount: int = 1,
        tokens: int = 0,
        on: Optional[date] = None,
    ) -> QuotaDecision:
        """
        Reserve usage if it fits under the role's limits.

        A message reservation consumes ``amount`` messages plus ``tokens``
        tokens; a token reservation consumes ``amount`` tokens only. The
        request is denied if either counter would exceed its limit, in
        which case nothing is written.

        Args:
            user_id: User to charge.
            role: Role to meter the user as (see effective_role).
            kind: Counter ``amount`` is expressed in.
            amount: Units to reserve.
            tokens: Extra tokens charged with a message reservation.
            on: Usage day (defaults to today, UTC).

        Returns:
            QuotaDecision with the counters after the call.

        Raises:
            ValueError: If amount or tokens is negative.
        """
        if amount < 0 or tokens < 0:
            raise ValueError("Quota reservations must be non-negative")

        usage_date = on or utc_now().date()
        limits = get_role_limits(role)
        if kind == QuotaKind.MESSAGE:
            message_delta, token_delta = amount, tokens
        else:
            message_delta, token_delta = 0, amount

        await self._ensure_row(user_id, usage_date)

        stmt = update(UsageQuota).where(
            UsageQuota.user_id == user_id,
            UsageQuota.usage_date == usage_date,
        )
        if limits.messages is not None:
            stmt = stmt.where(UsageQuota.message_count + message_delta <= limits.messages)
        if limits.tokens is not None:
            stmt = stmt.where(UsageQuota.token_count + token_delta <= limits.tokens)
        stmt = stmt.values(
            message_count=UsageQuota.message_count + message_delta,
            token_count=UsageQuota.token_count + token_delta,
            updated_at=utc_now(),
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(stmt)
        allowed = result.rowcount == 1

        quota = await self.get_usage(user_id, usage_date, refresh=True)
        reason = None
        if not allowed:
            reason = self._denial_reason(quota, limits, message_delta, token_delta)
            logger.info(
                f"AI quota denied for user {user_id} ({role.value}) on {usage_date}: {reason}"
            )

        return QuotaDecision(
            allowed=allowed,
            reason=reason,
            role=role,
            usage_date=usage_date,
            message_count=quota.message_count,
            token_count=quota.token_count,
            remaining_messages=remaining(quota.message_count, limits.messages),
            remaining_tokens=remaining(quota.token_count, limits.tokens),
        )

    async def get_usage(
        self, user_id: int, on: Optional[date] = None, refresh: bool = False
    ) -> Optional[UsageQuota]:
        """Fetch the counter row for a day, if any usage was recorded."""
        query = select(UsageQuota).where(
            UsageQuota.user_id == user_id,
            UsageQuota.usage_date == (on or utc_now().date()),
        )
        if refresh:
            query = query.execution_options(populate_existing=True)
        return await self.db.scalar(query)

    async def get_usage_summary(
        self, user_id: int, role: UserRole, on: Optional[date] = None
    ) -> UsageSummary:
        """
        Summarise a day's usage against the role's limits.

        Args:
            user_id: User to report on.
            role: Role the user is metered as.
            on: Usage day (defaults to today, UTC).

        Returns:
            UsageSummary; counters are zero when nothing was used yet.
        """
        usage_date = on or utc_now().date()
        quota = await self.get_usage(user_id, usage_date)
        message_count = quota.message_count if quota else 0
        token_count = quota.token_count if quota else 0
        limits = get_role_limits(role)

        return UsageSummary(
            user_id=user_id,
            role=role,
            usage_date=usage_date,
            message_count=message_count,
            token_count=token_count,
            message_limit=limits.messages,
            token_limit=limits.tokens,
            remaining_messages=remaining(message_count, limits.messages),
            remaining_tokens=remaining(token_count, limits.tokens),
            message_usage_percentage=usage_percentage(message_count, limits.messages),
            token_usage_percentage=usage_percentage(token_count, limits.tokens),
            limit_info=limit_info(role, message_count, token_count),
        )

    async def get_usage_history(
        self, user_id: int, days: int = 30, today: Optional[date] = None
    ) -> UsageHistoryResponse:
        """
        Daily usage for the last ``days`` days, oldest first.

        Days without usage have no row and are omitted.
        """
        end = today or utc_now().date()
        start = end - timedelta(days=days - 1)

        result = await self.db.execute(
            select(UsageQuota)
            .where(
                UsageQuota.user_id == user_id,
                UsageQuota.usage_date >= start,
                UsageQuota.usage_date <= end,
            )
            .order_by(UsageQuota.usage_date)
        )
        rows = [UsageHistoryDay.model_validate(q) for q in result.scalars().all()]

        return UsageHistoryResponse(
            user_id=user_id,
            days=rows,
            total_messages=sum(r.message_count for r in rows),
            total_tokens=sum(r.token_count for r in rows),
        )

    async def _quota_id(self, user_id: int, usage_date: date) -> Optional[int]:
        return await self.db.scalar(
            select(UsageQuota.id).where(
                UsageQuota.user_id == user_id,
                UsageQuota.usage_date == usage_date,
            )
        )

    async def _ensure_row(self, user_id: int, usage_date: date) -> None:
        """Create the day's counter row unless it already exists."""
        if await self._quota_id(user_id, usage_date) is not None:
            return

        now = utc_now()
        try:
            async with self.db.begin_nested():
                self.db.add(
                    UsageQuota(
                        user_id=user_id,
                        usage_date=usage_date,
                        message_count=0,
                        token_count=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            # Lost the insert race; the winner's row is used
            if await self._quota_id(user_id, usage_date) is None:
                raise
            logger.debug(f"Usage row for user {user_id} on {usage_date} created concurrently")

    @staticmethod
    def _denial_reason(
        quota: UsageQuota, limits: RoleLimits, message_delta: int, token_delta: int
    ) -> str:
        if limits.messages is not None and quota.message_count + message_delta > limits.messages:
            return f"Daily AI message limit reached ({quota.message_count}/{limits.messages})"
        return f"Daily AI token limit reached ({quota.token_count}/{limits.tokens})"
