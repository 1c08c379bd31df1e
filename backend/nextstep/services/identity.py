"""
Identity Provider

Supplies the role and premium-subscription facts the progress engine needs
about a user. Account management itself lives outside this service.

Usage:
    from nextstep.services.identity import DatabaseIdentityProvider

    provider = DatabaseIdentityProvider(db)
    identity = await provider.get_identity(user_id)
"""

from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.models import User
from nextstep.enums.progress import UserRole
from nextstep.models.progress import UserIdentity


class IdentityProvider(Protocol):
    """Looks up a user's role and subscription validity."""

    async def get_identity(self, user_id: int) -> Optional[UserIdentity]:
        """Return the user's identity, or None for an unknown user."""
        ...


def subscription_active(end_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True while a subscription end date lies in the future."""
    if end_date is None:
        return False
    if end_date.tzinfo is None:
        # Some backends (SQLite) hand back naive UTC datetimes
        end_date = end_date.replace(tzinfo=timezone.utc)
    return end_date > (now or datetime.now(timezone.utc))


class DatabaseIdentityProvider:
    """IdentityProvider backed by the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_identity(self, user_id: int) -> Optional[UserIdentity]:
        user = await self.db.get(User, user_id)
        if user is None:
            return None
        premium_valid = (
            user.role != UserRole.PREMIUM_MEMBER
            or subscription_active(user.subscription_end_date)
        )
        return UserIdentity(user_id=user.id, role=user.role, premium_valid=premium_valid)
