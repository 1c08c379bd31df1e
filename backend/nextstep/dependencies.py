"""
FastAPI Dependencies

Request-scoped collaborators of the progress engine: identity lookup,
notification delivery and the activity router, all sharing the request's
database session.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nextstep.db.base import get_db
from nextstep.middleware.error_handling import NotFoundError
from nextstep.models.progress import UserIdentity
from nextstep.services.identity import DatabaseIdentityProvider, IdentityProvider
from nextstep.services.notifications import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
)
from nextstep.services.progress import ActivityRouter


async def get_identity_provider(
    db: AsyncSession = Depends(get_db),
) -> IdentityProvider:
    """Get the identity provider (users table)."""
    return DatabaseIdentityProvider(db)


async def get_notification_dispatcher(
    db: AsyncSession = Depends(get_db),
) -> NotificationDispatcher:
    """Get the notification dispatcher (notifications table)."""
    return DatabaseNotificationDispatcher(db)


async def get_activity_router(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ActivityRouter:
    """Get the activity router."""
    return ActivityRouter(db, dispatcher)


async def require_identity(provider: IdentityProvider, user_id: int) -> UserIdentity:
    """
    Look up a user's identity.

    Raises:
        NotFoundError: If the user doesn't exist.
    """
    identity = await provider.get_identity(user_id)
    if identity is None:
        raise NotFoundError(f"User {user_id} not found")
    return identity
