"""Services package: progress engine, identity lookup, notifications and audit log."""

from nextstep.services.audit import log_activity
from nextstep.services.identity import DatabaseIdentityProvider, IdentityProvider
from nextstep.services.notifications import (
    DatabaseNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from nextstep.services.progress import ActivityRouter

__all__ = [
    "log_activity",
    "DatabaseIdentityProvider",
    "IdentityProvider",
    "DatabaseNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "ActivityRouter",
]
