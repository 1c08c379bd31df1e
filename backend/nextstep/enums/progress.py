"""
Progress Engine Enums

Defines enums for user roles, roadmap/step state machines, activity types
and the notifications the engine emits.
"""

from enum import Enum


class UserRole(str, Enum):
    """
    User roles, ordered by authority level.

    The level rank is used for "at least this role" checks:
    GUEST < FREE_MEMBER < PREMIUM_MEMBER < MENTOR < ADMIN < SUPER_ADMIN
    """

    GUEST = "guest"  # Not signed up, preview only
    FREE_MEMBER = "free_member"  # Free tier
    PREMIUM_MEMBER = "premium_member"  # Paid subscription
    MENTOR = "mentor"  # Authors roadmaps, mentors learners
    ADMIN = "admin"  # Content and user management
    SUPER_ADMIN = "super_admin"  # Whole-system operator

    @property
    def level(self) -> int:
        """Authority rank of the role (0 = guest)."""
        return _ROLE_LEVELS[self]

    def has_authority_of(self, other: "UserRole") -> bool:
        """True if this role is at least as privileged as ``other``."""
        return self.level >= other.level

    def has_higher_authority_than(self, other: "UserRole") -> bool:
        """True if this role is strictly more privileged than ``other``."""
        return self.level > other.level


_ROLE_LEVELS = {
    UserRole.GUEST: 0,
    UserRole.FREE_MEMBER: 1,
    UserRole.PREMIUM_MEMBER: 2,
    UserRole.MENTOR: 3,
    UserRole.ADMIN: 4,
    UserRole.SUPER_ADMIN: 5,
}


class QuotaKind(str, Enum):
    """Which AI usage counter a reservation is expressed in."""

    MESSAGE = "message"
    TOKEN = "token"


class StepStatus(str, Enum):
    """
    Step progress states.

    State transitions:
    - NOT_STARTED → IN_PROGRESS (start, or any progress > 0)
    - IN_PROGRESS → COMPLETED (progress reaches 100)
    - any → NOT_STARTED (explicit reset only)
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RoadmapStatus(str, Enum):
    """
    Roadmap enrollment states.

    State transitions:
    - NOT_STARTED → IN_PROGRESS (start)
    - IN_PROGRESS ↔ PAUSED (pause / resume)
    - any → COMPLETED (all steps completed)
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class ActivityType(str, Enum):
    """
    Learner activities recorded by the engine.
    """

    ROADMAP_START = "roadmap_start"
    STEP_COMPLETE = "step_complete"
    STUDY_SESSION = "study_session"
    AI_QUESTION = "ai_question"
    SEARCH = "search"


class TargetType(str, Enum):
    """What an activity's target_id points at."""

    ROADMAP = "roadmap"
    STEP = "step"
    AI_SESSION = "ai_session"
    SEARCH = "search"


class NotificationType(str, Enum):
    """
    Progress notifications emitted by the engine.

    Delivery is handled by a NotificationDispatcher.
    """

    STEP_COMPLETE = "step_complete"
    ROADMAP_COMPLETED = "roadmap_completed"
    STREAK_MILESTONE = "streak_milestone"


class RecordStatus(str, Enum):
    """Outcome of recording one activity."""

    RECORDED = "recorded"  # Stages ran (possibly with stage failures)
    DENIED = "denied"  # Quota denied, nothing applied
