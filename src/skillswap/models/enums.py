"""
Enums for domain models.
Enums provide type safety and clarity. Validation for categorical fields.
"""

import enum


class SessionStatus(str, enum.Enum):
    """Session lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {SessionStatus.REJECTED, SessionStatus.CANCELLED, SessionStatus.COMPLETED}
)

# Everything except rejected/cancelled still occupies the calendar
BLOCKING_STATUSES = frozenset(
    {SessionStatus.PENDING, SessionStatus.ACCEPTED, SessionStatus.COMPLETED}
)


class SessionAction(str, enum.Enum):
    """Actions that drive the session state machine."""

    CREATE = "create"
    ACCEPT = "accept"
    REJECT = "reject"
    PROPOSE_ALTERNATIVE = "propose_alternative"
    CANCEL = "cancel"
    COMPLETE = "complete"
    FEEDBACK = "feedback"


class ResponseAction(str, enum.Enum):
    """Actions accepted by the respond operation."""

    ACCEPT = "accept"
    REJECT = "reject"
    PROPOSE_ALTERNATIVE = "propose_alternative"


class ParticipantRole(str, enum.Enum):
    """Role of an identity with respect to a session."""

    REQUESTER = "requester"
    PROVIDER = "provider"
    NONE = "none"


class SkillLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class SessionType(str, enum.Enum):
    ONLINE = "online"
    IN_PERSON = "in-person"
    HYBRID = "hybrid"


class RoleFilter(str, enum.Enum):
    """Which side of a user's sessions to list."""

    ALL = "all"
    REQUESTED = "requested"
    RECEIVED = "received"
