"""Domain models package."""

from skillswap.models.enums import (
    ParticipantRole,
    ResponseAction,
    RoleFilter,
    SessionAction,
    SessionStatus,
    SessionType,
    SkillLevel,
)
from skillswap.models.participant_calendar import ParticipantCalendar
from skillswap.models.session_feedback import SessionFeedback
from skillswap.models.session_schemas import (
    CancelRequest,
    CompleteRequest,
    ConflictCheckResult,
    ConflictingSession,
    FeedbackRequest,
    Pagination,
    ProposeAlternativeRequest,
    RespondRequest,
    SessionCreate,
    SessionDetails,
    SessionFeedbackRead,
    SessionPage,
    SessionStats,
    SkillPayload,
    SkillSessionRead,
)
from skillswap.models.skill_session import SkillSession

__all__ = [
    "CancelRequest",
    "CompleteRequest",
    "ConflictCheckResult",
    "ConflictingSession",
    "FeedbackRequest",
    "Pagination",
    "ParticipantCalendar",
    "ParticipantRole",
    "ProposeAlternativeRequest",
    "RespondRequest",
    "ResponseAction",
    "RoleFilter",
    "SessionAction",
    "SessionCreate",
    "SessionDetails",
    "SessionFeedback",
    "SessionFeedbackRead",
    "SessionPage",
    "SessionStats",
    "SessionStatus",
    "SessionType",
    "SkillLevel",
    "SkillPayload",
    "SkillSession",
    "SkillSessionRead",
]
