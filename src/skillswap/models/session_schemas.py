"""Pydantic schemas for the session booking API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from skillswap.core.validators import (
    sanitize_html,
    validate_meeting_link,
    validate_participant_id,
)
from skillswap.models.enums import ParticipantRole, ResponseAction, SessionType, SkillLevel


class SkillPayload(BaseModel):
    """Skill being exchanged. Opaque to the booking engine."""

    name: str = Field(..., min_length=2, max_length=100)
    category: str = Field(..., min_length=2, max_length=50)
    level: SkillLevel

    @field_validator("name", "category", mode="before")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class SessionDetails(BaseModel):
    """Optional logistics attached to a booking request."""

    session_type: SessionType = SessionType.ONLINE
    timezone: str = Field("UTC", max_length=64)
    location: str | None = Field(None, max_length=200)
    meeting_link: str | None = Field(None, max_length=500)
    request_message: str | None = Field(None, max_length=500)

    @field_validator("meeting_link")
    @classmethod
    def validate_link(cls, v: str | None) -> str | None:
        return validate_meeting_link(v)

    @field_validator("location", "request_message")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class SessionCreate(SessionDetails):
    """Schema for requesting a new session.

    Duration bounds and start-in-future are enforced by the booking
    service so every caller gets the same domain error.
    """

    provider_id: str
    skill: SkillPayload
    scheduled_start: datetime
    duration_minutes: int

    @field_validator("provider_id")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        return validate_participant_id(v, "Provider ID")

    def details(self) -> SessionDetails:
        # Fields were validated on this model; re-validating would double-escape
        return SessionDetails.model_construct(
            **self.model_dump(include=set(SessionDetails.model_fields))
        )


class RespondRequest(BaseModel):
    """Provider response (accept/reject) or an alternative time proposal."""

    action: ResponseAction
    response_message: str | None = Field(None, max_length=500)
    reason: str | None = Field(None, max_length=500)
    meeting_link: str | None = Field(None, max_length=500)
    location: str | None = Field(None, max_length=200)
    proposed_start: datetime | None = None
    # Accept at this start instead of the requested one
    confirmed_start: datetime | None = None
    message: str | None = Field(None, max_length=500)

    @field_validator("meeting_link")
    @classmethod
    def validate_link(cls, v: str | None) -> str | None:
        return validate_meeting_link(v)

    @field_validator("response_message", "reason", "location", "message")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class ProposeAlternativeRequest(BaseModel):
    proposed_start: datetime
    message: str | None = Field(None, max_length=500)

    @field_validator("message")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=300)

    @field_validator("reason")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class CompleteRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class FeedbackRequest(BaseModel):
    """Rating bounds are checked by the booking service."""

    rating: int
    comment: str | None = Field(None, max_length=1000)

    @field_validator("comment")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_html(v)


class SessionFeedbackRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    reviewer_id: str
    rating: int
    comment: str | None
    submitted_at: datetime


class SkillSessionRead(BaseModel):
    """Session as returned to callers, including derived views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: str
    provider_id: str
    skill: dict
    scheduled_start: datetime
    duration_minutes: int
    end_time: datetime
    duration_hours: float
    timezone: str
    status: str
    session_type: str
    location: str | None
    meeting_link: str | None
    request_message: str | None
    response_message: str | None
    responded_at: datetime | None
    cancelled_at: datetime | None
    completed_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    alternative_proposal: dict | None
    requester_notes: str | None
    provider_notes: str | None
    feedback: list[SessionFeedbackRead] = []
    version: int
    created_at: datetime
    updated_at: datetime
    user_role: ParticipantRole | None = None
    # Zero once the session has started; None when no clock reading was given
    time_until_start_seconds: int | None = None

    @classmethod
    def from_session(
        cls,
        session,
        role: ParticipantRole | None = None,
        now: datetime | None = None,
    ) -> "SkillSessionRead":
        read = cls.model_validate(session)
        read.user_role = role
        if now is not None:
            read.time_until_start_seconds = int(session.time_until_start(now).total_seconds())
        return read


class ConflictingSession(BaseModel):
    """Compact view of a session blocking a candidate interval."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheduled_start: datetime
    duration_minutes: int
    end_time: datetime
    status: str


class ConflictCheckResult(BaseModel):
    has_conflicts: bool
    user_conflicts: list[ConflictingSession]
    participant_conflicts: list[ConflictingSession] = []


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool
    limit: int


class SessionPage(BaseModel):
    sessions: list[SkillSessionRead]
    pagination: Pagination


class SessionStats(BaseModel):
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    cancelled: int = 0
    completed: int = 0
