"""SkillSession model: a negotiated, time-bound skill exchange appointment."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from skillswap.models.session_feedback import SessionFeedback

import uuid
from datetime import datetime, timedelta

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.core.db import Base
from skillswap.core.intervals import Interval, duration_hours, end_time, time_until
from skillswap.models.enums import SessionStatus, SessionType
from skillswap.utils.datetime import now_utc

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480

JSONType = JSON().with_variant(JSONB(), "postgresql")


class SkillSession(Base):
    """A skill exchange session between a requester and a provider."""

    __tablename__ = "skill_sessions"
    __table_args__ = (
        CheckConstraint("requester_id <> provider_id", name="ck_skill_sessions_distinct_participants"),
        CheckConstraint(
            f"duration_minutes >= {MIN_DURATION_MINUTES} AND duration_minutes <= {MAX_DURATION_MINUTES}",
            name="ck_skill_sessions_duration_range",
        ),
        # Conflict detection scans a participant's calendar by start time
        Index("ix_skill_sessions_requester_calendar", "requester_id", "status", "scheduled_start"),
        Index("ix_skill_sessions_provider_calendar", "provider_id", "status", "scheduled_start"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # {"name": ..., "category": ..., "level": ...}, copied verbatim
    skill: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    scheduled_start: Mapped[datetime] = mapped_column(nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.PENDING.value,
        index=True,
    )

    session_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SessionType.ONLINE.value,
    )
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)

    request_message: Mapped[str | None] = mapped_column(String(500), nullable=True)
    response_message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Set exactly once by their transition, never cleared
    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(300), nullable=True)

    # {"proposed_start", "previous_start", "message", "proposed_by", "proposed_at"}
    alternative_proposal: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    requester_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Optimistic concurrency token: UPDATEs are conditioned on it
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
    )

    feedback: Mapped[list["SessionFeedback"]] = relationship(
        "SessionFeedback",
        back_populates="session",
        lazy="selectin",
        order_by="SessionFeedback.submitted_at",
    )

    __mapper_args__ = {"version_id_col": version}

    # CALCULATED PROPERTIES
    @property
    def session_status(self) -> SessionStatus:
        return SessionStatus(self.status)

    @property
    def end_time(self) -> datetime:
        return end_time(self.scheduled_start, self.duration_minutes)

    @property
    def interval(self) -> Interval:
        return Interval(self.scheduled_start, self.end_time)

    @property
    def duration_hours(self) -> float:
        return duration_hours(self.duration_minutes)

    @property
    def participants(self) -> tuple[str, str]:
        return (self.requester_id, self.provider_id)

    def time_until_start(self, now: datetime) -> timedelta:
        """Time left before the session starts, zero once started."""
        return time_until(self.scheduled_start, now)

    def feedback_from(self, reviewer_id: str) -> "SessionFeedback | None":
        for entry in self.feedback:
            if entry.reviewer_id == reviewer_id:
                return entry
        return None

    def __repr__(self) -> str:
        return (
            f"<SkillSession(id={self.id}, requester_id={self.requester_id}, "
            f"provider_id={self.provider_id}, status={self.status})>"
        )
