"""Feedback left by a participant on a completed session."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.core.db import Base
from skillswap.utils.datetime import now_utc

if TYPE_CHECKING:
    from skillswap.models.skill_session import SkillSession

MIN_RATING = 1
MAX_RATING = 5


class SessionFeedback(Base):
    """One rating + comment per (session, reviewer)."""

    __tablename__ = "session_feedback"
    __table_args__ = (
        # Store-level guard against duplicate submissions
        UniqueConstraint("session_id", "reviewer_id", name="uq_session_feedback_reviewer"),
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="ck_session_feedback_rating_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("skill_sessions.id"),
        nullable=False,
        index=True,
    )

    session: Mapped["SkillSession"] = relationship(
        "SkillSession",
        back_populates="feedback",
    )

    reviewer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(nullable=False, default=now_utc)

    def __repr__(self) -> str:
        return (
            f"<SessionFeedback(session_id={self.session_id}, "
            f"reviewer_id={self.reviewer_id}, rating={self.rating})>"
        )
