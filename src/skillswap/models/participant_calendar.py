"""Per-participant calendar version used to serialize time-altering writes."""

from datetime import datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from skillswap.core.db import Base


class ParticipantCalendar(Base):
    """Version row touched by every booking or reschedule of a participant.

    Two transactions that read the same calendar version cannot both
    commit: the second UPDATE matches no row and raises StaleDataError.
    """

    __tablename__ = "participant_calendars"

    participant_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Incremented on every claim so each claim emits a versioned UPDATE
    booking_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_booked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<ParticipantCalendar(participant_id={self.participant_id}, "
            f"version={self.version})>"
        )
