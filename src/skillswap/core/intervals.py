"""Half-open time intervals occupied by sessions.

A session occupies ``[scheduled_start, scheduled_start + duration)``. Two
intervals overlap iff ``a.start < b.end and b.start < a.end``, so a session
ending at 10:00 and one starting at 10:00 do not overlap.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol


class Scheduled(Protocol):
    scheduled_start: datetime
    duration_minutes: int


@dataclass(frozen=True)
class Interval:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("Interval end must be after its start")

    @classmethod
    def of(cls, start: datetime, duration_minutes: int) -> "Interval":
        return cls(start, end_time(start, duration_minutes))

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)


def end_time(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes)


def session_interval(session: Scheduled) -> Interval:
    """Interval occupied by a session."""
    return Interval.of(session.scheduled_start, session.duration_minutes)


def overlaps(a: Interval, b: Interval) -> bool:
    """Strict half-open overlap; touching endpoints do not overlap."""
    return a.start < b.end and b.start < a.end


def duration_hours(duration_minutes: int) -> float:
    """Duration in hours rounded to one decimal place (90 -> 1.5)."""
    return round(duration_minutes / 60, 1)


def time_until(start: datetime, now: datetime) -> timedelta:
    """Time remaining until ``start``; zero once it has passed."""
    return max(start - now, timedelta(0))
