"""Clock capability injected into the booking service."""

from datetime import datetime
from typing import Protocol

from skillswap.utils.datetime import now_utc


class Clock(Protocol):
    """Source of the current time as naive UTC."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return now_utc()
