"""UTC datetime helpers. All timestamps are stored as naive UTC."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Get current UTC datetime as NAIVE for database storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC.

    Aware datetimes are converted to UTC first; naive datetimes are
    assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_utc(value: datetime) -> str:
    """Render a naive UTC datetime as an ISO string with explicit offset."""
    return value.replace(tzinfo=timezone.utc).isoformat()
