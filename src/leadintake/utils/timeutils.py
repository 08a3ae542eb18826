"""UTC helpers shared by the job state machine and the monitor."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands timezone-aware columns back without tzinfo; every timestamp
    this service writes is UTC, so a naive value is read as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_since(value: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    if value is None:
        return None
    now = now or utcnow()
    return (as_utc(now) - as_utc(value)).total_seconds()
