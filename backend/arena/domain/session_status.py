"""
Session status is a function of wall-clock time, never of stored state.
"""

from datetime import datetime, timezone

from arena.domain.enums import SessionStatus


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def derive_session_status(now: datetime, start_time: datetime, end_time: datetime) -> SessionStatus:
    now, start_time, end_time = as_utc(now), as_utc(start_time), as_utc(end_time)
    if now < start_time:
        return SessionStatus.PENDING
    if now <= end_time:
        return SessionStatus.STARTED
    return SessionStatus.COMPLETED
