"""
UTC helpers. Naive datetimes are treated as UTC everywhere.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_string(dt: Optional[datetime] = None) -> str:
    """
    Millisecond ISO 8601 with a ``Z`` suffix, the format JavaScript's
    ``Date.toISOString()`` produces: ``2025-01-15T10:30:45.000Z``.
    """
    return _as_utc(dt or utc_now()).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso_string(iso_string: str) -> datetime:
    """Parse ISO 8601, accepting the ``Z`` suffix. Raises ValueError on bad input."""
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(iso_string))


def timestamp_ms() -> int:
    return int(utc_now().timestamp() * 1000)


def age_seconds(dt: datetime, now: Optional[datetime] = None) -> float:
    """Seconds elapsed since ``dt``; negative when ``dt`` lies in the future."""
    return ((now or utc_now()) - _as_utc(dt)).total_seconds()


def seconds_until(dt: datetime, now: Optional[datetime] = None) -> int:
    """Whole seconds left until ``dt``, never below zero."""
    return max(0, int(-age_seconds(dt, now)))
