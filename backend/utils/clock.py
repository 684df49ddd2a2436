"""
Time helpers.

All timestamps are stored as naive UTC, matching what SQLite hands back.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def minutes_between(start: datetime, end: datetime) -> float:
    """Minutes elapsed from `start` to `end`, fractional (not rounded)."""
    return (end - start).total_seconds() / 60
