"""Time helpers. All engine timestamps are timezone-aware UTC."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive values for ``DateTime(timezone=True)`` columns; those
    were written as UTC, so naive input is read as UTC.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
