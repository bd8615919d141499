# Overview: UTC clock and datetime (de)serialization shared by models, services and reports.

"""
All timestamps are stored UTC-naive. The API speaks ISO-8601 with a
trailing "Z"; anything carrying an offset is converted to UTC on the way in.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-03-01T09:30" -> naive, read as UTC
    "2026-03-01T15:30+06:00" / "...Z" -> shifted to UTC, tzinfo dropped
    None or blank -> None

    Raises ValueError for anything datetime.fromisoformat rejects.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 in UTC, e.g. "2026-03-01T09:30:00Z"."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a UTC calendar day, used by daily sales summaries."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def month_start(dt: datetime, months_back: int = 0) -> datetime:
    """
    Midnight on the 1st of the month `months_back` months before dt's month.

    Negative values move forward, so month_start(now, -1) is the end bound of
    the current month.
    """
    index = dt.year * 12 + (dt.month - 1) - months_back
    return datetime(index // 12, index % 12 + 1, 1)
