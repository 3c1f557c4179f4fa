from __future__ import annotations

import datetime
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def day_start(day: datetime.date) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)


def format_display(value: Optional[datetime.datetime], tz_name: str) -> str:
    """Human-readable timestamp for emails, e.g. '18-10-2026 14:05'."""
    stamp = ensure_utc(value) or utcnow()
    return stamp.astimezone(ZoneInfo(tz_name)).strftime("%d-%m-%Y %H:%M")
