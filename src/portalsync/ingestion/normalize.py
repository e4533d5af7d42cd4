"""Date helpers shared by services and derived views.

Centralizes lenient handling of the many shapes a date can take once it has
been through the store, a form, or a JSON payload.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo
from typing import Any

from portalsync.store.types import StoreTimestamp

DATE_UNAVAILABLE = "Date unavailable"


def to_datetime(value: Any) -> datetime | None:
    """Best-effort conversion to a ``datetime``.

    - ``datetime`` -> returned as-is
    - ``StoreTimestamp`` -> converted
    - epoch numbers (seconds or ms) and ISO strings -> parsed as UTC
    - anything else, or unparseable input -> ``None``
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    try:
        ts = StoreTimestamp.coerce(value)
    except (TypeError, ValueError):
        return None
    if ts is None:
        return None
    try:
        return ts.to_datetime()
    except (OverflowError, ValueError):
        return None


def format_date(value: Any, fmt: str = "%d %b %Y") -> str:
    parsed = to_datetime(value)
    return parsed.strftime(fmt) if parsed else DATE_UNAVAILABLE


def format_time(value: Any, fmt: str = "%H:%M") -> str:
    parsed = to_datetime(value)
    return parsed.strftime(fmt) if parsed else ""


def format_datetime(value: Any, fmt: str = "%d %b %Y %H:%M") -> str:
    parsed = to_datetime(value)
    return parsed.strftime(fmt) if parsed else DATE_UNAVAILABLE


def days_until(value: Any, *, today: date | None = None, tz: tzinfo | None = None) -> int | None:
    """Whole calendar days from *today* to *value* (negative when past)."""
    parsed = to_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is not None or tz is not None:
        parsed = parsed.astimezone(tz)
    if today is None:
        today = datetime.now(tz).date()
    return (parsed.date() - today).days


def days_until_deadline(value: Any, *, today: date | None = None, tz: tzinfo | None = None) -> str | None:
    """Human label for a project deadline, or ``None`` when there is none."""
    days = days_until(value, today=today, tz=tz)
    if days is None:
        return None
    if days < 0:
        return "Overdue"
    if days == 0:
        return "Due today"
    if days == 1:
        return "Due tomorrow"
    return f"Due in {days} days"
