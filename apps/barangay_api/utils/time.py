"""UTC time helpers (timezone-aware calculation, naive storage)."""
from __future__ import annotations

from datetime import datetime, timezone, date


def utc_now() -> datetime:
    """Return a UTC timestamp without tzinfo for DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """Return today's date in UTC (naive)."""
    return utc_now().date()


def isoformat_or_none(value) -> str | None:
    """Serialize a date/datetime for JSON, passing None through."""
    return value.isoformat() if value else None


def parse_iso_date(value) -> date:
    """Parse a YYYY-MM-DD (or full ISO datetime) string into a date.

    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value or '').strip()
    if not raw:
        raise ValueError('empty date')
    if len(raw) == 10:
        return date.fromisoformat(raw)
    return datetime.fromisoformat(raw.replace('Z', '+00:00')).date()
