"""Calendar helpers shared by the agenda, records and report services.

Application and reception dates are plain calendar days; they are
exchanged as ``YYYY-MM-DD`` strings and never carry a time zone.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import Optional

from django.utils import timezone

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MONTH_RE = re.compile(r'^(\d{4})-(\d{2})$')


def parse_iso_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    raw = raw.strip()
    if not ISO_DATE_RE.match(raw):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def parse_month(raw: Optional[str]) -> Optional[tuple[date, date]]:
    """Return the ``[first day, first day of next month)`` range of ``YYYY-MM``."""
    if not raw:
        return None
    m = MONTH_RE.match(raw.strip())
    if not m:
        return None
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def iso_day(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def iso_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def day_start(value: date) -> datetime:
    """Midnight UTC of ``value``, for comparing calendar days with timestamps."""
    return datetime.combine(value, time.min, tzinfo=dt_timezone.utc)


def today() -> date:
    return timezone.localdate()


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def clamp_int(raw, default: int, lo: int, hi: Optional[int] = None) -> int:
    """Parse a pagination parameter, falling back to ``default`` and clamping."""
    try:
        value = int(raw) if raw not in (None, '') else default
    except (TypeError, ValueError):
        value = default
    value = max(value, lo)
    if hi is not None:
        value = min(value, hi)
    return value
