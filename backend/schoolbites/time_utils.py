from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional

from .errors import InvalidInputError


_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_utc(now: Optional[datetime] = None) -> date:
    """Calendar day of `now` (defaults to server time) in UTC."""
    return (now or utcnow()).date()


def parse_iso_date(value: Optional[str], field: str = "date") -> date:
    """
    Parse a calendar day given as a strict "YYYY-MM-DD" string.

    Timestamps are rejected on purpose: calendar days travel as plain
    strings so no timezone can shift them by one.
    """
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        raise InvalidInputError(f"{field} must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidInputError(f"{field} is not a valid calendar date")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def as_naive_utc(dt: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; naive input is assumed UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
