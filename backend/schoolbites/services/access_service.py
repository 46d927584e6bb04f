# Overview: Annual access window policy (school year runs July 1 to June 30).

"""
Access Expiration Policy

An access fee buys access until the end of the school year, June 30.
Paying in June already buys the following school year.

The two boundary functions mirror each other:
    previous_july_first(now) <= now.date() <= next_annual_expiration(now)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional


JUNE = 6
JULY = 7


def next_annual_expiration(now: datetime | date) -> date:
    """June 30 closing the access period bought at `now`."""
    year = now.year + 1 if now.month >= JUNE else now.year
    return date(year, JUNE, 30)


def previous_july_first(now: datetime | date) -> date:
    """July 1 opening the school year that contains `now`."""
    year = now.year if now.month >= JULY else now.year - 1
    return date(year, JULY, 1)


def school_year_window_start(now: datetime) -> datetime:
    """previous_july_first(now) as a midnight timestamp, for created_at comparisons."""
    july_first = previous_july_first(now)
    return datetime(july_first.year, july_first.month, july_first.day)


def has_active_access(access_expires_at: Optional[date], today: date) -> bool:
    """Access is active through the expiration day itself."""
    return access_expires_at is not None and access_expires_at >= today
