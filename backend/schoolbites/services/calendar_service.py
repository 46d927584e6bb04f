# Overview: Delivery calendar policy; decides which days are billable. Pure, no database work.

"""
Delivery Calendar

FIXED POLICY:
- Wednesday, Saturday and Sunday never have deliveries
- Any date in the school's off-day set has no delivery
- Every other day is billable

All arithmetic is on datetime.date (calendar days). Callers convert
"YYYY-MM-DD" strings at the boundary with time_utils.parse_iso_date.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import AbstractSet, Iterator

from ..errors import InvalidInputError


# date.weekday(): Monday=0 ... Sunday=6
WEDNESDAY = 2
SATURDAY = 5
SUNDAY = 6
NON_DELIVERY_WEEKDAYS = frozenset({WEDNESDAY, SATURDAY, SUNDAY})


ORDER_TYPE_DAY = "day-order"
ORDER_TYPE_WEEK = "week-order"
ORDER_TYPE_MONTH = "month-order"

VALID_ORDER_TYPES = [
    ORDER_TYPE_DAY,
    ORDER_TYPE_WEEK,
    ORDER_TYPE_MONTH,
]


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_policy_off_day(day: date) -> bool:
    return day.weekday() in NON_DELIVERY_WEEKDAYS


def is_billable_day(day: date, off_days: AbstractSet[date] = frozenset()) -> bool:
    """True when `day` is a delivery day for a school with `off_days`."""
    if is_policy_off_day(day):
        return False
    return day not in off_days


def count_billable_days(start: date, end: date, off_days: AbstractSet[date] = frozenset()) -> int:
    """
    Count billable days in [start, end].

    An inverted range counts as empty instead of raising, so callers that
    have not validated ordering yet still get a sane answer.
    """
    if start > end:
        return 0
    return sum(1 for day in iter_days(start, end) if is_billable_day(day, off_days))


def non_billable_days(start: date, end: date, off_days: AbstractSet[date] = frozenset()) -> list[date]:
    """
    Sorted, de-duplicated list of days in [start, end] without delivery:
    policy weekdays plus explicit off-days inside the range.
    """
    if start > end:
        return []
    return [day for day in iter_days(start, end) if not is_billable_day(day, off_days)]


def calculate_end_date(start: date, order_type: str) -> date:
    """
    Derive the last day covered by an order.

    - day-order: the start day itself
    - week-order: start + 6 days (Monday through Sunday)
    - month-order: last day of the start day's month
    """
    if order_type == ORDER_TYPE_DAY:
        return start
    if order_type == ORDER_TYPE_WEEK:
        return start + timedelta(days=6)
    if order_type == ORDER_TYPE_MONTH:
        last_day = calendar.monthrange(start.year, start.month)[1]
        return start.replace(day=last_day)
    raise InvalidInputError(f"Invalid order type: {order_type}. Must be one of {VALID_ORDER_TYPES}")


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))
