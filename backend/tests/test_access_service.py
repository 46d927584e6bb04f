from datetime import date, datetime

import pytest

from schoolbites.services.access_service import (
    has_active_access,
    next_annual_expiration,
    previous_july_first,
    school_year_window_start,
)


@pytest.mark.parametrize("now,expected", [
    (datetime(2024, 3, 15), date(2024, 6, 30)),
    (datetime(2024, 5, 31, 23, 59), date(2024, 6, 30)),
    (datetime(2024, 6, 1), date(2025, 6, 30)),
    (datetime(2024, 7, 15), date(2025, 6, 30)),
    (datetime(2024, 12, 31), date(2025, 6, 30)),
])
def test_next_annual_expiration(now, expected):
    assert next_annual_expiration(now) == expected


@pytest.mark.parametrize("now,expected", [
    (datetime(2024, 3, 15), date(2023, 7, 1)),
    (datetime(2024, 6, 30), date(2023, 7, 1)),
    (datetime(2024, 7, 1), date(2024, 7, 1)),
    (datetime(2024, 9, 15), date(2024, 7, 1)),
])
def test_previous_july_first(now, expected):
    assert previous_july_first(now) == expected


@pytest.mark.parametrize("month", range(1, 13))
def test_now_lies_between_window_bounds(month):
    now = datetime(2024, month, 15, 12, 0)
    assert previous_july_first(now) <= now.date() <= next_annual_expiration(now)


def test_window_start_is_midnight():
    assert school_year_window_start(datetime(2024, 9, 15, 14, 30)) == datetime(2024, 7, 1)


def test_access_active_through_expiration_day():
    expires = date(2025, 6, 30)
    assert has_active_access(expires, date(2025, 6, 30))
    assert has_active_access(expires, date(2024, 9, 1))
    assert not has_active_access(expires, date(2025, 7, 1))
    assert not has_active_access(None, date(2024, 9, 1))
