from datetime import date

import pytest

from schoolbites.errors import InvalidInputError, NotFoundError, PermissionDeniedError
from schoolbites.services import offday_service


def test_bulk_create_across_schools(db_session, school, other_school):
    result = offday_service.create_off_days(
        date(2024, 12, 23), date(2024, 12, 27), [school.id, other_school.id], "Winter break"
    )
    assert result == {"created": 10, "skipped": 0}
    assert len(offday_service.list_off_days(school_id=school.id)) == 5


def test_rerun_skips_existing_days(db_session, school, add_off_day):
    add_off_day(school, date(2024, 12, 24))
    result = offday_service.create_off_days(date(2024, 12, 23), date(2024, 12, 25), [school.id])
    assert result == {"created": 2, "skipped": 1}


def test_unknown_school_rejected(db_session, school):
    with pytest.raises(NotFoundError):
        offday_service.create_off_days(date(2024, 12, 23), date(2024, 12, 23), [school.id, 999])
    assert offday_service.list_off_days() == []


@pytest.mark.parametrize("start,end", [
    (date(2024, 12, 27), date(2024, 12, 23)),
    (date(2024, 1, 1), date(2025, 1, 1)),
])
def test_bad_ranges_rejected(db_session, school, start, end):
    with pytest.raises(InvalidInputError):
        offday_service.create_off_days(start, end, [school.id])


def test_list_filters_by_range(db_session, school, add_off_day):
    add_off_day(school, date(2024, 10, 1))
    add_off_day(school, date(2024, 11, 1))
    found = offday_service.list_off_days(start=date(2024, 10, 15), end=date(2024, 11, 30))
    assert [o.date for o in found] == [date(2024, 11, 1)]


def test_delete(db_session, school, add_off_day):
    off_day = add_off_day(school, date(2024, 10, 1))
    offday_service.delete_off_day(off_day.id)
    assert offday_service.list_off_days() == []
    with pytest.raises(NotFoundError):
        offday_service.delete_off_day(off_day.id)


def test_non_billable_days_for_child(db_session, parent, child, add_off_day):
    add_off_day(child.school, date(2024, 7, 2))
    add_off_day(child.school, date(2024, 7, 3))
    days = offday_service.list_non_billable_days_for_child(child.id, parent, date(2024, 7, 1), date(2024, 7, 7))
    assert days == [date(2024, 7, 2), date(2024, 7, 3), date(2024, 7, 6), date(2024, 7, 7)]


def test_non_billable_days_owner_only(db_session, other_parent, child):
    with pytest.raises(PermissionDeniedError):
        offday_service.list_non_billable_days_for_child(
            child.id, other_parent, date(2024, 7, 1), date(2024, 7, 7)
        )
