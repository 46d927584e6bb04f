# Overview: Service-layer operations for school off-days; admin management and range lookups.

from __future__ import annotations

from datetime import date

from ..errors import InvalidInputError, NotFoundError, PermissionDeniedError
from ..extensions import db
from ..models import Child, OffDay, School, User
from .calendar_service import iter_days, non_billable_days


MAX_RANGE_DAYS = 366


def create_off_days(start: date, end: date, school_ids: list[int], reason: str | None = None) -> dict:
    """
    Create one off-day per (school, date) for every date in [start, end].

    Existing (school, date) pairs are skipped, so re-running the same
    request is harmless.

    Returns:
        {"created": n, "skipped": m}
    """
    if start > end:
        raise InvalidInputError("start_date must be before or equal to end_date")
    if (end - start).days >= MAX_RANGE_DAYS:
        raise InvalidInputError(f"Off-day range cannot exceed {MAX_RANGE_DAYS} days")
    if not school_ids:
        raise InvalidInputError("At least one school is required")

    school_ids = list(dict.fromkeys(school_ids))
    known = {row.id for row in db.session.query(School.id).filter(School.id.in_(school_ids)).all()}
    missing = [sid for sid in school_ids if sid not in known]
    if missing:
        raise NotFoundError(f"School(s) not found: {missing}")

    reason = reason.strip() if reason else None

    existing = {
        (row.school_id, row.date)
        for row in db.session.query(OffDay.school_id, OffDay.date).filter(
            OffDay.school_id.in_(school_ids),
            OffDay.date >= start,
            OffDay.date <= end,
        ).all()
    }

    created = 0
    skipped = 0
    for day in iter_days(start, end):
        for school_id in school_ids:
            if (school_id, day) in existing:
                skipped += 1
                continue
            db.session.add(OffDay(school_id=school_id, date=day, reason=reason or None))
            created += 1

    db.session.commit()
    return {"created": created, "skipped": skipped}


def delete_off_day(off_day_id: int) -> None:
    off_day = db.session.get(OffDay, off_day_id)
    if not off_day:
        raise NotFoundError(f"Off-day {off_day_id} not found")
    db.session.delete(off_day)
    db.session.commit()


def list_off_days(
    school_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[OffDay]:
    query = db.session.query(OffDay)
    if school_id is not None:
        query = query.filter(OffDay.school_id == school_id)
    if start is not None:
        query = query.filter(OffDay.date >= start)
    if end is not None:
        query = query.filter(OffDay.date <= end)
    return query.order_by(OffDay.date, OffDay.school_id).all()


def off_day_dates(school_id: int, start: date, end: date) -> frozenset[date]:
    """Explicit off-days of one school inside [start, end]."""
    rows = db.session.query(OffDay.date).filter(
        OffDay.school_id == school_id,
        OffDay.date >= start,
        OffDay.date <= end,
    ).all()
    return frozenset(row.date for row in rows)


def get_child_for_parent(child_id: int, user: User) -> Child:
    child = db.session.get(Child, child_id)
    if not child:
        raise NotFoundError("Child not found")
    if child.parent_id != user.id:
        raise PermissionDeniedError("You do not have access to this child")
    return child


def list_non_billable_days_for_child(child_id: int, user: User, start: date, end: date) -> list[date]:
    """
    Days without delivery for the child's school in [start, end]:
    policy weekdays plus the school's off-days, sorted and de-duplicated.
    """
    if start > end:
        raise InvalidInputError("start_date must be before or equal to end_date")
    if (end - start).days >= MAX_RANGE_DAYS:
        raise InvalidInputError(f"Range cannot exceed {MAX_RANGE_DAYS} days")

    child = get_child_for_parent(child_id, user)
    return non_billable_days(start, end, off_day_dates(child.school_id, start, end))
