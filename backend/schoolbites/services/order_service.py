# Overview: Service-layer operations for orders; pricing at submission and the daily delivery scan.

"""
Order Service

WHY: An order freezes what the parent pays at submission time. The price
comes from the billable days between start and end for the child's school,
so later off-day changes never reprice an existing order.

DELIVERY SCAN: update_delivery_statuses() runs once a day (cron) and moves
orders along ordered -> in-progress -> delivered by comparing their date
range with today.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

from ..errors import InvalidInputError, NotFoundError, PermissionDeniedError
from ..extensions import db
from ..models import Child, Order, User
from ..models.schools import BREAD_TYPES
from .calendar_service import VALID_ORDER_TYPES, calculate_end_date, count_billable_days
from .concurrency import run_with_retry
from .offday_service import get_child_for_parent, off_day_dates
from .pricing_service import PriceQuote, price_for_order
from .reconciliation import STATUS_PENDING


MAX_NOTES_LENGTH = 1000
MAX_ALLERGIES_LENGTH = 500

DELIVERY_ORDERED = "ordered"
DELIVERY_IN_PROGRESS = "in-progress"
DELIVERY_DELIVERED = "delivered"
DELIVERY_CANCELLED = "cancelled"

OPEN_DELIVERY_STATUSES = (DELIVERY_ORDERED, DELIVERY_IN_PROGRESS)


@dataclass(frozen=True)
class OrderQuote:
    order_type: str
    start_date: date
    end_date: date
    quote: PriceQuote

    def to_dict(self) -> dict:
        return {
            "order_type": self.order_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            **self.quote.to_dict(),
        }


def quote_order(child: Child, order_type: str, start_date: date, end_date: date | None = None) -> OrderQuote:
    """
    Billable days and price for a prospective order of `child`.

    Raises:
        InvalidInputError: unknown order type, or an end_date that does not
            match the one derived from start_date and order_type
    """
    if order_type not in VALID_ORDER_TYPES:
        raise InvalidInputError(f"Invalid order type: {order_type}. Must be one of {VALID_ORDER_TYPES}")

    derived_end = calculate_end_date(start_date, order_type)
    if end_date is not None and end_date != derived_end:
        raise InvalidInputError(
            f"end_date for a {order_type} starting {start_date.isoformat()} must be {derived_end.isoformat()}"
        )

    off_days = off_day_dates(child.school_id, start_date, derived_end)
    billable_days = count_billable_days(start_date, derived_end, off_days)
    return OrderQuote(
        order_type=order_type,
        start_date=start_date,
        end_date=derived_end,
        quote=price_for_order(order_type, billable_days),
    )


def create_order(
    user: User,
    child_id: int,
    order_type: str,
    start_date: date,
    end_date: date | None = None,
    preferences: Mapping[str, Any] | None = None,
    *,
    commit: bool = True,
) -> Order:
    """
    Create a pending order with a frozen price.

    Preferences default to the child's stored preferences; notes are
    order-specific and default to empty.

    Raises:
        NotFoundError: child not found
        PermissionDeniedError: child belongs to another parent
        InvalidInputError: bad type, dates, preferences, or no delivery days
    """
    child = get_child_for_parent(child_id, user)
    prefs = _normalize_preferences(child, preferences or {})
    order_quote = quote_order(child, order_type, start_date, end_date)

    if order_quote.quote.billable_days == 0:
        raise InvalidInputError("The selected period has no delivery days")

    order = Order(
        parent_id=user.id,
        child_id=child.id,
        order_type=order_type,
        start_date=order_quote.start_date,
        end_date=order_quote.end_date,
        price=order_quote.quote.total_cents,
        billable_days=order_quote.quote.billable_days,
        payment_status=STATUS_PENDING,
        delivery_status=DELIVERY_ORDERED,
        **prefs,
    )
    db.session.add(order)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return order


def get_order_for_user(order_id: int, user: User) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.parent_id != user.id:
        raise PermissionDeniedError("You do not have access to this order")
    return order


def list_orders_for_user(user_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(parent_id=user_id)
        .order_by(Order.start_date.desc(), Order.id.desc())
        .all()
    )


# =============================================================================
# DELIVERY STATUS SCAN
# =============================================================================

def delivery_status_for(order: Order, today: date) -> str:
    """
    - today before start: ordered
    - today within [start, end]: in-progress
    - today after end: delivered

    A day order has start == end, so the same rule covers it.
    """
    if today < order.start_date:
        return DELIVERY_ORDERED
    if today <= order.end_date:
        return DELIVERY_IN_PROGRESS
    return DELIVERY_DELIVERED


def update_delivery_statuses(today: date) -> int:
    """
    Advance delivery_status of every open order. Only changed rows are written.

    Returns:
        Number of orders updated
    """
    def _op():
        orders = db.session.query(Order).filter(Order.delivery_status.in_(OPEN_DELIVERY_STATUSES)).all()
        updated = 0
        for order in orders:
            new_status = delivery_status_for(order, today)
            if new_status != order.delivery_status:
                order.delivery_status = new_status
                updated += 1
        db.session.commit()
        return updated

    return run_with_retry(_op)


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _normalize_preferences(child: Child, preferences: Mapping[str, Any]) -> dict:
    notes = preferences.get("notes") or ""
    allergies = preferences.get("allergies", child.allergies) or ""
    bread_type = preferences.get("bread_type", child.bread_type)
    crust = preferences.get("crust", child.crust)
    butter = preferences.get("butter", child.butter)

    if not isinstance(notes, str) or not isinstance(allergies, str):
        raise InvalidInputError("notes and allergies must be text")
    notes = notes.strip()
    allergies = allergies.strip()

    if len(notes) > MAX_NOTES_LENGTH:
        raise InvalidInputError(f"Notes must be {MAX_NOTES_LENGTH} characters or less")
    if len(allergies) > MAX_ALLERGIES_LENGTH:
        raise InvalidInputError(f"Allergies description must be {MAX_ALLERGIES_LENGTH} characters or less")
    if bread_type not in BREAD_TYPES:
        raise InvalidInputError(f"Invalid bread type: {bread_type}. Must be one of {list(BREAD_TYPES)}")
    if not isinstance(crust, bool) or not isinstance(butter, bool):
        raise InvalidInputError("crust and butter must be true or false")

    return {
        "notes": notes,
        "allergies": allergies,
        "bread_type": bread_type,
        "crust": crust,
        "butter": butter,
    }
