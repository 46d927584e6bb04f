# Overview: Order price calculation from a per-plan daily rate.

"""
Order Pricing

Rates are per billable day, in EUR, held as Decimal so that 17 x 2.75 is
exactly 46.75. Conversion to integer cents happens once, when the amount
is persisted or sent to the payment provider (to_minor_units).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..errors import InvalidInputError
from .calendar_service import ORDER_TYPE_DAY, ORDER_TYPE_MONTH, ORDER_TYPE_WEEK, VALID_ORDER_TYPES


PRICE_PER_DAY = {
    ORDER_TYPE_DAY: Decimal("3.10"),
    ORDER_TYPE_WEEK: Decimal("2.90"),
    ORDER_TYPE_MONTH: Decimal("2.75"),
}

_CENTS = Decimal("100")


@dataclass(frozen=True)
class PriceQuote:
    price_per_day: Decimal
    total_price: Decimal
    billable_days: int

    @property
    def total_cents(self) -> int:
        return to_minor_units(self.total_price)

    def to_dict(self) -> dict:
        return {
            "price_per_day": str(self.price_per_day),
            "total_price": str(self.total_price),
            "total_cents": self.total_cents,
            "billable_days": self.billable_days,
        }


def price_for_order(order_type: str, billable_days: int) -> PriceQuote:
    """
    Price an order of `order_type` covering `billable_days` delivery days.

    Raises:
        InvalidInputError: unknown order type, or a negative / non-integer day count
    """
    if order_type not in PRICE_PER_DAY:
        raise InvalidInputError(f"Invalid order type: {order_type}. Must be one of {VALID_ORDER_TYPES}")
    if isinstance(billable_days, bool) or not isinstance(billable_days, int):
        raise InvalidInputError("billable_days must be an integer")
    if billable_days < 0:
        raise InvalidInputError("billable_days cannot be negative")

    price_per_day = PRICE_PER_DAY[order_type]
    return PriceQuote(
        price_per_day=price_per_day,
        total_price=price_per_day * billable_days,
        billable_days=billable_days,
    )


def to_minor_units(amount: Decimal) -> int:
    """EUR amount -> integer cents, rounded half-up."""
    return int((Decimal(amount) * _CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_price(amount: Decimal) -> str:
    """European display format, e.g. Decimal("2.75") -> "€2,75"."""
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return "€" + f"{quantized:.2f}".replace(".", ",")


def format_cents(amount_cents: int) -> str:
    return format_price(Decimal(amount_cents) / _CENTS)
