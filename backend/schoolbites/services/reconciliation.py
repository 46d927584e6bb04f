# Overview: Payment reconciliation state machine; pure decision logic, no database work.

"""
Payment Reconciliation

Two entry points move a Payment out of "pending":
- the redirect page the parent lands on after checkout (paid / cancelled)
- the provider webhook (paid / failed), which is authoritative

reconcile() only DECIDES. It returns the patch for the Payment row and a
list of side-effect descriptors; payment_service applies both in one
transaction. Every decision is a target state, never an increment, so the
same event applied twice lands on the same record.

STATE MACHINE (per payment):
    pending -> paid | failed | cancelled
Webhooks may still overwrite a settled payment (an async payment can fail
after checkout completed). A redirect never overrides a webhook result,
and only moves a payment out of "pending" (re-confirming the same outcome
is allowed and lands on the same record).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from ..errors import DataIntegrityError, InvalidInputError
from .access_service import next_annual_expiration, school_year_window_start


# =============================================================================
# PAYMENT TYPES / STATUSES (CONSTANTS)
# =============================================================================

PAYMENT_TYPE_ACCESS_FEE = "access-fee"
PAYMENT_TYPE_ORDER = "order"

VALID_PAYMENT_TYPES = [PAYMENT_TYPE_ACCESS_FEE, PAYMENT_TYPE_ORDER]

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_REFUNDED = "refunded"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

VALID_PAYMENT_STATUSES = [
    STATUS_PENDING,
    STATUS_PAID,
    STATUS_REFUNDED,
    STATUS_FAILED,
    STATUS_CANCELLED,
]

SOURCE_REDIRECT = "redirect"
SOURCE_WEBHOOK = "webhook"

REDIRECT_OUTCOMES = (STATUS_PAID, STATUS_CANCELLED)


# =============================================================================
# WEBHOOK EVENT TYPES (CONSTANTS)
# =============================================================================

EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_CHECKOUT_EXPIRED = "checkout.session.expired"
EVENT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"

WEBHOOK_EVENT_STATUS = {
    EVENT_CHECKOUT_COMPLETED: STATUS_PAID,
    EVENT_CHECKOUT_EXPIRED: STATUS_FAILED,
    EVENT_ASYNC_PAYMENT_SUCCEEDED: STATUS_PAID,
    EVENT_ASYNC_PAYMENT_FAILED: STATUS_FAILED,
}


# =============================================================================
# INPUTS
# =============================================================================

@dataclass(frozen=True)
class PaymentSnapshot:
    """The fields of a Payment the state machine reads."""
    payment_id: int
    user_id: int
    type: str
    status: str
    webhook_processed: bool = False
    order_id: Optional[int] = None
    payment_intent_id: Optional[str] = None

    @classmethod
    def of(cls, payment: Any) -> "PaymentSnapshot":
        return cls(
            payment_id=payment.id,
            user_id=payment.user_id,
            type=payment.type,
            status=payment.status,
            webhook_processed=bool(payment.webhook_processed),
            order_id=payment.order_id,
            payment_intent_id=payment.payment_intent_id,
        )


@dataclass(frozen=True)
class PaymentEvent:
    target_status: str
    source: str
    payment_intent_id: Optional[str] = None


@dataclass(frozen=True)
class WebhookEvent:
    """Provider webhook reduced to the fields reconciliation consumes."""
    event_type: str
    checkout_session_id: str
    payment_intent_id: Optional[str] = None

    @property
    def target_status(self) -> Optional[str]:
        return WEBHOOK_EVENT_STATUS.get(self.event_type)

    def to_payment_event(self) -> Optional[PaymentEvent]:
        """None for event types that do not move a payment."""
        status = self.target_status
        if status is None:
            return None
        return PaymentEvent(
            target_status=status,
            source=SOURCE_WEBHOOK,
            payment_intent_id=self.payment_intent_id,
        )

    @classmethod
    def from_provider_event(cls, event: Mapping[str, Any]) -> "WebhookEvent":
        """
        Reduce a (signature-verified) checkout session event.

        payment_intent may arrive as an id string or as an expanded object.
        Event types that do not settle a payment are reduced without reading
        data.object, which is not a checkout session for them.
        """
        event_type = event.get("type") or ""
        if event_type not in WEBHOOK_EVENT_STATUS:
            return cls(event_type=event_type, checkout_session_id="")

        session = (event.get("data") or {}).get("object") or {}
        session_id = session.get("id")
        if not session_id or not isinstance(session_id, str):
            raise InvalidInputError("Invalid checkout session: missing id")

        intent = session.get("payment_intent")
        if isinstance(intent, str):
            intent_id = intent
        elif intent:
            intent_id = intent.get("id")
        else:
            intent_id = None

        return cls(
            event_type=event_type,
            checkout_session_id=session_id,
            payment_intent_id=intent_id,
        )


# =============================================================================
# SIDE-EFFECT DESCRIPTORS
# =============================================================================

@dataclass(frozen=True)
class GrantAccess:
    user_id: int
    expires_at: date


@dataclass(frozen=True)
class RevokeAccessUnlessCovered:
    """
    Clear the user's access unless another paid access fee, created inside
    [window_start, window_end], still covers the current school year.
    """
    user_id: int
    payment_id: int
    window_start: datetime
    window_end: datetime


@dataclass(frozen=True)
class MirrorOrderStatus:
    order_id: int
    status: str


@dataclass(frozen=True)
class Reconciliation:
    patch: dict = field(default_factory=dict)
    effects: tuple = ()
    problems: tuple = ()

    @property
    def is_noop(self) -> bool:
        return not self.patch and not self.effects


# =============================================================================
# DECISION
# =============================================================================

def reconcile(snapshot: PaymentSnapshot, event: PaymentEvent, now: datetime) -> Reconciliation:
    """
    Decide the new state of a payment and the side effects that follow.

    Args:
        snapshot: current payment fields
        event: target status plus where it came from
        now: reconciliation time (UTC); drives the access window

    Returns:
        Reconciliation with the payment patch, the effects to apply and any
        DataIntegrityError found. Callers on the redirect path raise the
        problems; the webhook path logs them and applies the rest.

    Raises:
        InvalidInputError: unknown target status or source
    """
    if event.source == SOURCE_REDIRECT:
        if event.target_status not in REDIRECT_OUTCOMES:
            raise InvalidInputError(f"Invalid checkout outcome: {event.target_status}")
        if snapshot.webhook_processed:
            return Reconciliation()
        if snapshot.status != STATUS_PENDING and snapshot.status != event.target_status:
            return Reconciliation()
    elif event.source == SOURCE_WEBHOOK:
        if event.target_status not in (STATUS_PAID, STATUS_FAILED):
            raise InvalidInputError(f"Invalid webhook status: {event.target_status}")
    else:
        raise InvalidInputError(f"Invalid reconciliation source: {event.source}")

    patch: dict = {"status": event.target_status}
    if event.source == SOURCE_WEBHOOK:
        patch["webhook_processed"] = True
    if event.payment_intent_id:
        patch["payment_intent_id"] = event.payment_intent_id

    effects: list = []
    problems: list = []

    if snapshot.type == PAYMENT_TYPE_ACCESS_FEE:
        if event.target_status == STATUS_PAID:
            effects.append(GrantAccess(user_id=snapshot.user_id, expires_at=next_annual_expiration(now)))
        elif event.target_status == STATUS_FAILED:
            effects.append(RevokeAccessUnlessCovered(
                user_id=snapshot.user_id,
                payment_id=snapshot.payment_id,
                window_start=school_year_window_start(now),
                window_end=now,
            ))
    elif snapshot.type == PAYMENT_TYPE_ORDER:
        if snapshot.order_id is None:
            problems.append(DataIntegrityError(f"Order payment {snapshot.payment_id} missing order link"))
        else:
            effects.append(MirrorOrderStatus(order_id=snapshot.order_id, status=event.target_status))
    else:
        problems.append(DataIntegrityError(f"Payment {snapshot.payment_id} has unknown type {snapshot.type!r}"))

    return Reconciliation(patch=patch, effects=tuple(effects), problems=tuple(problems))


def has_covering_payment(payments: Iterable[Any], effect: RevokeAccessUnlessCovered) -> bool:
    """
    True when another paid access fee of the same user was created inside the
    effect's window. `payments` are Payment rows (or anything with the same
    attributes).
    """
    for payment in payments:
        if payment.id == effect.payment_id or payment.user_id != effect.user_id:
            continue
        if payment.type != PAYMENT_TYPE_ACCESS_FEE or payment.status != STATUS_PAID:
            continue
        if effect.window_start <= payment.created_at <= effect.window_end:
            return True
    return False
