# Overview: Service-layer operations for payments; applies reconciliation decisions to the database.

"""
Payment Service

WHY: Checkout attempts are recorded as Payment rows and settled from two
independent, possibly concurrent sources: the redirect page (synchronous,
user-facing) and the provider webhook (asynchronous, authoritative).

DESIGN PRINCIPLES:
- Decisions come from reconciliation.reconcile(); this module only loads
  rows, applies the patch plus effects, and commits once
- One transaction per event: either the payment patch and all of its
  effects land, or nothing does
- Redirect path raises (the parent sees the error)
- Webhook path logs and returns WebhookResult(success=False) instead of
  raising, so a stale or malformed event cannot wedge the endpoint
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from ..errors import DataIntegrityError, InvalidInputError, NotFoundError, PermissionDeniedError
from ..extensions import db
from ..models import Order, Payment, User
from ..time_utils import as_naive_utc, utcnow
from .concurrency import lock_for_update, lock_row, run_with_retry
from .reconciliation import (
    PAYMENT_TYPE_ACCESS_FEE,
    PAYMENT_TYPE_ORDER,
    SOURCE_REDIRECT,
    STATUS_PAID,
    STATUS_PENDING,
    VALID_PAYMENT_TYPES,
    GrantAccess,
    MirrorOrderStatus,
    PaymentEvent,
    PaymentSnapshot,
    Reconciliation,
    RevokeAccessUnlessCovered,
    WebhookEvent,
    has_covering_payment,
    reconcile,
)


@dataclass(frozen=True)
class WebhookResult:
    success: bool
    payment_id: Optional[int] = None
    status: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "payment_id": self.payment_id,
            "status": self.status,
            "message": self.message,
        }


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def create_payment(
    *,
    user_id: int,
    checkout_session_id: str,
    amount: int,
    currency: str,
    payment_type: str,
    order_id: int | None = None,
    payment_intent_id: str | None = None,
) -> Payment:
    """
    Record a pending checkout attempt. The caller commits.

    Raises:
        InvalidInputError: bad type, amount or missing session id
        DataIntegrityError: order payment without an order, or a reused session id
    """
    if payment_type not in VALID_PAYMENT_TYPES:
        raise InvalidInputError(f"Invalid payment type: {payment_type}. Must be one of {VALID_PAYMENT_TYPES}")
    if not checkout_session_id:
        raise InvalidInputError("checkout_session_id is required")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInputError("Payment amount must be a positive integer number of cents")
    if payment_type == PAYMENT_TYPE_ORDER and order_id is None:
        raise DataIntegrityError("Order payments must reference an order")

    existing = db.session.query(Payment.id).filter_by(checkout_session_id=checkout_session_id).first()
    if existing:
        raise DataIntegrityError(f"Checkout session {checkout_session_id} already has a payment")

    payment = Payment(
        user_id=user_id,
        order_id=order_id,
        checkout_session_id=checkout_session_id,
        payment_intent_id=payment_intent_id,
        amount=amount,
        currency=currency,
        type=payment_type,
        status=STATUS_PENDING,
        webhook_processed=False,
        created_at=utcnow(),
    )
    db.session.add(payment)
    db.session.flush()
    return payment


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_payment_by_checkout_session(checkout_session_id: str, *, for_update: bool = False) -> Payment:
    """
    Resolve exactly one payment for a checkout session.

    Raises:
        NotFoundError: no payment for the session
        DataIntegrityError: more than one payment for the session
    """
    query = db.session.query(Payment).filter_by(checkout_session_id=checkout_session_id)
    if for_update:
        query = lock_for_update(query)
    matches = query.limit(2).all()

    if not matches:
        raise NotFoundError(f"Payment not found for checkout session {checkout_session_id}")
    if len(matches) > 1:
        raise DataIntegrityError(f"Duplicate payments for checkout session {checkout_session_id}")
    return matches[0]


def list_user_payments(user_id: int, payment_type: str | None = None) -> list[Payment]:
    query = db.session.query(Payment).filter_by(user_id=user_id)
    if payment_type:
        query = query.filter_by(type=payment_type)
    return query.order_by(Payment.created_at).all()


# =============================================================================
# REDIRECT CONFIRMATION (SYNCHRONOUS)
# =============================================================================

def confirm_checkout(
    checkout_session_id: str,
    user: User,
    outcome: str,
    *,
    expected_type: str | None = None,
    now: datetime | None = None,
) -> Payment:
    """
    Settle a payment from the success/cancel page the parent returned to.

    Args:
        checkout_session_id: session id carried by the redirect URL
        user: authenticated parent
        outcome: "paid" (success page) or "cancelled" (cancel page)
        expected_type: reject sessions of another payment type when set
        now: reconciliation time, defaults to server time

    Returns:
        The payment (unchanged when a webhook already settled it)

    Raises:
        NotFoundError, DataIntegrityError, PermissionDeniedError, InvalidInputError
    """
    now = as_naive_utc(now or utcnow())

    def _op():
        payment = get_payment_by_checkout_session(checkout_session_id, for_update=True)

        if payment.user_id != user.id:
            raise PermissionDeniedError("Payment does not belong to authenticated user")
        if expected_type and payment.type != expected_type:
            raise InvalidInputError(f"Checkout session is not a {expected_type} payment")

        event = PaymentEvent(target_status=outcome, source=SOURCE_REDIRECT)
        result = reconcile(PaymentSnapshot.of(payment), event, now)
        if result.problems:
            raise result.problems[0]

        if result.is_noop:
            return payment

        _apply(payment, result, strict=True)
        db.session.commit()
        return payment

    return run_with_retry(_op)


# =============================================================================
# WEBHOOK CONFIRMATION (ASYNCHRONOUS)
# =============================================================================

def apply_webhook_event(event: WebhookEvent, *, now: datetime | None = None) -> WebhookResult:
    """
    Apply a verified provider event to its payment.

    Idempotent: redelivery recomputes the same target state and the same
    effects. Never raises for missing or malformed records.
    """
    logger = current_app.logger
    payment_event = event.to_payment_event()
    if payment_event is None:
        logger.info("Ignoring webhook event type %s", event.event_type)
        return WebhookResult(success=True, message=f"ignored {event.event_type}")

    now = as_naive_utc(now or utcnow())

    def _op():
        try:
            payment = get_payment_by_checkout_session(event.checkout_session_id, for_update=True)
        except NotFoundError as exc:
            logger.warning("Webhook %s: %s", event.event_type, exc)
            return WebhookResult(success=False, message=str(exc))
        except DataIntegrityError as exc:
            logger.error("Webhook %s: %s", event.event_type, exc)
            return WebhookResult(success=False, message=str(exc))

        result = reconcile(PaymentSnapshot.of(payment), payment_event, now)
        for problem in result.problems:
            logger.error("Webhook %s for payment %s: %s", event.event_type, payment.id, problem)

        _apply(payment, result, strict=False)
        db.session.commit()

        logger.info(
            "Webhook %s applied: payment %s -> %s",
            event.event_type, payment.id, payment.status,
        )
        return WebhookResult(success=True, payment_id=payment.id, status=payment.status)

    return run_with_retry(_op)


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _apply(payment: Payment, result: Reconciliation, *, strict: bool) -> None:
    """
    Write the payment patch and every effect into the current session.

    strict=True raises NotFoundError for a missing user/order (the whole
    transaction is rolled back). strict=False logs and skips that effect.
    """
    for field_name, value in result.patch.items():
        setattr(payment, field_name, value)

    for effect in result.effects:
        if isinstance(effect, GrantAccess):
            user = _load_for_update(User, effect.user_id, strict=strict)
            if user is not None:
                user.access_expires_at = effect.expires_at

        elif isinstance(effect, RevokeAccessUnlessCovered):
            user = _load_for_update(User, effect.user_id, strict=strict)
            if user is None:
                continue
            candidates = db.session.query(Payment).filter(
                Payment.user_id == effect.user_id,
                Payment.type == PAYMENT_TYPE_ACCESS_FEE,
                Payment.status == STATUS_PAID,
                Payment.id != effect.payment_id,
            ).all()
            if has_covering_payment(candidates, effect):
                current_app.logger.info(
                    "Access fee %s failed but user %s has another paid access fee this school year",
                    effect.payment_id, effect.user_id,
                )
            else:
                user.access_expires_at = None

        elif isinstance(effect, MirrorOrderStatus):
            order = _load_for_update(Order, effect.order_id, strict=strict)
            if order is not None:
                order.payment_status = effect.status


def _load_for_update(model, record_id: int, *, strict: bool):
    record = lock_row(model, record_id)
    if record is None:
        message = f"{model.__name__} {record_id} not found"
        if strict:
            raise NotFoundError(message)
        current_app.logger.error("Reconciliation skipped: %s", message)
    return record
