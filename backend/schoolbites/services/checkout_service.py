# Overview: Stripe boundary; customers, checkout sessions and webhook signature verification.

"""
Checkout Service

WHY: Access fees and orders are paid through Stripe Checkout. This module
is the only place that talks to Stripe. Everything it returns is reduced to
plain values (session id, url, WebhookEvent) before reaching the rest of
the service layer.

FLOW:
1. ensure the parent has a Stripe customer (created once, id stored)
2. create a checkout session (mode="payment", one line item)
3. record a pending Payment for the session, in the same transaction as
   the order it pays for
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

import stripe
from flask import current_app

from ..errors import InvalidInputError, SchoolBitesError
from ..extensions import db
from ..models import Order, User
from .order_service import create_order
from .payment_service import create_payment
from .pricing_service import PRICE_PER_DAY, format_price
from .reconciliation import PAYMENT_TYPE_ACCESS_FEE, PAYMENT_TYPE_ORDER, WebhookEvent


SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


class CheckoutError(SchoolBitesError):
    """Payment provider unavailable or misconfigured."""
    status_code = 502


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str

    def to_dict(self) -> dict:
        return {"session_id": self.session_id, "url": self.url}


# =============================================================================
# CUSTOMERS
# =============================================================================

def ensure_customer(user: User) -> str:
    """Return the user's Stripe customer id, creating the customer on first use."""
    if user.stripe_customer_id:
        return user.stripe_customer_id

    try:
        customer = stripe.Customer.create(
            api_key=_api_key(),
            email=user.email,
            name=user.full_name,
            phone=user.phone_number or None,
            metadata={"user_id": str(user.id), "external_auth_id": user.external_auth_id},
        )
    except stripe.StripeError as exc:
        current_app.logger.exception("Failed to create Stripe customer for user %s", user.id)
        raise CheckoutError("Payment provider unavailable") from exc

    user.stripe_customer_id = customer.id
    db.session.commit()
    return customer.id


# =============================================================================
# CHECKOUT SESSIONS
# =============================================================================

def start_access_fee_checkout(user: User) -> CheckoutSession:
    """Create the access-fee checkout session and its pending Payment."""
    config = current_app.config
    amount = config["ACCESS_FEE_CENTS"]
    currency = config["PAYMENT_CURRENCY"]

    customer_id = ensure_customer(user)
    try:
        session = _create_session(
            customer_id=customer_id,
            amount=amount,
            currency=currency,
            name="Access Fee",
            description="Annual subscription fee for the current school year",
            success_path=f"/onboarding/subscription/success?session_id={SESSION_ID_PLACEHOLDER}",
            cancel_path="/onboarding/subscription",
            metadata={"user_id": str(user.id), "type": PAYMENT_TYPE_ACCESS_FEE},
        )
        create_payment(
            user_id=user.id,
            checkout_session_id=session.id,
            payment_intent_id=_payment_intent_id(session.payment_intent),
            amount=amount,
            currency=currency,
            payment_type=PAYMENT_TYPE_ACCESS_FEE,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return _to_checkout_session(session)


def start_order_checkout(
    user: User,
    child_id: int,
    order_type: str,
    start_date: date,
    end_date: date | None = None,
    preferences: Mapping[str, Any] | None = None,
) -> tuple[Order, CheckoutSession]:
    """
    Create the order, its checkout session and the pending Payment together.
    A provider failure leaves no order behind.
    """
    currency = current_app.config["PAYMENT_CURRENCY"]

    customer_id = ensure_customer(user)
    try:
        order = create_order(user, child_id, order_type, start_date, end_date, preferences, commit=False)
        session = _create_session(
            customer_id=customer_id,
            amount=order.price,
            currency=currency,
            name="Sandwich Order",
            description=(
                f"{order.order_type.replace('-', ' ')} from {order.start_date.isoformat()} "
                f"to {order.end_date.isoformat()} ({order.billable_days} days, "
                f"{format_price(PRICE_PER_DAY[order.order_type])} per day)"
            ),
            success_path=f"/orders/success?session_id={SESSION_ID_PLACEHOLDER}",
            cancel_path=f"/orders/cancel?session_id={SESSION_ID_PLACEHOLDER}",
            metadata={"user_id": str(user.id), "type": PAYMENT_TYPE_ORDER, "order_id": str(order.id)},
        )
        create_payment(
            user_id=user.id,
            order_id=order.id,
            checkout_session_id=session.id,
            amount=order.price,
            currency=currency,
            payment_type=PAYMENT_TYPE_ORDER,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return order, _to_checkout_session(session)


# =============================================================================
# WEBHOOKS
# =============================================================================

def parse_webhook(payload: bytes, signature: Optional[str]) -> WebhookEvent:
    """
    Verify the Stripe-Signature header and reduce the event.

    Raises:
        InvalidInputError: missing/invalid signature or malformed payload
        CheckoutError: webhook secret not configured
    """
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        raise CheckoutError("Stripe webhook secret is not configured")
    if not signature:
        raise InvalidInputError("Missing stripe-signature header")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid payload: {exc}") from exc
    except stripe.SignatureVerificationError as exc:
        raise InvalidInputError(f"Invalid signature: {exc}") from exc

    return WebhookEvent.from_provider_event(json.loads(payload))


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _api_key() -> str:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise CheckoutError("Stripe is not configured")
    return key


def _create_session(
    *,
    customer_id: str,
    amount: int,
    currency: str,
    name: str,
    description: str,
    success_path: str,
    cancel_path: str,
    metadata: dict,
):
    base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    try:
        session = stripe.checkout.Session.create(
            api_key=_api_key(),
            mode="payment",
            customer=customer_id,
            line_items=[
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": name, "description": description},
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{base_url}{success_path}",
            cancel_url=f"{base_url}{cancel_path}",
            metadata=metadata,
        )
    except stripe.StripeError as exc:
        current_app.logger.exception("Failed to create Stripe checkout session")
        raise CheckoutError("Payment provider unavailable") from exc

    if not session.url:
        raise CheckoutError(f"Checkout session {session.id} was created without a URL")
    return session


def _payment_intent_id(payment_intent) -> Optional[str]:
    # Null until the session completes on current API versions
    if isinstance(payment_intent, str):
        return payment_intent
    if payment_intent is not None:
        return getattr(payment_intent, "id", None)
    return None


def _to_checkout_session(session) -> CheckoutSession:
    return CheckoutSession(session_id=session.id, url=session.url)
