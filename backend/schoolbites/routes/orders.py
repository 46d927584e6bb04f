# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API Routes

DESIGN:
- POST /quote prices a prospective order without storing anything
- POST / stores the order with its frozen price and opens a checkout
- POST /confirm settles the order payment from the success/cancel page
- An active access window is required to place orders
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import InvalidInputError, SchoolBitesError
from ..services import checkout_service, order_service, payment_service
from ..services.access_service import has_active_access
from ..services.offday_service import get_child_for_parent
from ..services.reconciliation import PAYMENT_TYPE_ORDER, REDIRECT_OUTCOMES
from ..time_utils import parse_iso_date, today_utc


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _parse_order_request(data: dict) -> dict:
    child_id = data.get("child_id")
    order_type = data.get("order_type")
    if not child_id or not order_type:
        raise InvalidInputError("child_id, order_type and start_date required")
    if isinstance(child_id, bool) or not isinstance(child_id, int):
        raise InvalidInputError("child_id must be an integer")

    end_date = data.get("end_date")
    return {
        "child_id": child_id,
        "order_type": order_type,
        "start_date": parse_iso_date(data.get("start_date"), "start_date"),
        "end_date": parse_iso_date(end_date, "end_date") if end_date else None,
    }


@orders_bp.post("/quote")
@require_auth
def quote_order_route():
    """
    Price a prospective order.

    Request body:
    {
        "child_id": 3,
        "order_type": "week-order",
        "start_date": "2024-07-01"
    }

    Returns:
        200: {"order_type", "start_date", "end_date", "billable_days",
              "price_per_day", "total_price", "total_cents"}
    """
    try:
        parsed = _parse_order_request(request.get_json(silent=True) or {})
        child = get_child_for_parent(parsed["child_id"], g.current_user)
        quote = order_service.quote_order(child, parsed["order_type"], parsed["start_date"], parsed["end_date"])
        return jsonify(quote.to_dict()), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to quote order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/")
@require_auth
def create_order_route():
    """
    Create an order and its checkout session.

    Request body:
    {
        "child_id": 3,
        "order_type": "month-order",
        "start_date": "2024-09-01",
        "end_date": "2024-09-30",  (optional, must match the derived end date)
        "preferences": {"notes": "", "allergies": "", "bread_type": "brown",
                        "crust": false, "butter": true}  (optional)
    }

    Returns:
        201: {"order": {...}, "checkout": {"session_id", "url"}}
        400: Invalid input or no delivery days in the period
        403: No active access, or child of another parent
    """
    user = g.current_user
    if not has_active_access(user.access_expires_at, today_utc()):
        return jsonify({"error": "An active access fee is required to place orders"}), 403

    try:
        data = request.get_json(silent=True) or {}
        parsed = _parse_order_request(data)
        preferences = data.get("preferences")
        if preferences is not None and not isinstance(preferences, dict):
            raise InvalidInputError("preferences must be an object")

        order, session = checkout_service.start_order_checkout(
            user,
            parsed["child_id"],
            parsed["order_type"],
            parsed["start_date"],
            parsed["end_date"],
            preferences,
        )
        return jsonify({"order": order.to_dict(), "checkout": session.to_dict()}), 201
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@require_auth
def list_orders_route():
    orders = order_service.list_orders_for_user(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_for_user(order_id, g.current_user)
        return jsonify({"order": order.to_dict()}), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code


@orders_bp.post("/confirm")
@require_auth
def confirm_order_payment_route():
    """
    Settle an order payment from the success or cancel page.

    Request body:
    {
        "session_id": "cs_test_...",
        "outcome": "paid" | "cancelled"
    }

    Returns:
        200: {"payment": {...}, "order": {...}}
        403: Payment belongs to another parent
        404: Unknown session or order
        409: Duplicate session, or payment without an order link
    """
    data = request.get_json(silent=True) or {}
    session_id = data.get("session_id")
    outcome = data.get("outcome")
    if not session_id or outcome not in REDIRECT_OUTCOMES:
        return jsonify({"error": f"session_id and outcome ({' or '.join(REDIRECT_OUTCOMES)}) required"}), 400

    try:
        payment = payment_service.confirm_checkout(
            session_id,
            g.current_user,
            outcome,
            expected_type=PAYMENT_TYPE_ORDER,
        )
        return jsonify({
            "payment": payment.to_dict(),
            "order": payment.order.to_dict() if payment.order else None,
        }), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to confirm order payment")
        return jsonify({"error": "Internal server error"}), 500
