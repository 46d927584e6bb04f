# Overview: Flask API routes for the annual access fee; parses input and returns JSON responses.

"""
Access Fee API Routes

WHY: Parents pay an annual access fee before they can order. Access runs
until June 30 of the school year it was bought for.

FLOW:
- POST /checkout creates a Stripe checkout session (redirect URL returned)
- POST /confirm is called by the success page with the session id
- The Stripe webhook settles the same payment independently
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import SchoolBitesError
from ..services import checkout_service, payment_service
from ..services.access_service import has_active_access
from ..services.reconciliation import PAYMENT_TYPE_ACCESS_FEE, STATUS_PAID
from ..time_utils import to_iso_date, today_utc


access_bp = Blueprint("access", __name__, url_prefix="/api/access")


@access_bp.get("/")
@require_auth
def get_access_route():
    """
    Current parent's access window.

    Returns:
        200: {"access_expires_at": "YYYY-MM-DD" | null, "active": bool}
    """
    user = g.current_user
    return jsonify({
        "access_expires_at": to_iso_date(user.access_expires_at),
        "active": has_active_access(user.access_expires_at, today_utc()),
    }), 200


@access_bp.post("/checkout")
@require_auth
def create_access_checkout_route():
    """
    Start an access-fee checkout.

    Returns:
        201: {"session_id": "...", "url": "https://checkout.stripe.com/..."}
        502: Payment provider unavailable
    """
    try:
        session = checkout_service.start_access_fee_checkout(g.current_user)
        return jsonify(session.to_dict()), 201
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create access fee checkout")
        return jsonify({"error": "Internal server error"}), 500


@access_bp.post("/confirm")
@require_auth
def confirm_access_route():
    """
    Confirm an access-fee payment from the success page.

    Request body:
    {
        "session_id": "cs_test_..."
    }

    Returns:
        200: Payment and the updated access window
        403: Payment belongs to another parent
        404: Unknown session
        409: Duplicate payments for the session
    """
    data = request.get_json(silent=True) or {}
    session_id = data.get("session_id")
    if not session_id:
        return jsonify({"error": "session_id required"}), 400

    try:
        payment = payment_service.confirm_checkout(
            session_id,
            g.current_user,
            STATUS_PAID,
            expected_type=PAYMENT_TYPE_ACCESS_FEE,
        )
        user = g.current_user
        return jsonify({
            "payment": payment.to_dict(),
            "access_expires_at": to_iso_date(user.access_expires_at),
            "active": has_active_access(user.access_expires_at, today_utc()),
        }), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to confirm access fee payment")
        return jsonify({"error": "Internal server error"}), 500
