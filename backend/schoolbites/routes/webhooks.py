# Overview: Stripe webhook endpoint; verifies the signature and hands the event to payment reconciliation.

"""
Stripe Webhook Route

WHY: The webhook is the authoritative source of payment outcomes. The
redirect page may never load (closed tab, network loss) and async payment
methods settle long after the redirect.

RESPONSES:
- 400: bad signature or malformed payload (Stripe will retry, which is
  correct: a retry with the same bad signature fails again and surfaces
  in the Stripe dashboard)
- 200 {"received": true, "processed": false}: verified event whose payment
  is unknown or corrupt. Acknowledged so Stripe stops redelivering an
  event that can never succeed; logged for follow-up
- 200 {"received": true, "processed": true}: applied (or ignored type)
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import SchoolBitesError
from ..services import checkout_service, payment_service


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/stripe")
def stripe_webhook_route():
    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature")

    try:
        event = checkout_service.parse_webhook(payload, signature)
    except SchoolBitesError as e:
        current_app.logger.warning("Rejected Stripe webhook: %s", e)
        return jsonify({"error": str(e)}), e.status_code

    try:
        result = payment_service.apply_webhook_event(event)
    except Exception:
        current_app.logger.exception("Failed to process Stripe webhook %s", event.event_type)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"received": True, "processed": result.success, **result.to_dict()}), 200
