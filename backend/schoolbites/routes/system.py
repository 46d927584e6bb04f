# backend/schoolbites/routes/system.py
"""
System health endpoint.

Checks database connectivity and payment provider configuration so a
deployment can be verified before parents hit checkout.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import School, User
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        school_count = db.session.query(School).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "schools": school_count,
                "users": user_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_payment_provider_config() -> dict:
    """Stripe keys present. Missing keys degrade checkout but not browsing."""
    missing = [
        key for key in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")
        if not current_app.config.get(key)
    ]
    if missing:
        return {"status": "degraded", "warning": f"Missing config: {', '.join(missing)}"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    payments_health = check_payment_provider_config()

    all_checks = [database_health, payments_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "payment_provider": payments_health,
        }
    }

    return response, http_status
