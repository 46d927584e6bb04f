# Overview: Request decorators for API routes (identity resolution and admin gate).

from functools import wraps
from flask import g, jsonify, request

from .errors import UnauthenticatedError
from .extensions import db
from .models import User


def _resolve_user() -> User:
    """
    Map the request to a parent account.

    Tokens are verified by the upstream identity provider / gateway; the
    bearer value that reaches this service is the provider's subject id.

    Raises:
        UnauthenticatedError: missing header, or subject without an account
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthenticatedError("Authentication required")
    subject = auth_header.split(" ", 1)[1].strip()
    if not subject:
        raise UnauthenticatedError("Authentication required")

    user = db.session.query(User).filter_by(external_auth_id=subject).first()
    if user is None:
        raise UnauthenticatedError("Unknown account")
    return user


def require_auth(f):
    """
    Require an authenticated parent.

    Sets g.current_user. Returns 401 when the header is missing or the
    subject has no account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.current_user = _resolve_user()
        except UnauthenticatedError as e:
            return jsonify({"error": str(e)}), e.status_code
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function
