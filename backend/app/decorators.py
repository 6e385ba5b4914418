# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user (the authenticated User) and g.token (the raw bearer
    token, used by logout). Returns 401 for a missing, invalid, expired or
    revoked token and for deactivated accounts.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Unauthorized", "message": "Invalid or expired token"}), 401

        g.current_user = user
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require one of the given global roles (Owner, Manager, Cashier).

    Shop membership is checked by the services, since the shop usually
    comes from the request body or the target row.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Forbidden",
                    "message": "Role not allowed",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
