# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

- POST /api/auth/register: create an account (Owner, Manager or Cashier);
  Managers and Cashiers may pass shop_code to join a shop right away
- POST /api/auth/login: exchange email/password for a bearer token
- POST /api/auth/logout: revoke the current token
- GET  /api/auth/me: current user and their shops
- POST /api/auth/forgot-password: mail a one-time code (generic reply)
- POST /api/auth/reset-password: set a new password with that code
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_OWNER
from ..services import auth_service, session_service, shop_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    try:
        data = request.get_json(silent=True) or {}
        shop_code = data.get("shop_code")
        if shop_code and data.get("role") != ROLE_OWNER:
            shop_service.find_by_code(shop_code)

        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
            bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
        )

        status = "new"
        if shop_code and user.role != ROLE_OWNER:
            shop_service.join_shop(user, shop_code)
            status = "joined"

        _, token = session_service.create_session(user.id)
        payload = user.to_dict()
        payload["status"] = status
        return jsonify({"token": token, "user": payload}), 201

    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Registration failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be sent as 'Authorization: Bearer <token>' on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.authenticate(data.get("email"), data.get("password"))
        session, token = session_service.create_session(user.id)

        return jsonify({
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
            "user": user.to_dict(),
        }), 200

    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token)
        return jsonify({"ok": True}), 200
    except Exception:
        current_app.logger.exception("Logout failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    shops = shop_service.list_my_shops(user)
    return jsonify({
        "user": user.to_dict(),
        "shops": [shop.to_dict(include_secret=shop.owner_id == user.id) for shop in shops],
    }), 200


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """Same reply whether or not the email belongs to an account."""
    try:
        data = request.get_json(silent=True) or {}
        auth_service.request_password_reset(data.get("email"))
        return jsonify({"message": "If an account exists with this email, an OTP has been sent."}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Forgot password failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/reset-password")
def reset_password_route():
    try:
        data = request.get_json(silent=True) or {}
        auth_service.reset_password(
            data.get("email"),
            data.get("otp"),
            data.get("new_password"),
            bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        return jsonify({"message": "Password reset successfully! You can now login."}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Reset password failed")
        return jsonify({"error": "Internal server error"}), 500
