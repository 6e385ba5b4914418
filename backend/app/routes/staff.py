# Overview: Flask API routes for shop staff; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import staff_service
from ..validation import StaffPatch, require_int
from ..decorators import require_auth, require_role


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def list_staff_route():
    """Owners see Managers and Cashiers; Managers see Cashiers."""
    try:
        shop_id = require_int(request.args, "shop_id")
        staff = staff_service.list_staff(shop_id, g.current_user)
        return jsonify({"staff": [user.to_dict() for user in staff]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def add_staff_route():
    """Body: {shop_id, name, email, password, role}; role is Manager or Cashier."""
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        user = staff_service.add_staff(
            shop_id,
            g.current_user,
            data,
            bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        return jsonify({"user": user.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to add staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.patch("/<int:user_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def update_staff_route(user_id: int):
    """Body: {shop_id, name?, email?, role?, password?}."""
    try:
        data = dict(request.get_json(silent=True) or {})
        shop_id = require_int(data, "shop_id")
        data.pop("shop_id")
        patch = StaffPatch.from_payload(data)
        user = staff_service.update_staff(
            shop_id,
            user_id,
            g.current_user,
            patch,
            bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        return jsonify({"user": user.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.delete("/<int:user_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def remove_staff_route(user_id: int):
    try:
        shop_id = require_int(request.args, "shop_id")
        deactivated = staff_service.remove_staff(shop_id, user_id, g.current_user)
        return jsonify({"ok": True, "deactivated": deactivated}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to remove staff")
        return jsonify({"error": "Internal server error"}), 500
