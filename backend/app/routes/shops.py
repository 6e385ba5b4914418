# Overview: Flask API routes for shops and staff membership; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_OWNER
from ..services import shop_service
from ..validation import ShopPatch
from ..decorators import require_auth, require_role


shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.post("")
@require_auth
@require_role(ROLE_OWNER)
def create_shop_route():
    """Owner creates a shop; the response carries the staff join code."""
    try:
        data = request.get_json(silent=True) or {}
        shop = shop_service.create_shop(g.current_user, data)
        return jsonify({"shop": shop.to_dict(include_secret=True)}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create shop")
        return jsonify({"error": "Internal server error"}), 500


@shops_bp.get("/my")
@require_auth
def my_shops_route():
    user = g.current_user
    shops = shop_service.list_my_shops(user)
    return jsonify({
        "shops": [shop.to_dict(include_secret=shop.owner_id == user.id) for shop in shops]
    }), 200


@shops_bp.post("/join")
@require_auth
def join_shop_route():
    try:
        data = request.get_json(silent=True) or {}
        shop = shop_service.join_shop(g.current_user, data.get("secret_code") or data.get("shop_code"))
        return jsonify({"shop": shop.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to join shop")
        return jsonify({"error": "Internal server error"}), 500


@shops_bp.patch("/<int:shop_id>")
@require_auth
@require_role(ROLE_OWNER)
def update_shop_route(shop_id: int):
    """Owner updates shop details; tax_percentage applies to bills created afterwards."""
    try:
        patch = ShopPatch.from_payload(request.get_json(silent=True))
        shop = shop_service.update_shop(shop_id, g.current_user, patch)
        return jsonify({"shop": shop.to_dict(include_secret=True)}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update shop")
        return jsonify({"error": "Internal server error"}), 500
