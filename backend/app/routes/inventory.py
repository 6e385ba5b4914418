# Overview: Flask API routes for the saree catalogue and stock adjustments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import inventory_service
from ..validation import SareePatch, require_int
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/sarees")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_saree_route():
    """
    Body: {shop_id, name, item_code, price, type?, color?, design?, stock_quantity?}

    stock_quantity is opening stock, booked as an ADJUSTMENT_IN movement.
    """
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        saree = inventory_service.create_saree(shop_id, g.current_user, data)
        return jsonify({"saree": saree.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create saree")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/sarees")
@require_auth
def list_sarees_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        sarees = inventory_service.list_sarees(shop_id, g.current_user, q=request.args.get("q"))
        return jsonify({"sarees": [s.to_dict() for s in sarees]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list sarees")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/sarees/<int:saree_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def update_saree_route(saree_id: int):
    try:
        patch = SareePatch.from_payload(request.get_json(silent=True))
        saree = inventory_service.update_saree(saree_id, g.current_user, patch)
        return jsonify({"saree": saree.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update saree")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/sarees/<int:saree_id>")
@require_auth
@require_role(ROLE_OWNER)
def delete_saree_route(saree_id: int):
    try:
        inventory_service.delete_saree(saree_id, g.current_user)
        return jsonify({"ok": True}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete saree")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/sarees/<int:saree_id>/adjust")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def adjust_saree_route(saree_id: int):
    """Body: {quantity_change (signed, non-zero), note?}"""
    try:
        data = request.get_json(silent=True) or {}
        movement = inventory_service.adjust_stock(
            saree_id,
            g.current_user,
            data.get("quantity_change"),
            note=data.get("note"),
        )
        saree = inventory_service.get_saree(movement.shop_id, movement.saree_id)
        return jsonify({"movement": movement.to_dict(), "saree": saree.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/sarees/<int:saree_id>/movements")
@require_auth
def saree_movements_route(saree_id: int):
    try:
        movements = inventory_service.saree_movements(saree_id, g.current_user)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
