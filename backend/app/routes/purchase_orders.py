# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import purchase_order_service
from ..validation import require_int
from ..decorators import require_auth, require_role


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/po")


@purchase_orders_bp.post("")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_po_route():
    """Body: {shop_id, supplier_id, notes?, discount?, tax?} -> DRAFT"""
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        po = purchase_order_service.create_draft(
            shop_id,
            data.get("supplier_id"),
            g.current_user,
            notes=data.get("notes"),
            discount=data.get("discount", 0),
            tax=data.get("tax", 0),
        )
        return jsonify({"po_id": po.id, "po": po.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("")
@require_auth
def list_pos_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        pos = purchase_order_service.list_purchase_orders(
            shop_id,
            g.current_user,
            supplier_id=request.args.get("supplier_id"),
            status=request.args.get("status"),
            q=request.args.get("q"),
        )
        return jsonify({"purchase_orders": [po.to_dict() for po in pos]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
def get_po_route(po_id: int):
    try:
        return jsonify(purchase_order_service.get_purchase_order(po_id, g.current_user)), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to get purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/items")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def set_po_items_route(po_id: int):
    """Body: {items: [{saree_id, qty_ordered, unit_cost}]}; DRAFT only, replaces all lines."""
    try:
        data = request.get_json(silent=True) or {}
        po = purchase_order_service.set_items(po_id, data.get("items"), g.current_user)
        return jsonify({"ok": True, "po": po.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to set purchase order items")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/submit")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def submit_po_route(po_id: int):
    try:
        po = purchase_order_service.submit(po_id, g.current_user)
        return jsonify({"ok": True, "po": po.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to submit purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/receive")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def receive_po_route(po_id: int):
    """Body: {items: [{po_item_id, qty}]}; over-requests are capped per line."""
    try:
        data = request.get_json(silent=True) or {}
        result = purchase_order_service.receive_items(po_id, data.get("items"), g.current_user)
        return jsonify(result), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500
