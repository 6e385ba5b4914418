# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import supplier_service
from ..validation import SupplierPatch, require_int
from ..decorators import require_auth, require_role


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_supplier_route():
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        supplier = supplier_service.create_supplier(shop_id, g.current_user, data)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        suppliers = supplier_service.list_suppliers(shop_id, g.current_user, q=request.args.get("q"))
        return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list suppliers")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def update_supplier_route(supplier_id: int):
    try:
        patch = SupplierPatch.from_payload(request.get_json(silent=True))
        supplier = supplier_service.update_supplier(supplier_id, g.current_user, patch)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_role(ROLE_OWNER)
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id, g.current_user)
        return jsonify({"ok": True}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
