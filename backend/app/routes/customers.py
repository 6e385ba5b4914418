# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError, ValidationError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import customer_service
from ..services.shop_service import require_shop_member
from ..validation import CustomerPatch, require_int
from ..decorators import require_auth, require_role


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_auth
def create_customer_route():
    """Body: {shop_id, phone, name?, email?}; 409 if the phone exists in the shop."""
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        customer = customer_service.create_customer(shop_id, g.current_user, data)
        return jsonify({"customer": customer.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
@require_auth
def list_customers_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        customers = customer_service.list_customers(shop_id, g.current_user, q=request.args.get("q"))
        return jsonify({"customers": [c.to_dict() for c in customers]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/by-phone")
@require_auth
def customer_by_phone_route():
    """Exact lookup; {"customer": null} when the phone is unknown."""
    try:
        shop_id = require_int(request.args, "shop_id")
        phone = (request.args.get("phone") or "").strip()
        if not phone:
            raise ValidationError("phone is required")
        require_shop_member(shop_id, g.current_user)
        customer = customer_service.find_by_phone(shop_id, phone)
        return jsonify({"customer": customer.to_dict() if customer else None}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to look up customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        patch = CustomerPatch.from_payload(request.get_json(silent=True))
        customer = customer_service.update_customer(customer_id, g.current_user, patch)
        return jsonify({"customer": customer.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id, g.current_user)
        return jsonify({"ok": True}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500
