# Overview: Flask API routes for billing and bill edit approval; parses input and returns JSON responses.

# backend/app/routes/billing.py
"""
Billing API routes

Bills:
- POST   /api/billing                      create bill from cart
- GET    /api/billing/<id>                 bill + items + payments + paid/due
- GET    /api/billing/shop/<shop_id>       bills of a shop (cashiers: own only)
- GET    /api/billing/mine?shop_id=        caller's own bills
- POST   /api/billing/<id>/payments        add payment
- PUT    /api/billing/<id>                 discount-only edit
- PUT    /api/billing/<id>/full            replace items (cashiers need approval)
- DELETE /api/billing/<id>                 delete and restore stock

Edit approval:
- POST /api/billing/<id>/edit-requests          cashier asks (409 if pending)
- GET  /api/billing/<id>/edit-requests/latest   latest request for the bill
- GET  /api/billing/edit-requests?shop_id=&status=
- POST /api/billing/edit-requests/<id>/respond  {decision: APPROVE|REJECT, note?}
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AppError
from ..models.auth import ROLE_MANAGER, ROLE_OWNER
from ..services import billing_service, edit_request_service
from ..validation import require_int
from ..decorators import require_auth, require_role


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


@billing_bp.post("")
@require_auth
def create_bill_route():
    """
    Body: {shop_id, customer_id?, customer?: {phone, name?, email?}, items: [{saree_id, quantity}],
           discount?, payment_method?, payment_reference?, amount_paid?}
    """
    try:
        data = request.get_json(silent=True) or {}
        shop_id = require_int(data, "shop_id")
        result = billing_service.create_bill(
            shop_id,
            data.get("items"),
            actor=g.current_user,
            customer_id=data.get("customer_id"),
            customer=data.get("customer"),
            discount=data.get("discount", 0),
            payment_method=data.get("payment_method", "Cash"),
            payment_reference=data.get("payment_reference"),
            amount_paid=data.get("amount_paid", 0),
        )
        return jsonify(result), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create bill")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/<int:bill_id>")
@require_auth
def get_bill_route(bill_id: int):
    try:
        return jsonify(billing_service.get_bill(bill_id, g.current_user)), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to get bill")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/shop/<int:shop_id>")
@require_auth
def list_shop_bills_route(shop_id: int):
    try:
        bills = billing_service.list_bills_by_shop(shop_id, g.current_user)
        return jsonify({"bills": bills}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list bills")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/mine")
@require_auth
def list_my_bills_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        bills = billing_service.list_my_bills(shop_id, g.current_user)
        return jsonify({"bills": bills}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list own bills")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/<int:bill_id>/payments")
@require_auth
def add_payment_route(bill_id: int):
    """Body: {amount, method?, reference?}"""
    try:
        data = request.get_json(silent=True) or {}
        result = billing_service.add_payment(
            bill_id,
            amount=data.get("amount"),
            method=data.get("method", "Cash"),
            reference=data.get("reference"),
            actor=g.current_user,
        )
        return jsonify(result), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.put("/<int:bill_id>")
@require_auth
def update_discount_route(bill_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = billing_service.update_bill_discount(
            bill_id, discount=data.get("discount", 0), actor=g.current_user
        )
        return jsonify(result), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update bill discount")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.put("/<int:bill_id>/full")
@require_auth
def update_full_route(bill_id: int):
    """
    Body: {items: [{saree_id, quantity}], discount?}

    Cashiers without an approved edit request get 403 with
    reason=APPROVAL_REQUIRED.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = billing_service.update_bill_full(
            bill_id,
            items=data.get("items"),
            discount=data.get("discount", 0),
            actor=g.current_user,
        )
        return jsonify(result), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to edit bill")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.delete("/<int:bill_id>")
@require_auth
def delete_bill_route(bill_id: int):
    try:
        billing_service.delete_bill(bill_id, g.current_user)
        return jsonify({"ok": True}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete bill")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# EDIT APPROVAL
# =============================================================================

@billing_bp.post("/<int:bill_id>/edit-requests")
@require_auth
def request_edit_route(bill_id: int):
    try:
        data = request.get_json(silent=True) or {}
        edit_request = edit_request_service.request_edit_approval(
            bill_id, g.current_user, data.get("reason")
        )
        return jsonify({"ok": True, "request": edit_request.to_dict()}), 201
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to request bill edit")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/<int:bill_id>/edit-requests/latest")
@require_auth
def latest_edit_request_route(bill_id: int):
    try:
        edit_request = edit_request_service.get_latest_edit_request(bill_id, g.current_user)
        return jsonify({"request": edit_request.to_dict() if edit_request else None}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to get edit request")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/edit-requests")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def list_edit_requests_route():
    try:
        shop_id = require_int(request.args, "shop_id")
        requests_ = edit_request_service.list_edit_requests(
            shop_id, g.current_user, status=request.args.get("status")
        )
        return jsonify({"requests": [r.to_dict() for r in requests_]}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list edit requests")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/edit-requests/<int:request_id>/respond")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def respond_edit_request_route(request_id: int):
    try:
        data = request.get_json(silent=True) or {}
        edit_request = edit_request_service.respond_to_request(
            request_id, g.current_user, data.get("decision"), note=data.get("note")
        )
        return jsonify({"ok": True, "request": edit_request.to_dict()}), 200
    except AppError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to respond to edit request")
        return jsonify({"error": "Internal server error"}), 500
