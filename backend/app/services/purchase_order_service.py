# Overview: Service-layer operations for purchase orders; DRAFT -> ORDERED -> RECEIVED with stock receipts.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Supplier, User
from ..models.inventory import SOURCE_PURCHASE
from ..models.purchasing import PO_STATUS_DRAFT, PO_STATUS_ORDERED, PO_STATUS_RECEIVED
from ..validation import clean_str, coerce_int, non_negative_money, require_int
from app.utils import ZERO, money_str, round2, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .notification_service import dispatch
from .shop_service import require_shop_manager, require_shop_member
from .stock_ledger_service import append_movement, lock_items
from .supplier_service import get_supplier
"""
Purchase Order Invariants (authoritative)

- Items are mutable only while DRAFT and are replaced wholesale.
- sub_total = SUM(qty_ordered * unit_cost); total_amount = max(0, sub_total - discount + tax).
- Submit: DRAFT with >= 1 item -> ORDERED; ordered_at is stamped once.
- Receive: allowed while ORDERED or RECEIVED. Each line receives
  min(remaining, requested) and never errors on over-request; qty_received
  never exceeds qty_ordered. Every received unit is a PURCHASE movement.
- RECEIVED once SUM(qty_received) >= SUM(qty_ordered); received_at stamped once.
- Supplier mail goes out after commit and never affects the PO.
"""


def _lock_po(po_id: int) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if po is None:
        raise NotFoundError("Purchase order not found", details={"po_id": po_id})
    return po


def _parse_po_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items[] required")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        qty_ordered = require_int(item, "qty_ordered")
        if qty_ordered <= 0:
            raise ValidationError(
                "qty_ordered must be a positive integer",
                details={"index": index, "qty_ordered": qty_ordered},
            )
        parsed.append({
            "saree_id": require_int(item, "saree_id"),
            "qty_ordered": qty_ordered,
            "unit_cost": non_negative_money(item.get("unit_cost"), "unit_cost"),
        })
    return parsed


def _parse_receipts(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items[] required")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        po_item_id = require_int(item, "po_item_id")
        qty = coerce_int(item.get("qty"), "qty")
        if qty <= 0:
            raise ValidationError(
                "po_item_id and positive qty required",
                details={"index": index, "po_item_id": po_item_id, "qty": qty},
            )
        parsed.append((po_item_id, qty))
    return parsed


def recompute_totals(po: PurchaseOrder, items: list[PurchaseOrderItem]) -> None:
    sub_total = round2(sum((item.unit_cost * item.qty_ordered for item in items), ZERO))
    po.sub_total = sub_total
    po.total_amount = max(ZERO, round2(sub_total - round2(po.discount or 0) + round2(po.tax or 0)))


def create_draft(shop_id: int, supplier_id, actor: User, *, notes=None, discount=0, tax=0) -> PurchaseOrder:
    require_shop_manager(shop_id, actor)
    if supplier_id in (None, ""):
        raise ValidationError("supplier_id is required")
    supplier_id = coerce_int(supplier_id, "supplier_id")
    notes = clean_str(notes, "notes", max_length=2000)
    discount = non_negative_money(discount, "discount")
    tax = non_negative_money(tax, "tax")

    def _op():
        get_supplier(shop_id, supplier_id)
        po = PurchaseOrder(
            shop_id=shop_id,
            supplier_id=supplier_id,
            status=PO_STATUS_DRAFT,
            notes=notes,
            discount=discount,
            tax=tax,
            sub_total=ZERO,
            total_amount=max(ZERO, tax - discount),
            created_by_user_id=actor.id,
        )
        db.session.add(po)
        db.session.commit()
        return po

    return run_with_retry(_op)


def set_items(po_id: int, items, actor: User) -> PurchaseOrder:
    """Replace a DRAFT PO's lines wholesale and recompute totals."""
    parsed = _parse_po_items(items)

    def _op():
        begin_write()
        po = _lock_po(po_id)
        require_shop_manager(po.shop_id, actor)
        if po.status != PO_STATUS_DRAFT:
            raise ConflictError("Only DRAFT purchase orders can be edited", details={"status": po.status})

        lock_items(po.shop_id, [item["saree_id"] for item in parsed])

        for existing in list(po.items):
            db.session.delete(existing)
        db.session.flush()
        db.session.expire(po, ["items"])

        new_items = [
            PurchaseOrderItem(
                po_id=po.id,
                saree_id=item["saree_id"],
                qty_ordered=item["qty_ordered"],
                qty_received=0,
                unit_cost=item["unit_cost"],
            )
            for item in parsed
        ]
        db.session.add_all(new_items)
        recompute_totals(po, new_items)
        db.session.commit()
        return po

    return run_with_retry(_op)


def _order_message(po: PurchaseOrder, supplier: Supplier) -> tuple[str, str]:
    subject = f"Purchase Order #{po.id} from {po.shop.name}"
    lines = [
        f"Hello {supplier.name},",
        "",
        f"{po.shop.name} has placed purchase order #{po.id}.",
        "",
    ]
    for item in po.items:
        name = item.saree.name if item.saree else f"Item {item.saree_id}"
        code = item.saree.item_code if item.saree else ""
        lines.append(
            f"- {name} ({code}) x {item.qty_ordered} @ {money_str(item.unit_cost)}"
        )
    lines += [
        "",
        f"Sub total: {money_str(po.sub_total)}",
        f"Discount: {money_str(po.discount)}",
        f"Tax: {money_str(po.tax)}",
        f"Total: {money_str(po.total_amount)}",
    ]
    if po.notes:
        lines += ["", f"Notes: {po.notes}"]
    return subject, "\n".join(lines)


def submit(po_id: int, actor: User) -> PurchaseOrder:
    """DRAFT -> ORDERED, then notify the supplier after commit."""
    def _op():
        begin_write()
        po = _lock_po(po_id)
        require_shop_manager(po.shop_id, actor)
        if po.status != PO_STATUS_DRAFT:
            raise ConflictError("Only DRAFT purchase orders can be submitted", details={"status": po.status})

        items = list(po.items)
        if not items:
            raise ValidationError("Cannot submit a purchase order with no items")
        if any(item.qty_ordered <= 0 for item in items):
            raise ValidationError("Every item needs qty_ordered > 0")

        po.status = PO_STATUS_ORDERED
        if po.ordered_at is None:
            po.ordered_at = utcnow()
        db.session.commit()
        return po

    po = run_with_retry(_op)
    current_app.logger.info("Purchase order %s submitted by user %s", po.id, actor.id)

    supplier = po.supplier
    if supplier is None or not supplier.email:
        current_app.logger.warning(
            "Purchase order %s: supplier has no email, notification skipped", po.id
        )
        return po

    subject, body = _order_message(po, supplier)
    dispatch(supplier.email, subject, body)
    return po


def receive_items(po_id: int, items, actor: User) -> dict:
    """
    Receive stock against an ORDERED (or already RECEIVED) PO.

    Over-requests are capped at the remaining quantity per line.
    """
    receipts = _parse_receipts(items)

    def _op():
        begin_write()
        po = _lock_po(po_id)
        require_shop_manager(po.shop_id, actor)
        if po.status not in (PO_STATUS_ORDERED, PO_STATUS_RECEIVED):
            raise ConflictError(
                "PO must be ORDERED or RECEIVED to receive items",
                details={"status": po.status},
            )

        lines = {
            line.id: line
            for line in lock_for_update(
                db.session.query(PurchaseOrderItem).filter_by(po_id=po.id).order_by(PurchaseOrderItem.id)
            ).all()
        }
        missing = [po_item_id for po_item_id, _ in receipts if po_item_id not in lines]
        if missing:
            raise NotFoundError("PO item not found for this PO", details={"po_item_ids": missing})

        lock_items(po.shop_id, [lines[po_item_id].saree_id for po_item_id, _ in receipts])

        received = []
        for po_item_id, qty in receipts:
            line = lines[po_item_id]
            receive_now = min(line.remaining, qty)
            if receive_now <= 0:
                continue

            line.qty_received += receive_now
            append_movement(
                shop_id=po.shop_id,
                saree_id=line.saree_id,
                source_type=SOURCE_PURCHASE,
                source_id=po.id,
                quantity_change=receive_now,
                unit_value=line.unit_cost,
                note="PO Receive",
                actor_user_id=actor.id,
            )
            received.append({"po_item_id": line.id, "received": receive_now})

        ordered_sum = sum(line.qty_ordered for line in lines.values())
        received_sum = sum(line.qty_received for line in lines.values())
        fully_received = received_sum >= ordered_sum

        if fully_received:
            po.status = PO_STATUS_RECEIVED
            if po.received_at is None:
                po.received_at = utcnow()

        db.session.commit()
        current_app.logger.info(
            "Purchase order %s received %s (fully_received=%s)", po.id, received, fully_received
        )
        return {"ok": True, "po_id": po.id, "fullyReceived": fully_received, "received": received}

    return run_with_retry(_op)


def get_purchase_order(po_id: int, actor: User) -> dict:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order not found", details={"po_id": po_id})
    require_shop_member(po.shop_id, actor)
    return {"po": po.to_dict(), "items": [item.to_dict() for item in po.items]}


def list_purchase_orders(
    shop_id: int,
    actor: User,
    *,
    supplier_id=None,
    status: str | None = None,
    q: str | None = None,
) -> list[PurchaseOrder]:
    require_shop_member(shop_id, actor)
    query = (
        db.session.query(PurchaseOrder)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .filter(PurchaseOrder.shop_id == shop_id)
    )
    if supplier_id not in (None, ""):
        query = query.filter(PurchaseOrder.supplier_id == coerce_int(supplier_id, "supplier_id"))
    if status:
        query = query.filter(PurchaseOrder.status == status.strip().upper())
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Supplier.name.ilike(like), PurchaseOrder.notes.ilike(like)))
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
