# Overview: Service-layer operations for the saree catalogue; quantity changes go through the stock ledger.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import BillItem, PurchaseOrderItem, Saree, StockMovement, User
from ..models.inventory import SOURCE_ADJUSTMENT_IN, SOURCE_ADJUSTMENT_OUT
from ..validation import SareePatch, clean_str, coerce_int, non_negative_money, require_str
from .concurrency import begin_write, lock_for_update, run_with_retry
from .shop_service import require_shop_manager, require_shop_member, require_shop_owner
from .stock_ledger_service import append_movement, list_movements, lock_items


def _item_code_taken(shop_id: int, item_code: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Saree.id).filter_by(shop_id=shop_id, item_code=item_code)
    if exclude_id is not None:
        query = query.filter(Saree.id != exclude_id)
    return query.first() is not None


def get_saree(shop_id: int, saree_id: int) -> Saree:
    saree = db.session.query(Saree).filter_by(id=saree_id, shop_id=shop_id).first()
    if saree is None:
        raise NotFoundError("Saree not found", details={"saree_id": saree_id})
    return saree


def _saree_for_actor(saree_id: int, actor: User) -> Saree:
    saree = db.session.get(Saree, saree_id)
    if saree is None:
        raise NotFoundError("Saree not found", details={"saree_id": saree_id})
    require_shop_member(saree.shop_id, actor)
    return saree


def create_saree(shop_id: int, actor: User, data: dict) -> Saree:
    """
    Owner/Manager adds a saree.

    Opening stock, when given, is booked as an ADJUSTMENT_IN movement so the
    ledger explains every unit on hand.
    """
    require_shop_manager(shop_id, actor)

    name = require_str(data, "name")
    item_code = require_str(data, "item_code", max_length=64)
    price = non_negative_money(data.get("price"), "price")
    opening_stock = coerce_int(data.get("stock_quantity") or 0, "stock_quantity")
    if opening_stock < 0:
        raise ValidationError("stock_quantity must be >= 0")

    def _op():
        if _item_code_taken(shop_id, item_code):
            raise ConflictError("item_code already exists in this shop", details={"item_code": item_code})

        saree = Saree(
            shop_id=shop_id,
            item_code=item_code,
            name=name,
            type=clean_str(data.get("type"), "type"),
            color=clean_str(data.get("color"), "color"),
            design=clean_str(data.get("design"), "design"),
            price=price,
            stock_quantity=0,
        )
        db.session.add(saree)
        db.session.flush()

        if opening_stock:
            append_movement(
                shop_id=shop_id,
                saree_id=saree.id,
                source_type=SOURCE_ADJUSTMENT_IN,
                quantity_change=opening_stock,
                unit_value=price,
                note="Opening stock",
                actor_user_id=actor.id,
            )

        db.session.commit()
        return saree

    return run_with_retry(_op)


def list_sarees(shop_id: int, actor: User, q: str | None = None) -> list[Saree]:
    require_shop_member(shop_id, actor)
    query = db.session.query(Saree).filter_by(shop_id=shop_id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            Saree.name.ilike(like),
            Saree.item_code.ilike(like),
            Saree.type.ilike(like),
            Saree.color.ilike(like),
        ))
    return query.order_by(Saree.created_at.desc(), Saree.id.desc()).all()


def update_saree(saree_id: int, actor: User, patch: SareePatch) -> Saree:
    """Descriptive fields and price only; stock_quantity is not patchable."""
    def _op():
        saree = lock_for_update(db.session.query(Saree).filter_by(id=saree_id)).first()
        if saree is None:
            raise NotFoundError("Saree not found", details={"saree_id": saree_id})
        require_shop_manager(saree.shop_id, actor)

        changes = patch.changes()
        if "item_code" in changes and _item_code_taken(saree.shop_id, changes["item_code"], saree.id):
            raise ConflictError("item_code already exists in this shop")

        patch.apply(saree)
        db.session.commit()
        return saree

    return run_with_retry(_op)


def delete_saree(saree_id: int, actor: User) -> None:
    """
    Owner only. A saree with ledger history (movements, bill lines or PO
    lines) cannot be deleted because movements are never removed.
    """
    def _op():
        saree = db.session.get(Saree, saree_id)
        if saree is None:
            raise NotFoundError("Saree not found", details={"saree_id": saree_id})
        require_shop_owner(saree.shop_id, actor)

        referenced = (
            db.session.query(StockMovement.id).filter_by(saree_id=saree.id).first()
            or db.session.query(BillItem.id).filter_by(saree_id=saree.id).first()
            or db.session.query(PurchaseOrderItem.id).filter_by(saree_id=saree.id).first()
        )
        if referenced:
            raise ConflictError("Saree has stock history and cannot be deleted")

        db.session.delete(saree)
        db.session.commit()

    run_with_retry(_op)


def adjust_stock(saree_id: int, actor: User, quantity_change, note: str | None = None) -> StockMovement:
    """Manual correction: positive -> ADJUSTMENT_IN, negative -> ADJUSTMENT_OUT."""
    delta = coerce_int(quantity_change, "quantity_change")
    if delta == 0:
        raise ValidationError("quantity_change cannot be zero")
    note = clean_str(note, "note") or "Manual adjustment"

    def _op():
        begin_write()
        saree = db.session.get(Saree, saree_id)
        if saree is None:
            raise NotFoundError("Saree not found", details={"saree_id": saree_id})
        require_shop_manager(saree.shop_id, actor)
        lock_items(saree.shop_id, [saree.id])

        movement = append_movement(
            shop_id=saree.shop_id,
            saree_id=saree.id,
            source_type=SOURCE_ADJUSTMENT_IN if delta > 0 else SOURCE_ADJUSTMENT_OUT,
            quantity_change=delta,
            note=note,
            actor_user_id=actor.id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def saree_movements(saree_id: int, actor: User) -> list[StockMovement]:
    saree = _saree_for_actor(saree_id, actor)
    return list_movements(saree.shop_id, saree.id)
