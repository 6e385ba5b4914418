# Overview: Service-layer operations for the stock ledger; the single writer of Saree.stock_quantity.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Saree, StockMovement
from ..models.inventory import MOVEMENT_DIRECTION
from app.utils import round2
from .concurrency import lock_for_update
"""
Stock Ledger Invariants (authoritative)

- StockMovement rows are append-only: never updated, never deleted.
- Saree.stock_quantity == SUM(stock_movements.quantity_change) for that saree.
- Both writes happen in the caller's transaction; nothing here commits.
- stock_quantity never goes negative: a movement that would take it below
  zero raises InsufficientStockError and the caller's transaction rolls back.
- Callers lock the affected sarees with lock_items() (ascending id order)
  before validating availability and appending movements.
"""


def lock_items(shop_id: int, saree_ids) -> dict[int, Saree]:
    """
    Lock the given sarees of a shop in ascending id order.

    Returns {saree_id: Saree}. Raises NotFoundError listing ids that do not
    exist in this shop.
    """
    ids = sorted(set(saree_ids))
    if not ids:
        return {}

    rows = lock_for_update(
        db.session.query(Saree)
        .filter(Saree.shop_id == shop_id, Saree.id.in_(ids))
        .order_by(Saree.id.asc())
    ).all()

    found = {saree.id: saree for saree in rows}
    missing = [saree_id for saree_id in ids if saree_id not in found]
    if missing:
        raise NotFoundError("Saree not found in this shop", details={"saree_ids": missing})
    return found


def append_movement(
    *,
    shop_id: int,
    saree_id: int,
    source_type: str,
    quantity_change: int,
    source_id: int | None = None,
    unit_value: Decimal | None = None,
    note: str | None = None,
    actor_user_id: int | None = None,
) -> StockMovement:
    """
    Insert one immutable movement and move the materialized quantity with it.
    """
    direction = MOVEMENT_DIRECTION.get(source_type)
    if direction is None:
        raise ValidationError(f"Unknown movement source_type {source_type}")
    if quantity_change == 0:
        raise ValidationError("quantity_change cannot be zero")
    if (quantity_change > 0) != (direction > 0):
        raise ValidationError(
            f"{source_type} movements must be {'positive' if direction > 0 else 'negative'}",
            details={"quantity_change": quantity_change},
        )

    saree = db.session.get(Saree, saree_id)
    if saree is None or saree.shop_id != shop_id:
        raise NotFoundError("Saree not found in this shop", details={"saree_id": saree_id})

    new_quantity = saree.stock_quantity + quantity_change
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {saree.name}",
            details={
                "saree_id": saree.id,
                "available": saree.stock_quantity,
                "requested": -quantity_change,
            },
        )

    movement = StockMovement(
        shop_id=shop_id,
        saree_id=saree_id,
        source_type=source_type,
        source_id=source_id,
        quantity_change=quantity_change,
        unit_value=round2(unit_value) if unit_value is not None else None,
        note=note,
        created_by_user_id=actor_user_id,
    )
    saree.stock_quantity = new_quantity
    db.session.add(movement)
    db.session.flush()
    return movement


def movement_balance(saree_id: int) -> int:
    """SUM(quantity_change) over every movement of one saree."""
    total = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity_change), 0)
    ).filter(StockMovement.saree_id == saree_id).scalar()
    return int(total or 0)


def list_movements(shop_id: int, saree_id: int, limit: int = 200) -> list[StockMovement]:
    """Newest first."""
    return (
        db.session.query(StockMovement)
        .filter_by(shop_id=shop_id, saree_id=saree_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
