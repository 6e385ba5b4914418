from __future__ import annotations

from ..extensions import db
from app.utils import utcnow, to_utc_z, money_str

# StockMovement.source_type values
SOURCE_PURCHASE = "PURCHASE"
SOURCE_SALE = "SALE"
SOURCE_ADJUSTMENT_IN = "ADJUSTMENT_IN"
SOURCE_ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
SOURCE_RETURN_IN = "RETURN_IN"
SOURCE_RETURN_OUT = "RETURN_OUT"

MOVEMENT_SOURCE_TYPES = (
    SOURCE_PURCHASE,
    SOURCE_SALE,
    SOURCE_ADJUSTMENT_IN,
    SOURCE_ADJUSTMENT_OUT,
    SOURCE_RETURN_IN,
    SOURCE_RETURN_OUT,
)

# Direction each source type is allowed to move stock in (+1 in, -1 out)
MOVEMENT_DIRECTION = {
    SOURCE_PURCHASE: 1,
    SOURCE_SALE: -1,
    SOURCE_ADJUSTMENT_IN: 1,
    SOURCE_ADJUSTMENT_OUT: -1,
    SOURCE_RETURN_IN: 1,
    SOURCE_RETURN_OUT: -1,
}


class Saree(db.Model):
    """
    Inventory item.

    stock_quantity is a materialized projection of the stock ledger: it must
    always equal SUM(stock_movements.quantity_change) for this item and is
    written only by stock_ledger_service.append_movement().

    name/type/color/design are descriptive only; price is the current unit
    price and is snapshotted onto bill lines at sale time.
    """
    __tablename__ = "sarees"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "item_code", name="uq_sarees_shop_item_code"),
        db.Index("ix_sarees_shop_name", "shop_id", "name"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_sarees_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    item_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(128), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    design = db.Column(db.String(128), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("sarees", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Saree id={self.id} code={self.item_code!r} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "item_code": self.item_code,
            "name": self.name,
            "type": self.type,
            "color": self.color,
            "design": self.design,
            "price": money_str(self.price),
            "stock_quantity": self.stock_quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry. Never updated or deleted.

    source_id is a loose reference (PO id, bill id, ...) without a foreign
    key: a deleted bill keeps its SALE and RETURN_IN history.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_saree_created", "saree_id", "created_at"),
        db.Index("ix_stock_movements_source", "source_type", "source_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    saree_id = db.Column(db.Integer, db.ForeignKey("sarees.id"), nullable=False)

    source_type = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.Integer, nullable=True)

    # Signed: positive = in, negative = out
    quantity_change = db.Column(db.Integer, nullable=False)

    # Unit cost (purchases) or unit price (sales) at the time of the movement
    unit_value = db.Column(db.Numeric(12, 2), nullable=True)

    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "saree_id": self.saree_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "quantity_change": self.quantity_change,
            "unit_value": money_str(self.unit_value),
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
