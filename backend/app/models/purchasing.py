from __future__ import annotations

from ..extensions import db
from app.utils import to_utc_z, money_str

PO_STATUS_DRAFT = "DRAFT"
PO_STATUS_ORDERED = "ORDERED"
PO_STATUS_RECEIVED = "RECEIVED"
# Stored value only; no transition leads here yet.
PO_STATUS_CANCELLED = "CANCELLED"


class Supplier(db.Model):
    """Vendor a shop restocks from. Email is where PO notifications go."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address_line = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    postal_code = db.Column(db.String(32), nullable=True)
    country = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("suppliers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address_line": self.address_line,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseOrder(db.Model):
    """
    Inbound restocking document.

    LIFECYCLE:
    1. DRAFT: items may be replaced wholesale
    2. ORDERED: items frozen, supplier notified; partial receipts keep it here
    3. RECEIVED: every line fully received (further receipts still allowed
       to correct under-receipt; they cap at zero remaining)
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_DRAFT)
    notes = db.Column(db.Text, nullable=True)

    sub_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    ordered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier")
    shop = db.relationship("Shop", backref=db.backref("purchase_orders", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_id": self.id,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "status": self.status,
            "notes": self.notes,
            "sub_total": money_str(self.sub_total),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total_amount": money_str(self.total_amount),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "ordered_at": to_utc_z(self.ordered_at),
            "received_at": to_utc_z(self.received_at),
        }


class PurchaseOrderItem(db.Model):
    """PO line. qty_received only grows and never exceeds qty_ordered."""
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("qty_ordered > 0", name="ck_po_items_qty_ordered_positive"),
        db.CheckConstraint(
            "qty_received >= 0 AND qty_received <= qty_ordered",
            name="ck_po_items_qty_received_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    saree_id = db.Column(db.Integer, db.ForeignKey("sarees.id"), nullable=False)

    qty_ordered = db.Column(db.Integer, nullable=False)
    qty_received = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    purchase_order = db.relationship(
        "PurchaseOrder",
        backref=db.backref("items", lazy=True, order_by="PurchaseOrderItem.id"),
    )
    saree = db.relationship("Saree")

    @property
    def remaining(self) -> int:
        return self.qty_ordered - self.qty_received

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_item_id": self.id,
            "po_id": self.po_id,
            "saree_id": self.saree_id,
            "saree_name": self.saree.name if self.saree else None,
            "qty_ordered": self.qty_ordered,
            "qty_received": self.qty_received,
            "unit_cost": money_str(self.unit_cost),
        }
