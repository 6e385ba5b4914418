from __future__ import annotations

from ..extensions import db
from app.utils import utcnow, to_utc_z, money_str

BILL_STATUS_UNPAID = "UNPAID"
BILL_STATUS_PARTIAL = "PARTIAL"
BILL_STATUS_PAID = "PAID"

EDIT_REQUEST_PENDING = "PENDING"
EDIT_REQUEST_APPROVED = "APPROVED"
EDIT_REQUEST_REJECTED = "REJECTED"
EDIT_REQUEST_USED = "USED"


class Bill(db.Model):
    """
    A sales transaction.

    Monetary invariants (all Numeric(12, 2)):
    - total_amount = round2(round2(subtotal - discount) + tax)
    - discount <= subtotal
    status is stored at creation and recomputed from the payment history on
    every payment and edit.
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.Index("ix_bills_shop_created", "shop_id", "created_at"),
        db.Index("ix_bills_shop_user", "shop_id", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # NULL = walk-in
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Cashier (or manager/owner) who created the bill
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=BILL_STATUS_UNPAID, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    shop = db.relationship("Shop", backref=db.backref("bills", lazy=True))
    customer = db.relationship("Customer")
    cashier = db.relationship("User", foreign_keys=[user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total_amount": money_str(self.total_amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BillItem(db.Model):
    """
    Bill line. price is the unit price snapshot taken at sale time and is
    never recomputed from the current saree price.
    """
    __tablename__ = "bill_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_bill_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    saree_id = db.Column(db.Integer, db.ForeignKey("sarees.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    bill = db.relationship("Bill", backref=db.backref("items", lazy=True, order_by="BillItem.id"))
    saree = db.relationship("Saree")

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_item_id": self.id,
            "bill_id": self.bill_id,
            "saree_id": self.saree_id,
            "saree_name": self.saree.name if self.saree else None,
            "quantity": self.quantity,
            "price": money_str(self.price),
            "line_total": money_str(self.line_total),
        }


class Payment(db.Model):
    """
    Payment against a bill. A bill may carry zero, one or many payments;
    their sum drives the bill status.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_bill_created", "bill_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False)

    # Cash, Card or UPI
    method = db.Column(db.String(16), nullable=False)
    # Card slip / UPI transaction reference
    reference = db.Column(db.String(128), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )

    bill = db.relationship("Bill", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.id,
            "bill_id": self.bill_id,
            "method": self.method,
            "reference": self.reference,
            "amount": money_str(self.amount),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class EditRequest(db.Model):
    """
    Cashier request for permission to fully edit a bill.

    Lifecycle: PENDING -> APPROVED | REJECTED; APPROVED -> USED when the
    requester's edit commits. At most one PENDING row per bill.
    """
    __tablename__ = "bill_edit_requests"
    __table_args__ = (
        db.Index("ix_bill_edit_requests_bill_requester", "bill_id", "requester_id"),
        db.Index("ix_bill_edit_requests_shop_status", "shop_id", "status"),
        # Partial unique index; dialects without partial indexes rely on the
        # bill row lock taken by edit_request_service.
        db.Index(
            "uq_bill_edit_requests_one_pending",
            "bill_id",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ).ddl_if(dialect=("sqlite", "postgresql")),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False)
    requester_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=EDIT_REQUEST_PENDING)

    responder_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    manager_note = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    bill = db.relationship("Bill", backref=db.backref("edit_requests", lazy=True))
    requester = db.relationship("User", foreign_keys=[requester_id])
    responder = db.relationship("User", foreign_keys=[responder_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.id,
            "bill_id": self.bill_id,
            "shop_id": self.shop_id,
            "requester_id": self.requester_id,
            "requester_name": self.requester.name if self.requester else None,
            "reason": self.reason,
            "status": self.status,
            "responder_id": self.responder_id,
            "manager_note": self.manager_note,
            "requested_at": to_utc_z(self.requested_at),
            "responded_at": to_utc_z(self.responded_at),
            "used_at": to_utc_z(self.used_at),
        }
