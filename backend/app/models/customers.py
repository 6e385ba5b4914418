from __future__ import annotations

from ..extensions import db
from app.utils import to_utc_z


class Customer(db.Model):
    """
    Shop customer. Phone is the lookup key at the counter, so it is unique
    within a shop. Bills without a customer are walk-ins.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "phone", name="uq_customers_shop_phone"),
        db.Index("ix_customers_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }
