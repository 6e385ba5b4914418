from __future__ import annotations

from ..extensions import db
from app.utils import to_utc_z, money_str


class Shop(db.Model):
    """
    Tenant root: every saree, bill, customer, supplier and PO belongs to one shop.

    Owned by exactly one Owner user; staff (Managers, Cashiers) join through
    the 6-digit secret_code and are linked via ShopMember.

    tax_percentage is shop-wide and read at bill time; changing it never
    touches existing bills.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_owner_id", "owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Join token handed to staff by the owner
    secret_code = db.Column(db.String(16), nullable=False, unique=True)

    address_line = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    postal_code = db.Column(db.String(32), nullable=True)
    country = db.Column(db.String(128), nullable=True)

    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    owner = db.relationship("User", foreign_keys=[owner_id])

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self, include_secret: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "address_line": self.address_line,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "tax_percentage": money_str(self.tax_percentage),
            "created_at": to_utc_z(self.created_at),
        }
        if include_secret:
            data["secret_code"] = self.secret_code
        return data


class ShopMember(db.Model):
    """Staff membership (many-to-many users <-> shops). Owners are members too."""
    __tablename__ = "shop_members"
    __table_args__ = (
        db.UniqueConstraint("user_id", "shop_id", name="uq_shop_members_user_shop"),
        db.Index("ix_shop_members_shop", "shop_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("memberships", lazy=True))
    shop = db.relationship("Shop", backref=db.backref("members", lazy=True))
