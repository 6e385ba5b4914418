from __future__ import annotations

from ..extensions import db
from app.utils import to_utc_z

ROLE_OWNER = "Owner"
ROLE_MANAGER = "Manager"
ROLE_CASHIER = "Cashier"
VALID_ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_CASHIER)


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Role is global to the account (Owner, Manager or Cashier); which shops
    the user may act on is decided by ShopMember rows.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Password reset OTP: SHA-256 of the code, never the code itself
    reset_token_hash = db.Column(db.String(64), nullable=True)
    reset_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reset_attempts = db.Column(db.Integer, nullable=False, default=0)

    @property
    def is_cashier(self) -> bool:
        return self.role == ROLE_CASHIER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer session. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "revoked_at": to_utc_z(self.revoked_at),
        }
