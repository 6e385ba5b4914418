from __future__ import annotations

import secrets

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Shop, ShopMember, User
from app.models.auth import ROLE_CASHIER, ROLE_MANAGER, ROLE_OWNER
from app.services.concurrency import lock_for_update, run_with_retry
from app.validation import ShopPatch, clean_str, parse_tax_percentage, require_str

MANAGING_ROLES = (ROLE_OWNER, ROLE_MANAGER)


def _generate_secret_code() -> str:
    """6-digit join code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def _unique_secret_code(attempts: int = 10) -> str:
    for _ in range(attempts):
        code = _generate_secret_code()
        if not db.session.query(Shop.id).filter_by(secret_code=code).first():
            return code
    raise ConflictError("Could not allocate a unique shop code, please retry")


def is_member(shop_id: int, user_id: int) -> bool:
    return db.session.query(ShopMember.id).filter_by(
        shop_id=shop_id, user_id=user_id
    ).first() is not None


def require_shop_member(shop_id: int, user: User) -> Shop:
    """
    Resolve a shop the user belongs to.

    Unknown shops and shops the user is not a member of both raise
    NotFoundError, so ids of other tenants are never confirmed.
    """
    shop = db.session.get(Shop, shop_id)
    if shop is None or not is_member(shop.id, user.id):
        raise NotFoundError("Shop not found")
    return shop


def require_shop_manager(shop_id: int, user: User) -> Shop:
    """Owner or Manager member of the shop."""
    shop = require_shop_member(shop_id, user)
    if user.role not in MANAGING_ROLES:
        raise ForbiddenError("Owner or Manager role required")
    return shop


def require_shop_owner(shop_id: int, user: User) -> Shop:
    shop = require_shop_member(shop_id, user)
    if user.role != ROLE_OWNER or shop.owner_id != user.id:
        raise ForbiddenError("Only the shop owner can do this")
    return shop


def create_shop(owner: User, data: dict) -> Shop:
    """Owner creates a shop and becomes its first member."""
    if owner.role != ROLE_OWNER:
        raise ForbiddenError("Only owners can create shops")

    name = require_str(data, "name")
    tax_percentage = parse_tax_percentage(data.get("tax_percentage") or 0)
    address = {
        key: clean_str(data.get(key), key)
        for key in ("address_line", "city", "state", "postal_code", "country")
    }

    def _op():
        shop = Shop(
            name=name,
            owner_id=owner.id,
            secret_code=_unique_secret_code(),
            tax_percentage=tax_percentage,
            **address,
        )
        db.session.add(shop)
        db.session.flush()
        db.session.add(ShopMember(user_id=owner.id, shop_id=shop.id))
        db.session.commit()
        return shop

    return run_with_retry(_op)


def list_my_shops(user: User) -> list[Shop]:
    return (
        db.session.query(Shop)
        .join(ShopMember, ShopMember.shop_id == Shop.id)
        .filter(ShopMember.user_id == user.id)
        .order_by(Shop.created_at.desc(), Shop.id.desc())
        .all()
    )


def find_by_code(secret_code) -> Shop:
    code = clean_str(secret_code, "secret_code", max_length=16)
    if not code:
        raise ValidationError("secret_code is required")
    shop = db.session.query(Shop).filter_by(secret_code=code).first()
    if shop is None:
        raise NotFoundError("Invalid shop code")
    return shop


def join_shop(user: User, secret_code) -> Shop:
    """Manager or Cashier joins a shop by its secret code."""
    if user.role not in (ROLE_MANAGER, ROLE_CASHIER):
        raise ForbiddenError("Only managers and cashiers join shops by code")

    def _op():
        shop = find_by_code(secret_code)
        if is_member(shop.id, user.id):
            raise ConflictError("Already a member of this shop")
        db.session.add(ShopMember(user_id=user.id, shop_id=shop.id))
        db.session.commit()
        return shop

    return run_with_retry(_op)


def update_shop(shop_id: int, owner: User, patch: ShopPatch) -> Shop:
    """Only the owner may change shop details, including tax_percentage."""
    def _op():
        require_shop_owner(shop_id, owner)
        shop = lock_for_update(db.session.query(Shop).filter_by(id=shop_id)).first()
        patch.apply(shop)
        db.session.commit()
        return shop

    return run_with_retry(_op)
