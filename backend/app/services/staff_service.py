# Overview: Service-layer operations for shop staff; hire, edit and remove Managers and Cashiers.

"""
Staff management

Who may manage whom:
- An Owner manages the Managers and Cashiers of their shops.
- A Manager manages the Cashiers of their shops only.
- Owners are never managed through these operations.

Removing a staff member unlinks them from the shop. An account left with no
shop is deactivated and its sessions revoked; it is not deleted, because
bills and stock movements keep pointing at the user who made them.
"""

from __future__ import annotations

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import SessionToken, ShopMember, User
from ..models.auth import ROLE_CASHIER, ROLE_MANAGER, ROLE_OWNER
from ..validation import STAFF_ROLES, StaffPatch, require_str
from app.utils import utcnow
from .auth_service import hash_password, normalize_email
from .concurrency import run_with_retry
from .shop_service import require_shop_manager


def manageable_roles(actor: User) -> tuple[str, ...]:
    if actor.role == ROLE_OWNER:
        return (ROLE_MANAGER, ROLE_CASHIER)
    if actor.role == ROLE_MANAGER:
        return (ROLE_CASHIER,)
    return ()


def _require_manageable_role(actor: User, role: str) -> None:
    if role not in manageable_roles(actor):
        raise ForbiddenError(
            f"{actor.role}s cannot manage {role}s",
            details={"allowed": list(manageable_roles(actor))},
        )


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter_by(email=email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _staff_member(shop_id: int, user_id: int, actor: User) -> User:
    """The target must be linked to the shop and within the actor's reach."""
    target = (
        db.session.query(User)
        .join(ShopMember, ShopMember.user_id == User.id)
        .filter(ShopMember.shop_id == shop_id, User.id == user_id)
        .first()
    )
    if target is None:
        raise NotFoundError("User not found in this shop", details={"user_id": user_id})
    if target.role == ROLE_OWNER:
        raise ForbiddenError("Owners cannot be managed as staff")
    _require_manageable_role(actor, target.role)
    return target


def list_staff(shop_id: int, actor: User) -> list[User]:
    require_shop_manager(shop_id, actor)
    return (
        db.session.query(User)
        .join(ShopMember, ShopMember.user_id == User.id)
        .filter(ShopMember.shop_id == shop_id, User.role.in_(manageable_roles(actor)))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


def add_staff(shop_id: int, actor: User, data: dict, *, bcrypt_rounds: int = 12) -> User:
    """Create the account and link it to the shop in one transaction."""
    require_shop_manager(shop_id, actor)

    name = require_str(data, "name")
    email = normalize_email(data.get("email"))
    role = data.get("role")
    if role not in STAFF_ROLES:
        raise ValidationError("Invalid role", details={"allowed": list(STAFF_ROLES)})
    _require_manageable_role(actor, role)
    password_hash = hash_password(data.get("password"), rounds=bcrypt_rounds)

    def _op():
        if _email_taken(email):
            raise ConflictError("Email already registered")
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(ShopMember(user_id=user.id, shop_id=shop_id))
        db.session.commit()
        return user

    return run_with_retry(_op)


def update_staff(shop_id: int, user_id: int, actor: User, patch: StaffPatch, *, bcrypt_rounds: int = 12) -> User:
    require_shop_manager(shop_id, actor)
    changes = patch.changes()
    if "role" in changes:
        _require_manageable_role(actor, changes["role"])
    password_hash = None
    if "password" in changes:
        password_hash = hash_password(changes.pop("password"), rounds=bcrypt_rounds)

    def _op():
        target = _staff_member(shop_id, user_id, actor)
        if "email" in changes and _email_taken(changes["email"], target.id):
            raise ConflictError("Email already registered")

        for key, value in changes.items():
            setattr(target, key, value)
        if password_hash:
            target.password_hash = password_hash
        db.session.commit()
        return target

    return run_with_retry(_op)


def remove_staff(shop_id: int, user_id: int, actor: User) -> bool:
    """
    Unlink the user from the shop.

    Returns True when the account had no other shop and was deactivated.
    """
    require_shop_manager(shop_id, actor)

    def _op():
        target = _staff_member(shop_id, user_id, actor)
        db.session.query(ShopMember).filter_by(shop_id=shop_id, user_id=target.id).delete()

        deactivated = False
        if not db.session.query(ShopMember.id).filter_by(user_id=target.id).first():
            target.is_active = False
            db.session.query(SessionToken).filter_by(user_id=target.id, revoked_at=None).update(
                {"revoked_at": utcnow()}, synchronize_session=False
            )
            deactivated = True
        db.session.commit()
        return deactivated

    return run_with_retry(_op)
