from __future__ import annotations

from sqlalchemy import or_

from app.errors import ConflictError, NotFoundError
from app.extensions import db
from app.models import Bill, Customer, User
from app.services.concurrency import lock_for_update, run_with_retry
from app.services.shop_service import require_shop_manager, require_shop_member
from app.validation import CustomerPatch, clean_str, require_str


def _phone_taken(shop_id: int, phone: str, exclude_id: int | None = None) -> Customer | None:
    query = db.session.query(Customer).filter_by(shop_id=shop_id, phone=phone)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    return query.first()


def find_by_phone(shop_id: int, phone: str) -> Customer | None:
    return db.session.query(Customer).filter_by(shop_id=shop_id, phone=phone).first()


def find_or_create(shop_id: int, data: dict) -> Customer:
    """
    Resolve a customer by phone inside the caller's transaction, creating
    one if the shop has none. Does not commit.
    """
    phone = require_str(data, "phone", max_length=32)
    customer = find_by_phone(shop_id, phone)
    if customer:
        return customer

    customer = Customer(
        shop_id=shop_id,
        phone=phone,
        name=clean_str(data.get("name"), "name"),
        email=clean_str(data.get("email"), "email"),
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def create_customer(shop_id: int, actor: User, data: dict) -> Customer:
    require_shop_member(shop_id, actor)
    phone = require_str(data, "phone", max_length=32)

    def _op():
        existing = _phone_taken(shop_id, phone)
        if existing:
            raise ConflictError(
                "Customer with this phone already exists",
                details={"customer_id": existing.id},
            )
        customer = Customer(
            shop_id=shop_id,
            phone=phone,
            name=clean_str(data.get("name"), "name"),
            email=clean_str(data.get("email"), "email"),
        )
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def list_customers(shop_id: int, actor: User, q: str | None = None) -> list[Customer]:
    require_shop_member(shop_id, actor)
    query = db.session.query(Customer).filter_by(shop_id=shop_id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
            Customer.email.ilike(like),
        ))
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer(customer_id: int, actor: User) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    require_shop_member(customer.shop_id, actor)
    return customer


def update_customer(customer_id: int, actor: User, patch: CustomerPatch) -> Customer:
    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if customer is None:
            raise NotFoundError("Customer not found")
        require_shop_member(customer.shop_id, actor)

        changes = patch.changes()
        if "phone" in changes and _phone_taken(customer.shop_id, changes["phone"], customer.id):
            raise ConflictError("Customer with this phone already exists")

        patch.apply(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int, actor: User) -> None:
    """Customers referenced by bills cannot be deleted."""
    def _op():
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        require_shop_manager(customer.shop_id, actor)

        if db.session.query(Bill.id).filter_by(customer_id=customer.id).first():
            raise ConflictError("Customer has bills and cannot be deleted")

        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)
