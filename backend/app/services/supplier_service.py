from __future__ import annotations

from sqlalchemy import or_

from app.errors import ConflictError, NotFoundError
from app.extensions import db
from app.models import PurchaseOrder, Supplier, User
from app.services.concurrency import lock_for_update, run_with_retry
from app.services.shop_service import require_shop_manager, require_shop_member, require_shop_owner
from app.validation import SupplierPatch, clean_str, require_str

ADDRESS_FIELDS = ("phone", "email", "address_line", "city", "state", "postal_code", "country")


def get_supplier(shop_id: int, supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id, shop_id=shop_id).first()
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def create_supplier(shop_id: int, actor: User, data: dict) -> Supplier:
    require_shop_manager(shop_id, actor)
    name = require_str(data, "name")
    fields = {key: clean_str(data.get(key), key) for key in ADDRESS_FIELDS}

    def _op():
        supplier = Supplier(shop_id=shop_id, name=name, **fields)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def list_suppliers(shop_id: int, actor: User, q: str | None = None) -> list[Supplier]:
    require_shop_member(shop_id, actor)
    query = db.session.query(Supplier).filter_by(shop_id=shop_id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            Supplier.name.ilike(like),
            Supplier.phone.ilike(like),
            Supplier.email.ilike(like),
        ))
    return query.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def update_supplier(supplier_id: int, actor: User, patch: SupplierPatch) -> Supplier:
    def _op():
        supplier = lock_for_update(db.session.query(Supplier).filter_by(id=supplier_id)).first()
        if supplier is None:
            raise NotFoundError("Supplier not found")
        require_shop_manager(supplier.shop_id, actor)
        patch.apply(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def delete_supplier(supplier_id: int, actor: User) -> None:
    """Owner only; suppliers with purchase orders are kept."""
    def _op():
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier not found")
        require_shop_owner(supplier.shop_id, actor)

        if db.session.query(PurchaseOrder.id).filter_by(supplier_id=supplier.id).first():
            raise ConflictError("Supplier has purchase orders and cannot be deleted")

        db.session.delete(supplier)
        db.session.commit()

    run_with_retry(_op)
