# Overview: Service-layer operations for billing; cart -> bill with stock, payments, edits and deletion.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import ForbiddenError, InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Bill, BillItem, Customer, EditRequest, Payment, User
from ..models.inventory import SOURCE_RETURN_IN, SOURCE_SALE
from ..models.sales import BILL_STATUS_PAID, BILL_STATUS_PARTIAL, BILL_STATUS_UNPAID
from ..validation import clean_str, parse_cart_items, validate_payment_method
from app.utils import ZERO, money_str, round2, to_decimal
from .concurrency import begin_write, lock_for_update, run_with_retry
from .customer_service import find_or_create
from .edit_request_service import consume_approval
from .shop_service import MANAGING_ROLES, is_member, require_shop_member
from .stock_ledger_service import append_movement, lock_items
"""
Billing Invariants (authoritative)

Money:
- Decimal arithmetic only; round2 = quantize(0.01, ROUND_HALF_UP).
- subtotal = round2(SUM(price * quantity)) over the bill's lines.
- discount = min(round2(requested), subtotal); negative discounts are rejected.
- tax = round2((subtotal - discount) * tax_percentage / 100).
- total_amount = round2(subtotal - discount + tax).

Status (recomputed on every payment and edit):
- PAID if paid >= total_amount, PARTIAL if 0 < paid < total_amount,
  otherwise UNPAID.

Stock:
- Sarees are locked in ascending id order, then validated, then mutated.
- Every quantity change is a stock movement (SALE out, RETURN_IN back),
  appended in the same transaction as the bill change.
- BillItem.price is the unit price snapshot taken at sale time.

Authorization:
- Any member of the shop may create bills and take payments.
- Cashiers only read, pay, edit and delete their own bills; they delete only
  UNPAID bills and edit only with an unused APPROVED edit request, which the
  edit consumes.
"""


def compute_totals(subtotal, discount, tax_percentage) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Returns (subtotal, capped_discount, tax, total_amount), all 2dp."""
    subtotal = round2(subtotal)
    capped_discount = min(round2(discount), subtotal)
    taxable = subtotal - capped_discount
    tax = round2(taxable * to_decimal(tax_percentage, "tax_percentage") / Decimal(100))
    total_amount = round2(taxable + tax)
    return subtotal, capped_discount, tax, total_amount


def derive_status(paid, total_amount) -> str:
    paid = round2(paid)
    if paid >= round2(total_amount):
        return BILL_STATUS_PAID
    if paid > ZERO:
        return BILL_STATUS_PARTIAL
    return BILL_STATUS_UNPAID


def _parse_discount(value) -> Decimal:
    discount = round2(to_decimal(value, "discount"))
    if discount < ZERO:
        raise ValidationError("discount must be >= 0")
    return discount


def _paid_total(bill_id: int) -> Decimal:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount), 0)
    ).filter(Payment.bill_id == bill_id).scalar()
    return round2(total or 0)


def _summary(bill: Bill, paid: Decimal) -> dict:
    return {
        "bill_id": bill.id,
        "customer_id": bill.customer_id,
        "subtotal": money_str(bill.subtotal),
        "discount": money_str(bill.discount),
        "tax": money_str(bill.tax),
        "total_amount": money_str(bill.total_amount),
        "paid": money_str(paid),
        "status": bill.status,
    }


def _lock_bill(bill_id: int) -> Bill:
    bill = lock_for_update(db.session.query(Bill).filter_by(id=bill_id)).first()
    if bill is None:
        raise NotFoundError("Bill not found", details={"bill_id": bill_id})
    return bill


def _require_bill_access(bill: Bill, actor: User) -> None:
    if not is_member(bill.shop_id, actor.id):
        raise NotFoundError("Bill not found", details={"bill_id": bill.id})
    if actor.is_cashier and bill.user_id != actor.id:
        raise ForbiddenError("Cashiers can only access their own bills")


def _authorize_edit(bill: Bill, actor: User) -> EditRequest | None:
    """
    Owner/Manager edit freely. A cashier must own the bill and hold an
    unused APPROVED request, which is consumed here.
    """
    _require_bill_access(bill, actor)
    if actor.role in MANAGING_ROLES:
        return None
    return consume_approval(bill, actor)


def _resolve_customer(shop_id: int, customer_id, customer) -> int | None:
    if customer_id not in (None, ""):
        found = db.session.query(Customer).filter_by(id=customer_id, shop_id=shop_id).first()
        if found is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})
        return found.id
    if isinstance(customer, dict) and customer.get("phone"):
        return find_or_create(shop_id, customer).id
    return None


def create_bill(
    shop_id: int,
    items,
    *,
    actor: User,
    customer_id=None,
    customer: dict | None = None,
    discount=0,
    payment_method: str = "Cash",
    payment_reference: str | None = None,
    amount_paid=0,
) -> dict:
    """
    Convert a cart into a bill in one transaction.

    Repeated saree ids stay separate lines; each is checked against the
    stock still remaining after the rows before it.
    """
    cart = parse_cart_items(items)
    requested_discount = _parse_discount(discount)
    method = validate_payment_method(payment_method)
    paid = round2(to_decimal(amount_paid, "amount_paid"))
    if paid < ZERO:
        raise ValidationError("amount_paid must be >= 0")
    reference = clean_str(payment_reference, "payment_reference", max_length=128)

    def _op():
        begin_write()
        shop = require_shop_member(shop_id, actor)
        resolved_customer_id = _resolve_customer(shop.id, customer_id, customer)

        sarees = lock_items(shop.id, [saree_id for saree_id, _ in cart])

        remaining = {saree_id: saree.stock_quantity for saree_id, saree in sarees.items()}
        lines = []
        raw_subtotal = ZERO
        for saree_id, quantity in cart:
            saree = sarees[saree_id]
            if remaining[saree_id] < quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {saree.name}",
                    details={
                        "saree_id": saree_id,
                        "available": remaining[saree_id],
                        "requested": quantity,
                    },
                )
            remaining[saree_id] -= quantity
            # Price snapshot is taken before any stock mutation
            price = round2(saree.price)
            lines.append((saree_id, quantity, price))
            raw_subtotal += price * quantity

        subtotal, capped_discount, tax, total_amount = compute_totals(
            raw_subtotal, requested_discount, shop.tax_percentage
        )

        bill = Bill(
            shop_id=shop.id,
            customer_id=resolved_customer_id,
            user_id=actor.id,
            subtotal=subtotal,
            discount=capped_discount,
            tax=tax,
            total_amount=total_amount,
            status=derive_status(paid, total_amount),
        )
        db.session.add(bill)
        db.session.flush()

        for saree_id, quantity, price in lines:
            db.session.add(BillItem(bill_id=bill.id, saree_id=saree_id, quantity=quantity, price=price))
            append_movement(
                shop_id=shop.id,
                saree_id=saree_id,
                source_type=SOURCE_SALE,
                source_id=bill.id,
                quantity_change=-quantity,
                unit_value=price,
                note=f"Bill #{bill.id}",
                actor_user_id=actor.id,
            )

        if paid > ZERO:
            db.session.add(Payment(
                bill_id=bill.id,
                method=method,
                reference=reference,
                amount=paid,
                created_by_user_id=actor.id,
            ))

        db.session.commit()
        current_app.logger.info(
            "Bill %s created in shop %s by user %s: total=%s status=%s",
            bill.id, shop.id, actor.id, total_amount, bill.status,
        )
        return _summary(bill, paid)

    return run_with_retry(_op)


def get_bill(bill_id: int, actor: User) -> dict:
    bill = db.session.get(Bill, bill_id)
    if bill is None:
        raise NotFoundError("Bill not found", details={"bill_id": bill_id})
    _require_bill_access(bill, actor)

    payments = (
        db.session.query(Payment)
        .filter_by(bill_id=bill.id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
    paid = round2(sum((p.amount for p in payments), ZERO))

    header = bill.to_dict()
    header["tax_percentage"] = money_str(bill.shop.tax_percentage)
    header["cashier_name"] = bill.cashier.name if bill.cashier else None
    header["customer_name"] = bill.customer.name if bill.customer else None
    header["customer_phone"] = bill.customer.phone if bill.customer else None
    header["customer_email"] = bill.customer.email if bill.customer else None

    return {
        "bill": header,
        "items": [item.to_dict() for item in bill.items],
        "payments": [payment.to_dict() for payment in payments],
        "paid": money_str(paid),
        "due": money_str(round2(bill.total_amount) - paid),
    }


def _bill_row(bill: Bill) -> dict:
    row = bill.to_dict()
    row["cashier_name"] = bill.cashier.name if bill.cashier else None
    row["items"] = [item.to_dict() for item in bill.items]
    return row


def list_bills_by_shop(shop_id: int, actor: User) -> list[dict]:
    """Newest first. Cashiers only see bills they created."""
    require_shop_member(shop_id, actor)
    query = db.session.query(Bill).filter_by(shop_id=shop_id)
    if actor.is_cashier:
        query = query.filter_by(user_id=actor.id)
    bills = query.order_by(Bill.created_at.desc(), Bill.id.desc()).all()
    return [_bill_row(bill) for bill in bills]


def list_my_bills(shop_id: int, actor: User) -> list[dict]:
    require_shop_member(shop_id, actor)
    bills = (
        db.session.query(Bill)
        .filter_by(shop_id=shop_id, user_id=actor.id)
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .all()
    )
    return [_bill_row(bill) for bill in bills]


def add_payment(bill_id: int, *, amount, method: str = "Cash", reference=None, actor: User) -> dict:
    amount = round2(to_decimal(amount, "amount"))
    if amount <= ZERO:
        raise ValidationError("amount must be > 0")
    method = validate_payment_method(method)
    reference = clean_str(reference, "reference", max_length=128)

    def _op():
        begin_write()
        bill = _lock_bill(bill_id)
        _require_bill_access(bill, actor)

        db.session.add(Payment(
            bill_id=bill.id,
            method=method,
            reference=reference,
            amount=amount,
            created_by_user_id=actor.id,
        ))
        db.session.flush()

        paid = _paid_total(bill.id)
        bill.status = derive_status(paid, bill.total_amount)
        db.session.commit()
        return {"ok": True, "bill_id": bill.id, "paid": money_str(paid), "status": bill.status}

    return run_with_retry(_op)


def _reprice(bill: Bill, raw_subtotal: Decimal, requested_discount: Decimal) -> Decimal:
    """Recompute totals and status on a locked bill; returns paid."""
    subtotal, capped_discount, tax, total_amount = compute_totals(
        raw_subtotal, requested_discount, bill.shop.tax_percentage
    )
    bill.subtotal = subtotal
    bill.discount = capped_discount
    bill.tax = tax
    bill.total_amount = total_amount

    paid = _paid_total(bill.id)
    bill.status = derive_status(paid, total_amount)
    return paid


def update_bill_discount(bill_id: int, *, discount, actor: User) -> dict:
    """Change only the discount; lines and their snapshot prices stay."""
    requested_discount = _parse_discount(discount)

    def _op():
        begin_write()
        bill = _lock_bill(bill_id)
        _authorize_edit(bill, actor)

        raw_subtotal = sum((item.price * item.quantity for item in bill.items), ZERO)
        paid = _reprice(bill, raw_subtotal, requested_discount)
        db.session.commit()
        return _summary(bill, paid)

    return run_with_retry(_op)


def update_bill_full(bill_id: int, *, items, discount=0, actor: User) -> dict:
    """
    Replace the bill's item set.

    Quantities are merged per saree and quantity 0 drops a saree. Stock is
    reconciled by the per-saree difference against the current lines.
    Sarees already on the bill keep their snapshot price; newly added sarees
    take the current price.
    """
    requested = parse_cart_items(items, allow_zero=True)
    requested_discount = _parse_discount(discount)

    new_qty: dict[int, int] = {}
    for saree_id, quantity in requested:
        new_qty[saree_id] = new_qty.get(saree_id, 0) + quantity
    if not any(new_qty.values()):
        raise ValidationError("A bill needs at least one item; delete the bill instead")

    def _op():
        begin_write()
        bill = _lock_bill(bill_id)
        _authorize_edit(bill, actor)

        old_items = list(bill.items)
        old_qty: dict[int, int] = {}
        old_price: dict[int, Decimal] = {}
        for item in old_items:
            old_qty[item.saree_id] = old_qty.get(item.saree_id, 0) + item.quantity
            old_price.setdefault(item.saree_id, round2(item.price))

        sarees = lock_items(bill.shop_id, set(old_qty) | set(new_qty))

        deltas = {
            saree_id: new_qty.get(saree_id, 0) - old_qty.get(saree_id, 0)
            for saree_id in sorted(sarees)
        }
        short = [
            {
                "saree_id": saree_id,
                "available": sarees[saree_id].stock_quantity,
                "requested": delta,
            }
            for saree_id, delta in deltas.items()
            if delta > 0 and sarees[saree_id].stock_quantity < delta
        ]
        if short:
            raise InsufficientStockError("Insufficient stock for bill edit", details={"items": short})

        for item in old_items:
            db.session.delete(item)
        db.session.flush()
        db.session.expire(bill, ["items"])

        raw_subtotal = ZERO
        for saree_id, quantity in new_qty.items():
            if quantity == 0:
                continue
            price = old_price.get(saree_id, round2(sarees[saree_id].price))
            db.session.add(BillItem(bill_id=bill.id, saree_id=saree_id, quantity=quantity, price=price))
            raw_subtotal += price * quantity

        for saree_id, delta in deltas.items():
            if delta == 0:
                continue
            price = old_price.get(saree_id, round2(sarees[saree_id].price))
            append_movement(
                shop_id=bill.shop_id,
                saree_id=saree_id,
                source_type=SOURCE_SALE if delta > 0 else SOURCE_RETURN_IN,
                source_id=bill.id,
                quantity_change=-delta,
                unit_value=price,
                note=f"Bill #{bill.id} edit",
                actor_user_id=actor.id,
            )

        paid = _reprice(bill, raw_subtotal, requested_discount)
        db.session.commit()
        current_app.logger.info("Bill %s edited by user %s", bill.id, actor.id)
        return _summary(bill, paid)

    return run_with_retry(_op)


def delete_bill(bill_id: int, actor: User) -> None:
    """
    Compensating delete: every line's quantity returns to stock as a
    RETURN_IN movement, then payments, edit requests, lines and the bill go.
    """
    def _op():
        begin_write()
        bill = _lock_bill(bill_id)
        _require_bill_access(bill, actor)
        if actor.is_cashier and bill.status != BILL_STATUS_UNPAID:
            raise ForbiddenError("Cashiers can delete only UNPAID bills")

        items = list(bill.items)
        lock_items(bill.shop_id, [item.saree_id for item in items])
        for item in items:
            append_movement(
                shop_id=bill.shop_id,
                saree_id=item.saree_id,
                source_type=SOURCE_RETURN_IN,
                source_id=bill.id,
                quantity_change=item.quantity,
                unit_value=item.price,
                note=f"Bill #{bill.id} deleted",
                actor_user_id=actor.id,
            )

        for payment in list(bill.payments):
            db.session.delete(payment)
        for edit_request in list(bill.edit_requests):
            db.session.delete(edit_request)
        for item in items:
            db.session.delete(item)
        db.session.flush()
        db.session.expire(bill, ["items", "payments", "edit_requests"])

        db.session.delete(bill)
        db.session.commit()
        current_app.logger.info("Bill %s deleted by user %s", bill_id, actor.id)

    run_with_retry(_op)
