# Overview: Service-layer operations for bill edit approval; cashier request -> manager decision -> single use.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ApprovalRequiredError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Bill, EditRequest, User
from ..models.sales import (
    EDIT_REQUEST_APPROVED,
    EDIT_REQUEST_PENDING,
    EDIT_REQUEST_REJECTED,
    EDIT_REQUEST_USED,
)
from app.utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .shop_service import require_shop_manager, require_shop_member
"""
Edit Approval Invariants (authoritative)

States: PENDING -> APPROVED | REJECTED; APPROVED -> USED.
- At most one PENDING request per bill: checked under the bill row lock and
  backed by a partial unique index.
- Only a Cashier asks, and only for a bill they created.
- Only an Owner/Manager of the bill's shop decides, and only while PENDING.
- An APPROVED request authorizes exactly one edit by its requester; it is
  consumed (USED) inside the edit's own transaction, so a failed edit leaves
  it APPROVED.
- REJECTED and USED requests are history; they never block a new request.
"""

DECISIONS = {
    "APPROVE": EDIT_REQUEST_APPROVED,
    "REJECT": EDIT_REQUEST_REJECTED,
}


def _pending_for_bill(bill_id: int) -> EditRequest | None:
    return db.session.query(EditRequest).filter_by(
        bill_id=bill_id, status=EDIT_REQUEST_PENDING
    ).first()


def request_edit_approval(bill_id: int, requester: User, reason) -> EditRequest:
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")

    def _op():
        begin_write()
        bill = lock_for_update(db.session.query(Bill).filter_by(id=bill_id)).first()
        if bill is None:
            raise NotFoundError("Bill not found", details={"bill_id": bill_id})
        require_shop_member(bill.shop_id, requester)

        if not requester.is_cashier:
            raise ForbiddenError("Only cashiers request edit approval")
        if bill.user_id != requester.id:
            raise ForbiddenError("Cashiers can request edits only for their own bills")

        pending = _pending_for_bill(bill.id)
        if pending:
            raise ConflictError(
                "An edit request is already pending for this bill",
                details={"request_id": pending.id},
            )

        edit_request = EditRequest(
            bill_id=bill.id,
            shop_id=bill.shop_id,
            requester_id=requester.id,
            reason=reason,
            status=EDIT_REQUEST_PENDING,
        )
        db.session.add(edit_request)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("An edit request is already pending for this bill")

        db.session.commit()
        return edit_request

    return run_with_retry(_op)


def respond_to_request(request_id: int, manager: User, decision, note=None) -> EditRequest:
    status = DECISIONS.get(str(decision or "").strip().upper())
    if status is None:
        raise ValidationError("decision must be APPROVE or REJECT", details={"received": decision})
    note = str(note).strip() if note is not None else None

    def _op():
        begin_write()
        edit_request = lock_for_update(
            db.session.query(EditRequest).filter_by(id=request_id)
        ).first()
        if edit_request is None:
            raise NotFoundError("Edit request not found", details={"request_id": request_id})
        require_shop_manager(edit_request.shop_id, manager)

        if edit_request.status != EDIT_REQUEST_PENDING:
            raise ConflictError(
                f"Edit request is already {edit_request.status}",
                details={"status": edit_request.status},
            )

        edit_request.status = status
        edit_request.manager_note = note or None
        edit_request.responder_id = manager.id
        edit_request.responded_at = utcnow()
        db.session.commit()
        return edit_request

    return run_with_retry(_op)


def consume_approval(bill: Bill, requester: User) -> EditRequest:
    """
    Mark the requester's earliest unused APPROVED request for this bill USED.

    Runs inside the caller's transaction and does not commit. Raises
    ApprovalRequiredError when there is nothing to consume.
    """
    edit_request = lock_for_update(
        db.session.query(EditRequest)
        .filter_by(bill_id=bill.id, requester_id=requester.id, status=EDIT_REQUEST_APPROVED)
        .order_by(EditRequest.responded_at.asc(), EditRequest.id.asc())
    ).first()
    if edit_request is None:
        raise ApprovalRequiredError(
            "Manager approval is required to edit this bill",
            details={"bill_id": bill.id},
        )

    edit_request.status = EDIT_REQUEST_USED
    edit_request.used_at = utcnow()
    return edit_request


def list_edit_requests(shop_id: int, manager: User, status: str | None = None) -> list[EditRequest]:
    """Newest first; managers review a shop's queue, usually status=PENDING."""
    require_shop_manager(shop_id, manager)
    query = db.session.query(EditRequest).filter_by(shop_id=shop_id)
    if status:
        query = query.filter(EditRequest.status == status.strip().upper())
    return query.order_by(EditRequest.requested_at.desc(), EditRequest.id.desc()).all()


def get_latest_edit_request(bill_id: int, actor: User) -> EditRequest | None:
    """
    Latest request for a bill. Cashiers see only their own requests;
    managers see the latest from anyone.
    """
    bill = db.session.get(Bill, bill_id)
    if bill is None:
        raise NotFoundError("Bill not found", details={"bill_id": bill_id})
    require_shop_member(bill.shop_id, actor)

    query = db.session.query(EditRequest).filter_by(bill_id=bill.id)
    if actor.is_cashier:
        if bill.user_id != actor.id:
            raise ForbiddenError("Cashiers can only view their own bills")
        query = query.filter_by(requester_id=actor.id)
    return query.order_by(EditRequest.requested_at.desc(), EditRequest.id.desc()).first()
