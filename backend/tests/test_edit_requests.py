# Overview: Pytest coverage for the cashier edit-approval workflow.

"""
Edit Approval Tests

PENDING -> APPROVED | REJECTED, APPROVED -> USED on the next successful edit.
Only one PENDING request per bill; REJECTED and USED never block new ones.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models import EditRequest
from app.models.sales import EDIT_REQUEST_APPROVED, EDIT_REQUEST_PENDING, EDIT_REQUEST_REJECTED
from app.services import billing_service, edit_request_service


@pytest.fixture
def bill_id(shop, saree, cashier):
    return billing_service.create_bill(
        shop.id, [{"saree_id": saree.id, "quantity": 1}], actor=cashier
    )["bill_id"]


class TestRequest:

    def test_cashier_requests_for_own_bill(self, db_session, bill_id, cashier):
        edit_request = edit_request_service.request_edit_approval(bill_id, cashier, "  wrong colour  ")

        assert edit_request.status == EDIT_REQUEST_PENDING
        assert edit_request.reason == "wrong colour"
        assert edit_request.requester_id == cashier.id
        assert edit_request.to_dict()["requester_name"] == "Cashier One"

    def test_second_pending_request_conflicts(self, db_session, bill_id, cashier):
        first = edit_request_service.request_edit_approval(bill_id, cashier, "one")

        with pytest.raises(ConflictError) as exc:
            edit_request_service.request_edit_approval(bill_id, cashier, "two")

        assert exc.value.details["request_id"] == first.id
        assert db_session.query(EditRequest).filter_by(bill_id=bill_id).count() == 1

    def test_reason_is_required(self, db_session, bill_id, cashier):
        with pytest.raises(ValidationError):
            edit_request_service.request_edit_approval(bill_id, cashier, "   ")

    def test_only_the_bills_cashier_may_ask(self, db_session, bill_id, other_cashier, manager):
        with pytest.raises(ForbiddenError):
            edit_request_service.request_edit_approval(bill_id, other_cashier, "not mine")
        with pytest.raises(ForbiddenError):
            edit_request_service.request_edit_approval(bill_id, manager, "managers just edit")

    def test_unknown_bill(self, db_session, cashier):
        with pytest.raises(NotFoundError):
            edit_request_service.request_edit_approval(424242, cashier, "gone")

    def test_rejected_request_does_not_block_a_new_one(self, db_session, bill_id, cashier, manager):
        first = edit_request_service.request_edit_approval(bill_id, cashier, "one")
        edit_request_service.respond_to_request(first.id, manager, "REJECT", note="No")

        second = edit_request_service.request_edit_approval(bill_id, cashier, "please")
        assert second.status == EDIT_REQUEST_PENDING

    def test_partial_index_rejects_second_pending_row(self, db_session, bill_id, cashier, shop):
        db_session.add(EditRequest(bill_id=bill_id, shop_id=shop.id, requester_id=cashier.id, reason="a"))
        db_session.flush()
        db_session.add(EditRequest(bill_id=bill_id, shop_id=shop.id, requester_id=cashier.id, reason="b"))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()


class TestRespond:

    def test_manager_approves(self, db_session, bill_id, cashier, manager):
        edit_request = edit_request_service.request_edit_approval(bill_id, cashier, "fix qty")

        decided = edit_request_service.respond_to_request(edit_request.id, manager, "approve", note=" ok ")

        assert decided.status == EDIT_REQUEST_APPROVED
        assert decided.responder_id == manager.id
        assert decided.manager_note == "ok"
        assert decided.responded_at is not None

    def test_decision_only_once(self, db_session, bill_id, cashier, manager, owner):
        edit_request = edit_request_service.request_edit_approval(bill_id, cashier, "fix qty")
        edit_request_service.respond_to_request(edit_request.id, manager, "REJECT")

        with pytest.raises(ConflictError):
            edit_request_service.respond_to_request(edit_request.id, owner, "APPROVE")
        assert db_session.get(EditRequest, edit_request.id).status == EDIT_REQUEST_REJECTED

    def test_bad_decision(self, db_session, bill_id, cashier, manager):
        edit_request = edit_request_service.request_edit_approval(bill_id, cashier, "fix qty")
        with pytest.raises(ValidationError):
            edit_request_service.respond_to_request(edit_request.id, manager, "MAYBE")

    def test_cashier_and_outsiders_cannot_decide(self, db_session, bill_id, cashier, other_shop):
        edit_request = edit_request_service.request_edit_approval(bill_id, cashier, "fix qty")

        with pytest.raises(ForbiddenError):
            edit_request_service.respond_to_request(edit_request.id, cashier, "APPROVE")
        with pytest.raises(NotFoundError):
            edit_request_service.respond_to_request(edit_request.id, other_shop.owner, "APPROVE")


class TestQueries:

    def test_list_by_status(self, db_session, shop, saree, cashier, manager):
        bills = [
            billing_service.create_bill(shop.id, [{"saree_id": saree.id, "quantity": 1}], actor=cashier)["bill_id"]
            for _ in range(2)
        ]
        first = edit_request_service.request_edit_approval(bills[0], cashier, "one")
        edit_request_service.request_edit_approval(bills[1], cashier, "two")
        edit_request_service.respond_to_request(first.id, manager, "APPROVE")

        pending = edit_request_service.list_edit_requests(shop.id, manager, status="pending")
        assert [r.bill_id for r in pending] == [bills[1]]
        assert len(edit_request_service.list_edit_requests(shop.id, manager)) == 2

        with pytest.raises(ForbiddenError):
            edit_request_service.list_edit_requests(shop.id, cashier)

    def test_latest_request(self, db_session, bill_id, cashier, other_cashier, manager):
        assert edit_request_service.get_latest_edit_request(bill_id, cashier) is None

        first = edit_request_service.request_edit_approval(bill_id, cashier, "one")
        edit_request_service.respond_to_request(first.id, manager, "REJECT")
        second = edit_request_service.request_edit_approval(bill_id, cashier, "two")

        assert edit_request_service.get_latest_edit_request(bill_id, cashier).id == second.id
        assert edit_request_service.get_latest_edit_request(bill_id, manager).id == second.id
        with pytest.raises(ForbiddenError):
            edit_request_service.get_latest_edit_request(bill_id, other_cashier)
