# Overview: Pytest coverage for the purchase order workflow and supplier notification.

"""
Purchase Order Tests

DRAFT (items replaced wholesale) -> ORDERED (supplier mailed) -> RECEIVED
once every line is fully received. Receipts cap at the remaining quantity
and land in the stock ledger as PURCHASE movements.
"""

import pytest
from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models import PurchaseOrder, PurchaseOrderItem, Saree, StockMovement
from app.services import purchase_order_service, supplier_service
from conftest import RecordingNotifier


@pytest.fixture
def draft(shop, supplier, manager):
    return purchase_order_service.create_draft(
        shop.id, supplier.id, manager, notes="Festive restock", discount="50", tax="20"
    )


@pytest.fixture
def ordered(draft, saree, manager, notifier):
    """One line: 10 x A at 80.00, submitted."""
    purchase_order_service.set_items(
        draft.id, [{"saree_id": saree.id, "qty_ordered": 10, "unit_cost": "80"}], manager
    )
    return purchase_order_service.submit(draft.id, manager)


def _line(db_session, po_id):
    return db_session.query(PurchaseOrderItem).filter_by(po_id=po_id).one()


class TestDraft:

    def test_create_draft(self, db_session, draft, supplier):
        assert draft.status == "DRAFT"
        assert draft.supplier_id == supplier.id
        assert draft.to_dict()["total_amount"] == "0.00"

    def test_supplier_must_belong_to_shop(self, db_session, shop, other_shop, manager):
        foreign = supplier_service.create_supplier(other_shop.id, other_shop.owner, {"name": "Elsewhere"})
        with pytest.raises(NotFoundError):
            purchase_order_service.create_draft(shop.id, foreign.id, manager)

    def test_cashier_cannot_create(self, db_session, shop, supplier, cashier):
        with pytest.raises(ForbiddenError):
            purchase_order_service.create_draft(shop.id, supplier.id, cashier)

    def test_set_items_replaces_lines_and_totals(self, db_session, draft, saree, saree_b, manager):
        purchase_order_service.set_items(
            draft.id, [{"saree_id": saree.id, "qty_ordered": 1, "unit_cost": "1"}], manager
        )
        po = purchase_order_service.set_items(
            draft.id,
            [
                {"saree_id": saree.id, "qty_ordered": 10, "unit_cost": "80"},
                {"saree_id": saree_b.id, "qty_ordered": 4, "unit_cost": "25.50"},
            ],
            manager,
        )

        assert db_session.query(PurchaseOrderItem).filter_by(po_id=draft.id).count() == 2
        # 800.00 + 102.00 - 50.00 + 20.00
        assert po.to_dict()["sub_total"] == "902.00"
        assert po.to_dict()["total_amount"] == "872.00"

    @pytest.mark.parametrize("items", [
        [],
        [{"saree_id": 1, "qty_ordered": 0, "unit_cost": "1"}],
        [{"saree_id": 1, "qty_ordered": 2, "unit_cost": "-1"}],
    ])
    def test_set_items_validation(self, db_session, draft, manager, items):
        with pytest.raises(ValidationError):
            purchase_order_service.set_items(draft.id, items, manager)

    def test_submit_needs_items(self, db_session, draft, manager):
        with pytest.raises(ValidationError):
            purchase_order_service.submit(draft.id, manager)
        assert db_session.get(PurchaseOrder, draft.id).status == "DRAFT"


class TestSubmit:

    def test_submit_orders_and_notifies_supplier(self, db_session, ordered, notifier):
        assert ordered.status == "ORDERED"
        assert ordered.ordered_at is not None

        assert len(notifier.sent) == 1
        message = notifier.sent[0]
        assert message["to"] == "orders@weavers.test"
        assert message["subject"] == f"Purchase Order #{ordered.id} from Silk House"
        assert "Kanjivaram A (A-001) x 10 @ 80.00" in message["body"]
        assert "Total: 770.00" in message["body"]

    def test_items_frozen_after_submit(self, db_session, ordered, saree, manager):
        with pytest.raises(ConflictError):
            purchase_order_service.set_items(
                ordered.id, [{"saree_id": saree.id, "qty_ordered": 1, "unit_cost": "1"}], manager
            )
        with pytest.raises(ConflictError):
            purchase_order_service.submit(ordered.id, manager)

    def test_supplier_without_email_is_skipped(self, db_session, shop, saree, manager, notifier):
        quiet = supplier_service.create_supplier(shop.id, manager, {"name": "No Mail Mills"})
        po = purchase_order_service.create_draft(shop.id, quiet.id, manager)
        purchase_order_service.set_items(po.id, [{"saree_id": saree.id, "qty_ordered": 1}], manager)

        submitted = purchase_order_service.submit(po.id, manager)

        assert submitted.status == "ORDERED"
        assert notifier.sent == []

    def test_mail_failure_does_not_undo_submit(self, app, db_session, draft, saree, manager):
        original = app.extensions["notifier"]
        app.extensions["notifier"] = RecordingNotifier(fail=True)
        try:
            purchase_order_service.set_items(
                draft.id, [{"saree_id": saree.id, "qty_ordered": 2, "unit_cost": "5"}], manager
            )
            po = purchase_order_service.submit(draft.id, manager)
        finally:
            app.extensions["notifier"] = original

        assert po.status == "ORDERED"
        assert db_session.get(PurchaseOrder, draft.id).status == "ORDERED"


class TestReceive:

    def test_over_receipt_is_capped(self, db_session, ordered, saree, manager):
        """qty 15 against 10 ordered receives 10 and completes the PO."""
        line = _line(db_session, ordered.id)

        result = purchase_order_service.receive_items(
            ordered.id, [{"po_item_id": line.id, "qty": 15}], manager
        )

        assert result == {
            "ok": True,
            "po_id": ordered.id,
            "fullyReceived": True,
            "received": [{"po_item_id": line.id, "received": 10}],
        }
        assert _line(db_session, ordered.id).qty_received == 10
        po = db_session.get(PurchaseOrder, ordered.id)
        assert po.status == "RECEIVED"
        assert po.received_at is not None
        assert db_session.get(Saree, saree.id).stock_quantity == 15

        movement = db_session.query(StockMovement).filter_by(
            source_type="PURCHASE", source_id=ordered.id
        ).one()
        assert movement.quantity_change == 10
        assert movement.note == "PO Receive"

    def test_partial_receipts_stay_ordered(self, db_session, ordered, saree, manager):
        line = _line(db_session, ordered.id)

        first = purchase_order_service.receive_items(ordered.id, [{"po_item_id": line.id, "qty": 4}], manager)
        assert first["fullyReceived"] is False
        assert db_session.get(PurchaseOrder, ordered.id).status == "ORDERED"

        second = purchase_order_service.receive_items(ordered.id, [{"po_item_id": line.id, "qty": 6}], manager)
        assert second["fullyReceived"] is True
        assert db_session.get(PurchaseOrder, ordered.id).status == "RECEIVED"
        assert db_session.get(Saree, saree.id).stock_quantity == 15

    def test_receiving_a_complete_po_is_a_no_op(self, db_session, ordered, saree, manager):
        line = _line(db_session, ordered.id)
        purchase_order_service.receive_items(ordered.id, [{"po_item_id": line.id, "qty": 10}], manager)

        again = purchase_order_service.receive_items(ordered.id, [{"po_item_id": line.id, "qty": 3}], manager)

        assert again["received"] == []
        assert again["fullyReceived"] is True
        assert db_session.get(Saree, saree.id).stock_quantity == 15

    def test_draft_cannot_receive(self, db_session, draft, saree, manager):
        purchase_order_service.set_items(
            draft.id, [{"saree_id": saree.id, "qty_ordered": 3, "unit_cost": "1"}], manager
        )
        line = _line(db_session, draft.id)
        with pytest.raises(ConflictError):
            purchase_order_service.receive_items(draft.id, [{"po_item_id": line.id, "qty": 1}], manager)

    def test_unknown_line(self, db_session, ordered, manager):
        with pytest.raises(NotFoundError):
            purchase_order_service.receive_items(ordered.id, [{"po_item_id": 987654, "qty": 1}], manager)

    def test_qty_must_be_positive(self, db_session, ordered, manager):
        line = _line(db_session, ordered.id)
        with pytest.raises(ValidationError):
            purchase_order_service.receive_items(ordered.id, [{"po_item_id": line.id, "qty": 0}], manager)


def test_list_filters(db_session, shop, supplier, ordered, owner, cashier):
    second = purchase_order_service.create_draft(shop.id, supplier.id, owner, notes="Wedding season")

    everything = purchase_order_service.list_purchase_orders(shop.id, cashier)
    assert {po.id for po in everything} == {ordered.id, second.id}

    ordered_only = purchase_order_service.list_purchase_orders(shop.id, cashier, status="ordered")
    assert [po.id for po in ordered_only] == [ordered.id]

    by_note = purchase_order_service.list_purchase_orders(shop.id, cashier, q="wedding")
    assert [po.id for po in by_note] == [second.id]

    by_supplier = purchase_order_service.list_purchase_orders(shop.id, cashier, q="kanchi")
    assert len(by_supplier) == 2
