# Overview: Pytest coverage for the billing, edit-approval, catalogue and PO HTTP surface.

"""
API contract tests: status codes and error bodies for the routes the
counter and back office call. Business rules themselves are covered by the
service tests; these pin the HTTP mapping.
"""

import pytest


@pytest.fixture
def cashier_headers(headers_for, cashier):
    return headers_for(cashier)


@pytest.fixture
def manager_headers(headers_for, manager):
    return headers_for(manager)


def _create_bill(client, headers, shop, saree, quantity=1, **extra):
    body = {"shop_id": shop.id, "items": [{"saree_id": saree.id, "quantity": quantity}]}
    body.update(extra)
    return client.post('/api/billing', json=body, headers=headers)


class TestBillRoutes:

    def test_create_bill(self, client, db_session, shop, saree, cashier_headers):
        response = _create_bill(client, cashier_headers, shop, saree, quantity=3,
                                payment_method="Cash", amount_paid=330)

        assert response.status_code == 201
        assert response.json["status"] == "PAID"
        assert response.json["total_amount"] == "330.00"

    def test_insufficient_stock_is_409(self, client, db_session, shop, saree, cashier_headers):
        response = _create_bill(client, cashier_headers, shop, saree, quantity=6)

        assert response.status_code == 409
        assert response.json["error"] == "InsufficientStock"
        assert response.json["details"]["available"] == 5

    def test_invalid_payment_method_is_400(self, client, db_session, shop, saree, cashier_headers):
        response = _create_bill(client, cashier_headers, shop, saree, payment_method="Barter")

        assert response.status_code == 400
        assert response.json["details"]["allowed"] == ["Cash", "Card", "UPI"]

    @pytest.mark.parametrize("extra", [
        {"discount": "1e30"},
        {"amount_paid": "1e27"},
        {"discount": 99999999999},
    ])
    def test_huge_amounts_are_400(self, client, db_session, shop, saree, cashier_headers, extra):
        response = _create_bill(client, cashier_headers, shop, saree, **extra)

        assert response.status_code == 400
        assert response.json["error"] == "ValidationError"
        assert saree.stock_quantity == 5

    def test_huge_payment_is_400(self, client, db_session, shop, saree, cashier_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree).json["bill_id"]

        response = client.post(f'/api/billing/{bill_id}/payments',
                               json={"amount": "1e27", "method": "Cash"}, headers=cashier_headers)

        assert response.status_code == 400
        assert response.json["details"]["max"] == "9999999999.99"

    def test_missing_shop_id(self, client, db_session, saree, cashier_headers):
        response = client.post('/api/billing', json={"items": []}, headers=cashier_headers)
        assert response.status_code == 400

    def test_requires_auth(self, client, db_session, shop, saree):
        assert _create_bill(client, {}, shop, saree).status_code == 401

    def test_outsider_and_unknown_bill_are_both_404(
        self, client, db_session, shop, saree, other_shop, cashier_headers, headers_for
    ):
        bill_id = _create_bill(client, cashier_headers, shop, saree).json["bill_id"]

        outsider = client.get(f'/api/billing/{bill_id}', headers=headers_for(other_shop.owner))
        missing = client.get('/api/billing/999999', headers=cashier_headers)

        assert outsider.status_code == 404
        assert outsider.json == {
            "error": "NotFound", "message": "Bill not found", "details": {"bill_id": bill_id},
        }
        assert missing.status_code == 404

    def test_payments_and_listing(self, client, db_session, shop, saree, cashier_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree).json["bill_id"]

        paid = client.post(f'/api/billing/{bill_id}/payments',
                           json={"amount": "110", "method": "Card", "reference": "SLIP-9"},
                           headers=cashier_headers)
        assert paid.status_code == 201
        assert paid.json["status"] == "PAID"

        detail = client.get(f'/api/billing/{bill_id}', headers=cashier_headers).json
        assert detail["payments"][0]["reference"] == "SLIP-9"

        listed = client.get(f'/api/billing/shop/{shop.id}', headers=cashier_headers).json["bills"]
        mine = client.get(f'/api/billing/mine?shop_id={shop.id}', headers=cashier_headers).json["bills"]
        assert [b["id"] for b in listed] == [bill_id]
        assert [b["id"] for b in mine] == [bill_id]

    def test_discount_edit(self, client, db_session, shop, saree, cashier_headers, manager_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree, quantity=2).json["bill_id"]

        response = client.put(f'/api/billing/{bill_id}', json={"discount": "50"}, headers=manager_headers)

        assert response.status_code == 200
        assert response.json["discount"] == "50.00"
        assert response.json["total_amount"] == "165.00"

    def test_delete(self, client, db_session, shop, saree, cashier_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree).json["bill_id"]

        assert client.delete(f'/api/billing/{bill_id}', headers=cashier_headers).status_code == 200
        assert client.get(f'/api/billing/{bill_id}', headers=cashier_headers).status_code == 404


class TestEditApprovalRoutes:

    def test_full_flow(self, client, db_session, shop, saree, cashier_headers, manager_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree, quantity=2).json["bill_id"]
        edit = {"items": [{"saree_id": saree.id, "quantity": 1}]}

        blocked = client.put(f'/api/billing/{bill_id}/full', json=edit, headers=cashier_headers)
        assert blocked.status_code == 403
        assert blocked.json["reason"] == "APPROVAL_REQUIRED"

        asked = client.post(f'/api/billing/{bill_id}/edit-requests', json={"reason": "Wrong qty"},
                            headers=cashier_headers)
        assert asked.status_code == 201
        request_id = asked.json["request"]["request_id"]

        duplicate = client.post(f'/api/billing/{bill_id}/edit-requests', json={"reason": "Again"},
                                headers=cashier_headers)
        assert duplicate.status_code == 409

        queue = client.get(f'/api/billing/edit-requests?shop_id={shop.id}&status=PENDING',
                           headers=manager_headers).json["requests"]
        assert [r["request_id"] for r in queue] == [request_id]

        self_approve = client.post(f'/api/billing/edit-requests/{request_id}/respond',
                                   json={"decision": "APPROVE"}, headers=cashier_headers)
        assert self_approve.status_code == 403

        approved = client.post(f'/api/billing/edit-requests/{request_id}/respond',
                               json={"decision": "APPROVE", "note": "ok"}, headers=manager_headers)
        assert approved.status_code == 200
        assert approved.json["request"]["status"] == "APPROVED"

        edited = client.put(f'/api/billing/{bill_id}/full', json=edit, headers=cashier_headers)
        assert edited.status_code == 200
        assert edited.json["total_amount"] == "110.00"

        latest = client.get(f'/api/billing/{bill_id}/edit-requests/latest', headers=cashier_headers)
        assert latest.json["request"]["status"] == "USED"

        again = client.put(f'/api/billing/{bill_id}/full', json=edit, headers=cashier_headers)
        assert again.status_code == 403

    def test_respond_twice_is_409(self, client, db_session, shop, saree, cashier_headers, manager_headers):
        bill_id = _create_bill(client, cashier_headers, shop, saree).json["bill_id"]
        request_id = client.post(f'/api/billing/{bill_id}/edit-requests', json={"reason": "x"},
                                 headers=cashier_headers).json["request"]["request_id"]
        url = f'/api/billing/edit-requests/{request_id}/respond'

        assert client.post(url, json={"decision": "REJECT"}, headers=manager_headers).status_code == 200
        assert client.post(url, json={"decision": "APPROVE"}, headers=manager_headers).status_code == 409


class TestCatalogueRoutes:

    def test_saree_crud_and_adjust(self, client, db_session, shop, manager_headers, cashier_headers):
        created = client.post('/api/inventory/sarees', json={
            "shop_id": shop.id, "item_code": "P-1", "name": "Paithani", "price": "5400", "stock_quantity": 2,
        }, headers=manager_headers)
        assert created.status_code == 201
        saree_id = created.json["saree"]["id"]

        duplicate = client.post('/api/inventory/sarees', json={
            "shop_id": shop.id, "item_code": "P-1", "name": "Copy", "price": "1",
        }, headers=manager_headers)
        assert duplicate.status_code == 409

        patched = client.patch(f'/api/inventory/sarees/{saree_id}', json={"color": "Green"},
                               headers=manager_headers)
        assert patched.json["saree"]["color"] == "Green"

        adjusted = client.post(f'/api/inventory/sarees/{saree_id}/adjust',
                               json={"quantity_change": 3, "note": "Found in store room"},
                               headers=manager_headers)
        assert adjusted.status_code == 201
        assert adjusted.json["saree"]["stock_quantity"] == 5

        movements = client.get(f'/api/inventory/sarees/{saree_id}/movements', headers=cashier_headers)
        assert [m["quantity_change"] for m in movements.json["movements"]] == [3, 2]

        listed = client.get(f'/api/inventory/sarees?shop_id={shop.id}&q=paith', headers=cashier_headers)
        assert [s["id"] for s in listed.json["sarees"]] == [saree_id]

    def test_customers(self, client, db_session, shop, cashier_headers, manager_headers):
        created = client.post('/api/customers', json={"shop_id": shop.id, "phone": "9123456789", "name": "Priya"},
                              headers=cashier_headers)
        assert created.status_code == 201
        customer_id = created.json["customer"]["id"]

        duplicate = client.post('/api/customers', json={"shop_id": shop.id, "phone": "9123456789"},
                                headers=cashier_headers)
        assert duplicate.status_code == 409
        assert duplicate.json["details"]["customer_id"] == customer_id

        found = client.get(f'/api/customers/by-phone?shop_id={shop.id}&phone=9123456789', headers=cashier_headers)
        unknown = client.get(f'/api/customers/by-phone?shop_id={shop.id}&phone=1', headers=cashier_headers)
        assert found.json["customer"]["name"] == "Priya"
        assert unknown.json["customer"] is None

        assert client.delete(f'/api/customers/{customer_id}', headers=cashier_headers).status_code == 403
        assert client.delete(f'/api/customers/{customer_id}', headers=manager_headers).status_code == 200

    def test_suppliers(self, client, db_session, shop, manager_headers, headers_for, owner):
        created = client.post('/api/suppliers', json={"shop_id": shop.id, "name": "Loom Works"},
                              headers=manager_headers)
        assert created.status_code == 201
        supplier_id = created.json["supplier"]["id"]

        patched = client.patch(f'/api/suppliers/{supplier_id}', json={"email": "loom@works.test"},
                               headers=manager_headers)
        assert patched.json["supplier"]["email"] == "loom@works.test"

        assert client.delete(f'/api/suppliers/{supplier_id}', headers=manager_headers).status_code == 403
        assert client.delete(f'/api/suppliers/{supplier_id}', headers=headers_for(owner)).status_code == 200


class TestPurchaseOrderRoutes:

    def test_po_lifecycle(self, client, db_session, shop, saree, supplier, manager_headers, notifier):
        created = client.post('/api/po', json={"shop_id": shop.id, "supplier_id": supplier.id},
                              headers=manager_headers)
        assert created.status_code == 201
        po_id = created.json["po_id"]

        items = client.post(f'/api/po/{po_id}/items',
                            json={"items": [{"saree_id": saree.id, "qty_ordered": 10, "unit_cost": "60"}]},
                            headers=manager_headers)
        assert items.json["po"]["sub_total"] == "600.00"

        submitted = client.post(f'/api/po/{po_id}/submit', headers=manager_headers)
        assert submitted.json["po"]["status"] == "ORDERED"
        assert len(notifier.sent) == 1

        po_item_id = client.get(f'/api/po/{po_id}', headers=manager_headers).json["items"][0]["po_item_id"]
        received = client.post(f'/api/po/{po_id}/receive',
                               json={"items": [{"po_item_id": po_item_id, "qty": 15}]},
                               headers=manager_headers)
        assert received.status_code == 200
        assert received.json["fullyReceived"] is True
        assert received.json["received"] == [{"po_item_id": po_item_id, "received": 10}]

        listed = client.get(f'/api/po?shop_id={shop.id}&status=RECEIVED', headers=manager_headers)
        assert [po["po_id"] for po in listed.json["purchase_orders"]] == [po_id]

    def test_cashier_cannot_manage_pos(self, client, db_session, shop, supplier, cashier_headers):
        response = client.post('/api/po', json={"shop_id": shop.id, "supplier_id": supplier.id},
                               headers=cashier_headers)
        assert response.status_code == 403


def test_health(client, db_session):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.json["checks"]["database"]["status"] == "healthy"
