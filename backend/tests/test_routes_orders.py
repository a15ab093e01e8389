"""
Order API tests: the full warehouse -> distributor -> client flow over HTTP.
"""

from depot.models import Order
from depot.services import ledger_service
from depot.services.ledger_service import StockLocation

from conftest import restock


def _place(client, headers, warehouse, lines):
    return client.post(
        "/api/orders",
        json={
            "warehouse_id": warehouse.id,
            "items": [{"product_id": p.id, "quantity": q} for p, q in lines],
        },
        headers=headers,
    )


class TestWarehouseOrderFlow:

    def test_place_pay_fulfill_receive(
        self, client, db_session, warehouse, distributor, products, owner, owner_headers, distributor_headers
    ):
        mango, berry = products
        restock(warehouse, mango, 100, owner)
        restock(warehouse, berry, 40, owner)

        resp = _place(client, distributor_headers, warehouse, [(mango, 30), (berry, 10)])
        assert resp.status_code == 201
        body = resp.get_json()
        order_id = body["order"]["id"]
        assert body["order"]["status"] == "PENDING"
        assert body["order"]["payment_status"] == "UNPAID"
        assert body["order"]["total_amount_cents"] == 45000
        assert len(body["items"]) == 2
        assert body["transactions"] == []

        resp = client.post(f"/api/orders/{order_id}/fulfill", headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Order must be paid before fulfillment"

        resp = client.post(
            f"/api/orders/{order_id}/mark-paid", json={"payment_method": "Bank Transfer"}, headers=owner_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["order"]["payment_status"] == "PAID"
        assert resp.get_json()["payment"]["status"] == "PAID"

        resp = client.post(f"/api/orders/{order_id}/fulfill", headers=owner_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["order"]["status"] == "FULFILLED"
        assert sorted(t["quantity_change"] for t in body["transactions"]) == [-30, -10]

        resp = client.post(f"/api/orders/{order_id}/receive", headers=distributor_headers)
        assert resp.status_code == 200
        assert {t["transaction_type"] for t in resp.get_json()["transactions"]} == {"ORDER_RECEIVED"}

        resp = client.post(f"/api/orders/{order_id}/receive", headers=distributor_headers)
        assert resp.status_code == 400

        db_session.expire_all()
        assert ledger_service.get_quantity(StockLocation.warehouse(warehouse.id), mango.id) == 70
        assert ledger_service.get_quantity(StockLocation.distributor(distributor.id), mango.id) == 30

        resp = client.get(f"/api/orders/{order_id}", headers=distributor_headers)
        assert resp.status_code == 200
        types = sorted(t["transaction_type"] for t in resp.get_json()["transactions"])
        assert types == ["ORDER_FULFILLED", "ORDER_FULFILLED", "ORDER_RECEIVED", "ORDER_RECEIVED"]

    def test_insufficient_stock_lists_every_line(
        self, client, db_session, warehouse, distributor, products, owner, owner_headers, distributor_headers
    ):
        mango, berry = products
        restock(warehouse, mango, 100, owner)
        restock(warehouse, berry, 5, owner)
        order_id = _place(client, distributor_headers, warehouse, [(mango, 30), (berry, 10)]).get_json()["order"]["id"]
        client.post(f"/api/orders/{order_id}/mark-paid", json={}, headers=owner_headers)

        resp = client.post(f"/api/orders/{order_id}/fulfill", headers=owner_headers)

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Insufficient stock for order fulfillment"
        assert body["details"] == ["Berry Blast: requested 10, available 5"]
        assert body["shortfalls"][0]["available"] == 5

        db_session.expire_all()
        assert db_session.get(Order, order_id).status.value == "PENDING"
        assert ledger_service.get_quantity(StockLocation.warehouse(warehouse.id), mango.id) == 100

    def test_cancel_with_reason(self, client, db_session, warehouse, distributor, products, distributor_headers):
        mango, _ = products
        order_id = _place(client, distributor_headers, warehouse, [(mango, 1)]).get_json()["order"]["id"]

        resp = client.post(f"/api/orders/{order_id}/cancel", json={"reason": "Wrong flavor"}, headers=distributor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "CANCELLED"
        assert "Cancellation reason: Wrong flavor" in resp.get_json()["order"]["notes"]

        resp = client.post(f"/api/orders/{order_id}/cancel", json={}, headers=distributor_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Order is already cancelled"

    def test_invalid_items(self, client, db_session, warehouse, distributor, products, distributor_headers):
        mango, _ = products
        for items in ([], [{"product_id": mango.id, "quantity": 0}], [{"product_id": mango.id, "quantity": 1.5}]):
            resp = client.post(
                "/api/orders", json={"warehouse_id": warehouse.id, "items": items}, headers=distributor_headers
            )
            assert resp.status_code == 400, items


class TestClientOrderFlow:

    def test_client_order_fulfilled_by_distributor(
        self,
        client,
        db_session,
        warehouse,
        distributor,
        client_account,
        products,
        owner,
        owner_headers,
        distributor_headers,
        client_headers,
    ):
        mango, _ = products
        restock(warehouse, mango, 50, owner)
        order_id = _place(client, distributor_headers, warehouse, [(mango, 20)]).get_json()["order"]["id"]
        client.post(f"/api/orders/{order_id}/mark-paid", json={}, headers=owner_headers)
        client.post(f"/api/orders/{order_id}/fulfill", headers=owner_headers)
        client.post(f"/api/orders/{order_id}/receive", headers=distributor_headers)

        resp = client.post(
            "/api/orders/client", json={"items": [{"product_id": mango.id, "quantity": 25}]}, headers=client_headers
        )
        assert resp.status_code == 400
        assert resp.get_json()["details"] == ["Mango Burst: requested 25, available 20"]

        resp = client.post(
            "/api/orders/client", json={"items": [{"product_id": mango.id, "quantity": 5}]}, headers=client_headers
        )
        assert resp.status_code == 201
        client_order = resp.get_json()["order"]
        assert client_order["order_number"].startswith("CLT-")

        resp = client.post(f"/api/orders/{client_order['id']}/fulfill-client", headers=distributor_headers)
        assert resp.status_code == 400

        resp = client.post(
            f"/api/orders/{client_order['id']}/mark-paid", json={"payment_method": "Cash"}, headers=distributor_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["payment"]["payment_method"] == "Cash"

        resp = client.post(f"/api/orders/{client_order['id']}/fulfill-client", headers=distributor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "FULFILLED"

        resp = client.get("/api/orders", headers=client_headers)
        assert [o["id"] for o in resp.get_json()["orders"]] == [client_order["id"]]

        resp = client.get(f"/api/orders/{order_id}", headers=client_headers)
        assert resp.status_code == 404

        db_session.expire_all()
        assert ledger_service.get_quantity(StockLocation.distributor(distributor.id), mango.id) == 15


class TestMalformedFields:
    """Wrongly typed text fields are rejected with 400 and change nothing."""

    def test_cancel_reason_must_be_text(self, client, db_session, warehouse, distributor, products, distributor_headers):
        mango, _ = products
        order_id = _place(client, distributor_headers, warehouse, [(mango, 1)]).get_json()["order"]["id"]

        resp = client.post(f"/api/orders/{order_id}/cancel", json={"reason": 42}, headers=distributor_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "reason must be a string"

        db_session.expire_all()
        assert db_session.get(Order, order_id).status.value == "PENDING"

    def test_mark_paid_fields_must_be_text(
        self, client, db_session, warehouse, distributor, products, owner_headers, distributor_headers
    ):
        mango, _ = products
        order_id = _place(client, distributor_headers, warehouse, [(mango, 1)]).get_json()["order"]["id"]

        resp = client.post(f"/api/orders/{order_id}/mark-paid", json={"payment_method": 5}, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "payment_method must be a string"

        resp = client.post(f"/api/orders/{order_id}/mark-paid", json={"notes": {"paid": True}}, headers=owner_headers)
        assert resp.status_code == 400

        resp = client.post(f"/api/orders/{order_id}/mark-paid", json={"payment_method": "M" * 65}, headers=owner_headers)
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.get(Order, order_id).payment_status.value == "UNPAID"

    def test_initiate_payment_method_must_be_text(
        self, client, db_session, warehouse, distributor, products, distributor_headers
    ):
        mango, _ = products
        order_id = _place(client, distributor_headers, warehouse, [(mango, 1)]).get_json()["order"]["id"]

        resp = client.post(
            f"/api/payments/orders/{order_id}/initiate", json={"payment_method": 7}, headers=distributor_headers
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "payment_method must be a string"

    def test_order_notes_must_be_text(
        self, client, db_session, warehouse, distributor, client_account, products, distributor_headers, client_headers
    ):
        mango, _ = products
        for notes in ({"rush": True}, ["rush"], 3):
            resp = client.post(
                "/api/orders",
                json={"warehouse_id": warehouse.id, "items": [{"product_id": mango.id, "quantity": 1}], "notes": notes},
                headers=distributor_headers,
            )
            assert resp.status_code == 400, notes
            assert resp.get_json()["error"] == "notes must be a string"

        resp = client.post(
            "/api/orders/client",
            json={"items": [{"product_id": mango.id, "quantity": 1}], "notes": ["rush"]},
            headers=client_headers,
        )
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
