"""
Inventory, product and report API tests.
"""

from depot.models import Product
from depot.services import fulfillment_service, order_service, payment_service, product_service

from conftest import restock, stock_distributor


class TestInventoryRoutes:

    def test_restock_and_adjust(self, client, db_session, warehouse, products, owner_headers):
        mango, _ = products

        resp = client.post(
            "/api/inventory/restock",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "quantity": 20},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["inventory"]["quantity"] == 20
        assert body["transaction"]["transaction_type"] == "RESTOCK"
        assert body["transactions"][0]["balance_after"] == 20

        resp = client.post(
            "/api/inventory/adjust",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "quantity_change": -25, "notes": "Cycle count"},
            headers=owner_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Insufficient stock"

        resp = client.post(
            "/api/inventory/adjust",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "quantity_change": -2, "notes": "Broken"},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["inventory"]["quantity"] == 18

        resp = client.get(
            f"/api/inventory/transactions?warehouse_id={warehouse.id}&product_id={mango.id}", headers=owner_headers
        )
        assert resp.get_json()["total"] == 2
        assert [t["transaction_type"] for t in resp.get_json()["transactions"]] == ["ADJUSTMENT", "RESTOCK"]

    def test_restock_rejects_non_positive(self, client, db_session, warehouse, products, owner_headers):
        mango, _ = products
        resp = client.post(
            "/api/inventory/restock",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "quantity": 0},
            headers=owner_headers,
        )
        assert resp.status_code == 400

    def test_adjust_notes_must_be_text(self, client, db_session, warehouse, products, owner, owner_headers):
        mango, _ = products
        restock(warehouse, mango, 10, owner)
        resp = client.post(
            "/api/inventory/adjust",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "quantity_change": -2, "notes": 12345},
            headers=owner_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "notes must be a string"

    def test_listing_and_reorder_level(self, client, db_session, warehouse, products, owner, manager_headers):
        mango, berry = products
        restock(warehouse, mango, 5, owner)
        restock(warehouse, berry, 80, owner)

        resp = client.put(
            "/api/inventory/reorder-level",
            json={"warehouse_id": warehouse.id, "product_id": mango.id, "reorder_level": 4},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["inventory"]["is_low_stock"] is False

        resp = client.get(f"/api/inventory?warehouse_id={warehouse.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["low_stock_count"] == 0

        resp = client.get("/api/inventory", headers=manager_headers)
        assert resp.status_code == 400


class TestProductRoutes:

    def test_create_with_initial_stock(self, client, db_session, warehouse, owner_headers):
        resp = client.post(
            "/api/products",
            json={
                "sku": "LIM-001",
                "name": "Lime Fizz",
                "category": "Soda",
                "unit_price_cents": 800,
                "warehouse_id": warehouse.id,
                "initial_stock": 12,
                "reorder_level": 20,
            },
            headers=owner_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["inventory"]["quantity"] == 12
        assert body["inventory"]["is_low_stock"] is True
        assert body["transactions"][0]["notes"] == "Initial stock"

        resp = client.post(
            "/api/products",
            json={"sku": "LIM-001", "name": "Lime Fizz 2", "unit_price_cents": 800},
            headers=owner_headers,
        )
        assert resp.status_code == 409

    def test_deactivated_product_hidden_from_catalog(self, client, db_session, products, owner_headers, distributor_headers):
        mango, _ = products
        resp = client.delete(f"/api/products/{mango.id}", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["product"]["is_active"] is False

        resp = client.get("/api/products?include_inactive=true", headers=distributor_headers)
        assert mango.id not in [p["id"] for p in resp.get_json()["products"]]

        resp = client.get("/api/products?include_inactive=true", headers=owner_headers)
        assert mango.id in [p["id"] for p in resp.get_json()["products"]]

    def test_available_products_for_client(
        self, client, db_session, warehouse, distributor, client_account, products, owner, client_headers
    ):
        mango, berry = products
        lime = Product(sku="LIM-001", name="Lime Fizz", flavor="Lime", category="Soda", unit_price_cents=800)
        db_session.add(lime)
        db_session.commit()
        for product in (mango, berry, lime):
            restock(warehouse, product, 20, owner)
        stock_distributor(distributor, warehouse, [(mango, 10), (berry, 5), (lime, 3)], owner)

        # Berry sold out to the client, Lime withdrawn from the catalog
        order = order_service.create_client_order(user_id=client_account.user_id, items=[(berry.id, 5)])
        payment_service.mark_paid(order_id=order.id, user_id=distributor.user_id)
        fulfillment_service.fulfill_client_order(order_id=order.id, user_id=distributor.user_id)
        product_service.deactivate_product(lime.id)

        resp = client.get("/api/products/available", headers=client_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["distributor_id"] == distributor.id
        assert [(p["sku"], p["available_quantity"]) for p in body["products"]] == [("MNG-001", 10)]
        assert body["products"][0]["unit_price_cents"] == 1000

    def test_available_products_is_client_only(self, client, db_session, distributor_headers, owner_headers):
        for headers in (distributor_headers, owner_headers):
            resp = client.get("/api/products/available", headers=headers)
            assert resp.status_code == 403
            assert resp.get_json()["required_permission"] == "VIEW_AVAILABLE_PRODUCTS"


class TestReportRoutes:

    def test_turnover_requires_supported_period(self, client, db_session, warehouse, owner_headers):
        resp = client.get(f"/api/reports/inventory-turnover?warehouse_id={warehouse.id}&period=45", headers=owner_headers)
        assert resp.status_code == 400

        resp = client.get(f"/api/reports/inventory-turnover?warehouse_id={warehouse.id}&period=60", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["period_days"] == 60

    def test_revenue_shape(self, client, db_session, owner_headers):
        resp = client.get("/api/reports/revenue", headers=owner_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["months"]) == 12
        assert resp.get_json()["total_revenue_cents"] == 0

    def test_activity_feed(
        self, client, db_session, warehouse, distributor, products, owner, owner_headers, distributor_headers
    ):
        mango, _ = products
        restock(warehouse, mango, 10, owner)

        resp = client.get("/api/reports/activity-feed?limit=1", headers=owner_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["activities"]) == 1
        assert resp.get_json()["total"] == 2

        assert client.get("/api/reports/activity-feed?limit=0", headers=owner_headers).status_code == 400
        assert client.get("/api/reports/activity-feed?limit=abc", headers=owner_headers).status_code == 400
        assert client.get("/api/reports/activity-feed", headers=distributor_headers).status_code == 403


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"
