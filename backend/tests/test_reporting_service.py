"""
Reporting tests. All orders are created "now", so they land in the
current month bucket.
"""

import pytest

from depot.errors import NotFoundError
from depot.services import fulfillment_service, order_service, payment_service, reporting_service
from depot.services.reporting_service import NO_SALES_DAYS_TO_SELL, ReportError
from depot.time_utils import utcnow

from conftest import place_paid_warehouse_order, restock


@pytest.fixture
def activity(db_session, warehouse, distributor, other_distributor, products, owner):
    """
    Mango: 100 restocked, 30 fulfilled to `distributor`.
    Berry: 5 restocked, nothing sold.
    Plus one unpaid order and one paid-then-cancelled order.
    """
    mango, berry = products
    restock(warehouse, mango, 100, owner)
    restock(warehouse, berry, 5, owner)

    shipped = place_paid_warehouse_order(distributor, warehouse, [(mango, 30)], owner)
    fulfillment_service.fulfill_warehouse_order(order_id=shipped.id, user_id=owner.id)

    paid_open = place_paid_warehouse_order(other_distributor, warehouse, [(berry, 2)], owner)

    order_service.create_warehouse_order(
        user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(berry.id, 1)]
    )
    abandoned = place_paid_warehouse_order(distributor, warehouse, [(mango, 1)], owner)
    fulfillment_service.cancel_order(order_id=abandoned.id, user_id=owner.id, reason="Duplicate")

    return {"shipped": shipped, "paid_open": paid_open}


class TestRevenue:

    def test_trailing_twelve_months_with_current_last(self, db_session, activity):
        report = reporting_service.revenue_by_month()

        assert len(report["months"]) == 12
        current = report["months"][-1]
        assert current["month"] == utcnow().strftime("%Y-%m")
        # shipped (30 x 10.00) + paid_open (2 x 15.00); unpaid and cancelled excluded
        assert current["revenue_cents"] == 30000 + 3000
        assert current["order_count"] == 2
        assert report["total_revenue_cents"] == 33000
        assert all(m["revenue_cents"] == 0 for m in report["months"][:-1])

    def test_by_distributor(self, db_session, activity, distributor, other_distributor):
        report = reporting_service.revenue_by_month(by_distributor=True)
        split = {row["distributor_id"]: row["revenue_cents"] for row in report["months"][-1]["distributors"]}
        assert split == {distributor.id: 30000, other_distributor.id: 3000}

    def test_invalid_order_type(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.revenue_by_month(order_type="RETAIL")


class TestOrdersFulfilled:

    def test_counts(self, db_session, activity):
        report = reporting_service.orders_fulfilled()

        assert report["fulfilled_this_month"] == 1
        assert report["fulfilled_this_year"] == 1
        assert report["completed"] == 1
        assert report["pending"] == 2
        assert report["cancelled"] == 1
        assert report["processing"] == 0
        assert report["average_fulfillment_hours"] >= 0
        assert report["monthly"][-1]["fulfilled"] == 1


class TestInventoryTurnover:

    def test_turnover_math(self, db_session, activity, warehouse, products):
        mango, berry = products
        report = reporting_service.inventory_turnover(warehouse_id=warehouse.id, period_days=30)
        rows = {row["product_id"]: row for row in report["highest_turnover"]}

        assert rows[mango.id]["units_sold"] == 30
        assert rows[mango.id]["units_restocked"] == 100
        assert rows[mango.id]["current_stock"] == 70
        assert rows[mango.id]["turnover_rate"] == 0.35
        assert rows[mango.id]["days_to_sell_stock"] == 70.0

        assert rows[berry.id]["units_sold"] == 0
        assert rows[berry.id]["days_to_sell_stock"] == NO_SALES_DAYS_TO_SELL

        assert report["highest_turnover"][0]["product_id"] == mango.id
        assert [r["product_id"] for r in report["low_stock_alerts"]] == [berry.id]
        assert report["summary"]["total_units_sold"] == 30

    def test_rejects_unsupported_period(self, db_session, warehouse):
        with pytest.raises(ReportError):
            reporting_service.inventory_turnover(warehouse_id=warehouse.id, period_days=45)

    def test_unknown_warehouse(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.inventory_turnover(warehouse_id=404)


class TestRankings:

    def test_top_products(self, db_session, activity, products):
        mango, _ = products
        report = reporting_service.top_products(limit=5)
        assert [p["product_id"] for p in report["products"]] == [mango.id]
        assert report["products"][0]["units_sold"] == 30

    def test_distributor_performance(self, db_session, activity, distributor, other_distributor):
        report = reporting_service.distributor_performance()
        rows = {row["distributor_id"]: row for row in report["distributors"]}

        assert report["distributors"][0]["distributor_id"] == distributor.id
        assert rows[distributor.id]["total_orders"] == 3
        assert rows[distributor.id]["revenue_cents"] == 30000
        assert rows[distributor.id]["status_counts"]["CANCELLED"] == 1
        assert rows[other_distributor.id]["average_order_value_cents"] == 3000

    def test_bad_date_range(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.top_products(start="2026-05-01", end="2026-01-01")

    def test_overview(self, db_session, activity):
        report = reporting_service.overview()
        assert report["revenue_this_month_cents"] == 33000
        assert report["active_orders"] == 2
        assert report["orders_awaiting_payment"] == 1
        assert report["low_stock_count"] == 1


class TestActivityFeed:

    def test_merges_every_source_newest_first(self, db_session, activity):
        feed = reporting_service.activity_feed()

        # 4 orders, 3 PAID payments, 3 stock movements, 2 distributors
        assert feed["total"] == 12
        kinds = [a["type"] for a in feed["activities"]]
        assert kinds.count("ORDER") == 4
        assert kinds.count("PAYMENT") == 3
        assert kinds.count("STOCK_UPDATE") == 3
        assert kinds.count("DISTRIBUTOR_ADDED") == 2

        stamps = [a["timestamp"] for a in feed["activities"]]
        assert stamps == sorted(stamps, reverse=True)

    def test_entries_describe_the_event(self, db_session, activity):
        feed = reporting_service.activity_feed()
        shipped = activity["shipped"]

        order_entry = next(a for a in feed["activities"] if a["id"] == f"order-{shipped.id}")
        assert order_entry["title"] == f"New Order: {shipped.order_number}"
        assert order_entry["description"] == "Dana Drinks placed an order for $300.00"
        assert order_entry["status"] == "FULFILLED"

        shipments = [
            a for a in feed["activities"]
            if a["type"] == "STOCK_UPDATE" and a["status"] == "ORDER_FULFILLED"
        ]
        assert len(shipments) == 1
        assert shipments[0]["metadata"]["quantity_change"] == -30

    def test_limit_cuts_merged_list(self, db_session, activity):
        feed = reporting_service.activity_feed(limit=5)
        assert len(feed["activities"]) == 5
        assert feed["total"] == 12

    @pytest.mark.parametrize("limit", [0, 101])
    def test_rejects_out_of_range_limit(self, db_session, limit):
        with pytest.raises(ReportError):
            reporting_service.activity_feed(limit=limit)
