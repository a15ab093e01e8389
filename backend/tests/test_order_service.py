"""
Order creation and visibility tests.
"""

import pytest

from depot.errors import AuthorizationError, InsufficientStockError, NotFoundError, StateConflictError, ValidationError
from depot.models import InventoryTransaction, OrderStatus, OrderType, PaymentStatus
from depot.services import directory_service, order_service, product_service

from conftest import restock, stock_distributor


class TestCreateWarehouseOrder:

    def test_creates_pending_unpaid_order_with_captured_prices(self, db_session, warehouse, distributor, products):
        mango, berry = products
        order = order_service.create_warehouse_order(
            user_id=distributor.user_id,
            warehouse_id=warehouse.id,
            items=[(mango.id, 3), (berry.id, 2)],
            notes="Weekly top-up",
        )

        assert order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.UNPAID
        assert order.distributor_id == distributor.id
        assert order.placed_by_user_id == distributor.user_id
        assert order.total_amount_cents == 3 * 1000 + 2 * 1500
        assert [(i.product_id, i.quantity, i.subtotal_cents) for i in order.items] == [
            (mango.id, 3, 3000),
            (berry.id, 2, 3000),
        ]

        product_service.update_product(mango.id, {"unit_price_cents": 9999})
        assert order.items[0].unit_price_cents == 1000

    def test_no_stock_check_or_movement_at_creation(self, db_session, warehouse, distributor, products):
        mango, _ = products
        order = order_service.create_warehouse_order(
            user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(mango.id, 500)]
        )
        assert order.status == OrderStatus.PENDING
        assert db_session.query(InventoryTransaction).count() == 0

    def test_order_numbers_are_sequential(self, db_session, warehouse, distributor, products):
        mango, _ = products
        numbers = [
            order_service.create_warehouse_order(
                user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(mango.id, 1)]
            ).order_number
            for _ in range(3)
        ]
        suffixes = [int(n.rsplit("-", 1)[1]) for n in numbers]
        assert suffixes == [1, 2, 3]
        assert len(set(numbers)) == 3

    def test_inactive_product_rejected(self, db_session, warehouse, distributor, products):
        mango, _ = products
        product_service.deactivate_product(mango.id)
        with pytest.raises(ValidationError):
            order_service.create_warehouse_order(
                user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(mango.id, 1)]
            )

    def test_unknown_warehouse_or_product(self, db_session, warehouse, distributor, products):
        mango, _ = products
        with pytest.raises(NotFoundError):
            order_service.create_warehouse_order(user_id=distributor.user_id, warehouse_id=999, items=[(mango.id, 1)])
        with pytest.raises(NotFoundError):
            order_service.create_warehouse_order(user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(999, 1)])

    def test_requires_distributor_profile(self, db_session, warehouse, owner, products):
        mango, _ = products
        with pytest.raises(AuthorizationError):
            order_service.create_warehouse_order(user_id=owner.id, warehouse_id=warehouse.id, items=[(mango.id, 1)])


class TestCreateClientOrder:

    def test_upfront_stock_check_reports_all_lines(self, db_session, warehouse, distributor, client_account, products, owner):
        mango, berry = products
        restock(warehouse, mango, 50, owner)
        stock_distributor(distributor, warehouse, [(mango, 5)], owner)

        with pytest.raises(InsufficientStockError) as exc_info:
            order_service.create_client_order(
                user_id=client_account.user_id,
                items=[(mango.id, 6), (berry.id, 1)],
            )
        assert exc_info.value.message == "Insufficient distributor stock for this order"
        assert len(exc_info.value.shortfalls) == 2

    def test_creation_does_not_move_stock(self, db_session, warehouse, distributor, client_account, products, owner):
        mango, _ = products
        restock(warehouse, mango, 50, owner)
        stock_distributor(distributor, warehouse, [(mango, 5)], owner)
        before = db_session.query(InventoryTransaction).count()

        order = order_service.create_client_order(user_id=client_account.user_id, items=[(mango.id, 5)])

        assert order.order_type == OrderType.DISTRIBUTOR_TO_CLIENT
        assert order.client_id == client_account.id
        assert order.distributor_id == distributor.id
        assert order.warehouse_id is None
        assert db_session.query(InventoryTransaction).count() == before

    def test_inactive_distributor_refuses_orders(self, db_session, distributor, client_account, products):
        mango, _ = products
        directory_service.set_distributor_active(distributor.id, False)
        with pytest.raises(StateConflictError):
            order_service.create_client_order(user_id=client_account.user_id, items=[(mango.id, 1)])


class TestVisibility:

    def test_scoping_per_role(
        self, db_session, warehouse, distributor, other_distributor, client_account, products, owner
    ):
        mango, _ = products
        restock(warehouse, mango, 50, owner)
        mine = stock_distributor(distributor, warehouse, [(mango, 10)], owner)
        theirs = order_service.create_warehouse_order(
            user_id=other_distributor.user_id, warehouse_id=warehouse.id, items=[(mango.id, 1)]
        )
        client_order = order_service.create_client_order(user_id=client_account.user_id, items=[(mango.id, 2)])

        owner_orders, owner_total = order_service.list_orders(owner)
        assert owner_total == 3

        dist_orders, _ = order_service.list_orders(distributor.user)
        assert {o.id for o in dist_orders} == {mine.id, client_order.id}

        client_orders, _ = order_service.list_orders(client_account.user)
        assert [o.id for o in client_orders] == [client_order.id]

        with pytest.raises(NotFoundError):
            order_service.get_order_for_user(theirs.id, distributor.user)
        with pytest.raises(NotFoundError):
            order_service.get_order_for_user(mine.id, client_account.user)

    def test_filters(self, db_session, warehouse, distributor, products, owner):
        mango, _ = products
        order_service.create_warehouse_order(user_id=distributor.user_id, warehouse_id=warehouse.id, items=[(mango.id, 1)])

        orders, total = order_service.list_orders(owner, status="pending", order_type="warehouse_to_distributor")
        assert total == 1
        _, total = order_service.list_orders(owner, payment_status="PAID")
        assert total == 0
        with pytest.raises(ValidationError):
            order_service.list_orders(owner, status="SHIPPED")
