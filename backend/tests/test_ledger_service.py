"""
Inventory ledger tests.

Verifies:
- Counter rows are created lazily at zero
- Every delta writes exactly one transaction with the running balance
- Negative balances are refused and leave the counter untouched
- Transactions are append-only
"""

import pytest

from depot.errors import InsufficientStockError, ValidationError
from depot.models import InventoryTransaction, TransactionType, WarehouseInventory
from depot.models.inventory import ImmutableTransactionError
from depot.services import ledger_service
from depot.services.concurrency import run_in_transaction
from depot.services.ledger_service import StockLocation


def _apply(location, product, delta, user, transaction_type=TransactionType.ADJUSTMENT):
    return run_in_transaction(
        lambda: ledger_service.apply_delta(
            location,
            product.id,
            delta,
            transaction_type,
            actor_user_id=user.id,
            notes="ledger test",
        )
    )


class TestStockLocation:

    def test_requires_exactly_one_side(self):
        with pytest.raises(ValueError):
            StockLocation()
        with pytest.raises(ValueError):
            StockLocation(warehouse_id=1, distributor_id=2)

    def test_filter_kwargs(self):
        assert StockLocation.warehouse(3).filter_kwargs() == {"warehouse_id": 3}
        assert StockLocation.distributor(7).filter_kwargs() == {"distributor_id": 7}
        assert StockLocation.warehouse(3).model is WarehouseInventory


class TestApplyDelta:

    def test_get_or_create_starts_at_zero_with_default_reorder_level(self, db_session, warehouse, products, owner):
        mango, _ = products
        record = ledger_service.get_or_create(StockLocation.warehouse(warehouse.id), mango.id)
        db_session.commit()

        assert record.quantity == 0
        assert record.reorder_level == 50
        assert record.is_low_stock is True

    def test_credit_then_debit_tracks_balance(self, db_session, warehouse, products, owner):
        mango, _ = products
        location = StockLocation.warehouse(warehouse.id)

        _, first = _apply(location, mango, 30, owner, TransactionType.RESTOCK)
        record, second = _apply(location, mango, -12, owner)

        assert record.quantity == 18
        assert first.balance_after == 30
        assert second.quantity_change == -12
        assert second.balance_after == 18
        assert ledger_service.get_quantity(location, mango.id) == 18

    def test_negative_result_is_refused(self, db_session, warehouse, products, owner):
        mango, _ = products
        location = StockLocation.warehouse(warehouse.id)
        _apply(location, mango, 5, owner, TransactionType.RESTOCK)

        with pytest.raises(InsufficientStockError) as exc_info:
            _apply(location, mango, -6, owner)

        shortfall = exc_info.value.shortfalls[0]
        assert shortfall.requested == 6
        assert shortfall.available == 5
        assert ledger_service.get_quantity(location, mango.id) == 5
        assert db_session.query(InventoryTransaction).count() == 1

    def test_zero_delta_is_rejected(self, db_session, warehouse, products, owner):
        mango, _ = products
        with pytest.raises(ValidationError):
            _apply(StockLocation.warehouse(warehouse.id), mango, 0, owner)

    def test_locations_are_independent(self, db_session, warehouse, distributor, products, owner):
        mango, _ = products
        _apply(StockLocation.warehouse(warehouse.id), mango, 40, owner, TransactionType.RESTOCK)
        _apply(StockLocation.distributor(distributor.id), mango, 4, owner, TransactionType.ADJUSTMENT)

        assert ledger_service.get_quantity(StockLocation.warehouse(warehouse.id), mango.id) == 40
        assert ledger_service.get_quantity(StockLocation.distributor(distributor.id), mango.id) == 4

    def test_balance_matches_sum_of_transactions(self, db_session, warehouse, products, owner):
        mango, _ = products
        location = StockLocation.warehouse(warehouse.id)
        for delta in (25, -3, 10, -7):
            _apply(location, mango, delta, owner)

        rows, total = ledger_service.list_transactions(location, product_id=mango.id)
        assert total == 4
        assert sum(t.quantity_change for t in rows) == ledger_service.get_quantity(location, mango.id) == 25


class TestCheckSufficiency:

    def test_reports_every_short_line(self, db_session, warehouse, products, owner):
        mango, berry = products
        location = StockLocation.warehouse(warehouse.id)
        _apply(location, mango, 3, owner, TransactionType.RESTOCK)

        shortfalls = ledger_service.check_sufficiency(location, [(mango, 5), (berry, 1)])

        by_product = {s.product_id: s for s in shortfalls}
        assert set(by_product) == {mango.id, berry.id}
        assert by_product[mango.id].available == 3
        assert by_product[berry.id].available == 0
        assert by_product[mango.id].describe() == "Mango Burst: requested 5, available 3"

    def test_sufficient_stock_returns_empty(self, db_session, warehouse, products, owner):
        mango, _ = products
        location = StockLocation.warehouse(warehouse.id)
        _apply(location, mango, 10, owner, TransactionType.RESTOCK)

        assert ledger_service.check_sufficiency(location, [(mango, 10)]) == []


class TestAppendOnly:

    def test_transaction_rows_cannot_be_updated(self, db_session, warehouse, products, owner):
        mango, _ = products
        _, txn = _apply(StockLocation.warehouse(warehouse.id), mango, 10, owner, TransactionType.RESTOCK)

        txn = db_session.get(InventoryTransaction, txn.id)
        txn.notes = "rewritten"
        with pytest.raises(ImmutableTransactionError):
            db_session.flush()
        db_session.rollback()

    def test_transaction_rows_cannot_be_deleted(self, db_session, warehouse, products, owner):
        mango, _ = products
        _, txn = _apply(StockLocation.warehouse(warehouse.id), mango, 10, owner, TransactionType.RESTOCK)

        db_session.delete(db_session.get(InventoryTransaction, txn.id))
        with pytest.raises(ImmutableTransactionError):
            db_session.flush()
        db_session.rollback()
