# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

"""
Inventory ledger: per-location stock counters plus the append-only
transaction log.

WHY: Stock for a product lives in two tiers (warehouse and distributor).
Every quantity change, whatever triggered it, goes through apply_delta so
that the counter and its InventoryTransaction row are always written
together and the quantity can never go negative.

DESIGN:
- Functions here never commit. Callers wrap them in run_in_transaction so
  a multi-line order either moves all of its stock or none of it.
- Counter rows are created lazily on first movement.
- Low stock is derived on read (quantity < reorder_level).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrencyConflictError, InsufficientStockError, Shortfall, ValidationError
from ..extensions import db
from ..models import DistributorInventory, InventoryTransaction, Product, TransactionType, WarehouseInventory
from .concurrency import lock_for_update


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLocation:
    """A stock-holding location: exactly one of warehouse_id / distributor_id."""

    warehouse_id: int | None = None
    distributor_id: int | None = None

    def __post_init__(self):
        if (self.warehouse_id is None) == (self.distributor_id is None):
            raise ValueError("StockLocation needs exactly one of warehouse_id or distributor_id")

    @classmethod
    def warehouse(cls, warehouse_id: int) -> "StockLocation":
        return cls(warehouse_id=warehouse_id)

    @classmethod
    def distributor(cls, distributor_id: int) -> "StockLocation":
        return cls(distributor_id=distributor_id)

    @property
    def is_warehouse(self) -> bool:
        return self.warehouse_id is not None

    @property
    def model(self):
        return WarehouseInventory if self.is_warehouse else DistributorInventory

    def filter_kwargs(self) -> dict:
        if self.is_warehouse:
            return {"warehouse_id": self.warehouse_id}
        return {"distributor_id": self.distributor_id}

    def __str__(self) -> str:
        if self.is_warehouse:
            return f"warehouse {self.warehouse_id}"
        return f"distributor {self.distributor_id}"


def find_record(location: StockLocation, product_id: int, *, lock: bool = False):
    query = db.session.query(location.model).filter_by(product_id=product_id, **location.filter_kwargs())
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity(location: StockLocation, product_id: int) -> int:
    record = find_record(location, product_id)
    return record.quantity if record else 0


def get_or_create(location: StockLocation, product_id: int, *, lock: bool = True):
    """
    Return the counter row for (location, product), creating it at quantity 0.

    Warehouse rows start at the configured default reorder level.
    """
    record = find_record(location, product_id, lock=lock)
    if record:
        return record

    kwargs = {"product_id": product_id, "quantity": 0, **location.filter_kwargs()}
    if location.is_warehouse:
        kwargs["reorder_level"] = current_app.config.get("DEFAULT_REORDER_LEVEL", 50)

    record = location.model(**kwargs)
    db.session.add(record)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Another transaction created the same row first
        raise ConcurrencyConflictError() from exc
    return record


def apply_delta(
    location: StockLocation,
    product_id: int,
    delta: int,
    transaction_type: TransactionType,
    *,
    actor_user_id: int,
    order_id: int | None = None,
    notes: str | None = None,
):
    """
    Change the on-hand quantity by delta and append one InventoryTransaction.

    Raises InsufficientStockError (record untouched) when the new quantity
    would be negative. Returns (record, transaction).
    """
    if delta == 0:
        raise ValidationError("quantity change must be non-zero")

    record = get_or_create(location, product_id)
    new_quantity = record.quantity + delta
    if new_quantity < 0:
        product = db.session.get(Product, product_id)
        raise InsufficientStockError(
            [
                Shortfall(
                    product_id=product_id,
                    product_name=product.name if product else f"Product {product_id}",
                    requested=-delta,
                    available=record.quantity,
                )
            ],
            message="Insufficient stock",
        )

    record.quantity = new_quantity

    txn = InventoryTransaction(
        product_id=product_id,
        transaction_type=transaction_type,
        quantity_change=delta,
        balance_after=new_quantity,
        performed_by_user_id=actor_user_id,
        reference_order_id=order_id,
        notes=notes,
        **location.filter_kwargs(),
    )
    db.session.add(txn)
    db.session.flush()

    logger.info(
        "%s %+d product=%s at %s -> %s",
        transaction_type.value,
        delta,
        product_id,
        location,
        new_quantity,
    )
    return record, txn


def check_sufficiency(location: StockLocation, lines) -> list[Shortfall]:
    """
    Lock and inspect every line's counter before any write.

    `lines` is an iterable of (product, requested_quantity). Returns every
    shortfall; an empty list means the whole set can be debited.
    """
    requested: dict[int, int] = {}
    products: dict[int, Product] = {}
    for product, quantity in lines:
        requested[product.id] = requested.get(product.id, 0) + quantity
        products[product.id] = product

    shortfalls = []
    for product_id in sorted(requested):
        record = find_record(location, product_id, lock=True)
        available = record.quantity if record else 0
        if available < requested[product_id]:
            shortfalls.append(
                Shortfall(
                    product_id=product_id,
                    product_name=products[product_id].name,
                    requested=requested[product_id],
                    available=available,
                )
            )
    return shortfalls


def list_transactions(
    location: StockLocation | None = None,
    *,
    product_id: int | None = None,
    transaction_type: TransactionType | None = None,
    order_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryTransaction], int]:
    query = db.session.query(InventoryTransaction)
    if location is not None:
        query = query.filter_by(**location.filter_kwargs())
    if product_id is not None:
        query = query.filter(InventoryTransaction.product_id == product_id)
    if transaction_type is not None:
        query = query.filter(InventoryTransaction.transaction_type == transaction_type)
    if order_id is not None:
        query = query.filter(InventoryTransaction.reference_order_id == order_id)

    total = query.count()
    rows = (
        query.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total
