# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError, StateConflictError, ValidationError
from ..extensions import db
from ..models import (
    DistributorInventory,
    InventoryTransaction,
    Product,
    TransactionType,
    Warehouse,
    WarehouseInventory,
)
from ..time_utils import utcnow
from .concurrency import run_in_transaction
from .ledger_service import StockLocation, apply_delta, get_or_create


MIN_ADJUSTMENT_NOTE_LENGTH = 5


def _require_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if not warehouse or not warehouse.is_active:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    return warehouse


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def restock_inventory(
    *,
    warehouse_id: int,
    product_id: int,
    quantity: int,
    user_id: int,
    notes: str | None = None,
) -> tuple[WarehouseInventory, InventoryTransaction]:
    """
    Add received stock to a warehouse (RESTOCK movement).

    Stamps last_restocked_at. Inactive products cannot be restocked.
    """
    def _op():
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer")

        _require_warehouse(warehouse_id)
        product = _require_product(product_id)
        if not product.is_active:
            raise StateConflictError("Cannot restock inactive product")

        record, txn = apply_delta(
            StockLocation.warehouse(warehouse_id),
            product_id,
            quantity,
            TransactionType.RESTOCK,
            actor_user_id=user_id,
            notes=notes or "Restock",
        )
        record.last_restocked_at = utcnow()
        return record, txn

    return run_in_transaction(_op)


def adjust_inventory(
    *,
    warehouse_id: int,
    product_id: int,
    quantity_change: int,
    user_id: int,
    notes: str | None,
) -> tuple[WarehouseInventory, InventoryTransaction]:
    """
    Manual correction (damage, shrinkage, miscount).

    The change is signed and must be non-zero; a written reason of at least
    five characters is required. Refuses to drive stock below zero.
    """
    def _op():
        if not isinstance(quantity_change, int) or isinstance(quantity_change, bool):
            raise ValidationError("quantity_change must be an integer")
        if quantity_change == 0:
            raise ValidationError("quantity_change must be non-zero")
        reason = (notes or "").strip()
        if len(reason) < MIN_ADJUSTMENT_NOTE_LENGTH:
            raise ValidationError(
                f"notes must be at least {MIN_ADJUSTMENT_NOTE_LENGTH} characters explaining the adjustment"
            )

        _require_warehouse(warehouse_id)
        _require_product(product_id)

        return apply_delta(
            StockLocation.warehouse(warehouse_id),
            product_id,
            quantity_change,
            TransactionType.ADJUSTMENT,
            actor_user_id=user_id,
            notes=reason,
        )

    return run_in_transaction(_op)


def set_reorder_level(*, warehouse_id: int, product_id: int, reorder_level: int) -> WarehouseInventory:
    def _op():
        if not isinstance(reorder_level, int) or isinstance(reorder_level, bool) or reorder_level < 0:
            raise ValidationError("reorder_level must be a non-negative integer")
        _require_warehouse(warehouse_id)
        _require_product(product_id)
        record = get_or_create(StockLocation.warehouse(warehouse_id), product_id)
        record.reorder_level = reorder_level
        return record

    return run_in_transaction(_op)


def get_warehouse_record(warehouse_id: int, product_id: int) -> WarehouseInventory | None:
    return (
        db.session.query(WarehouseInventory)
        .filter_by(warehouse_id=warehouse_id, product_id=product_id)
        .first()
    )


def list_warehouse_inventory(
    *,
    warehouse_id: int,
    category: str | None = None,
    search: str | None = None,
    low_stock_only: bool = False,
) -> dict:
    """
    Warehouse stock view. Rows below their reorder level sort first, then by
    product name.
    """
    _require_warehouse(warehouse_id)

    query = (
        db.session.query(WarehouseInventory)
        .join(Product, Product.id == WarehouseInventory.product_id)
        .filter(WarehouseInventory.warehouse_id == warehouse_id)
    )
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.flavor.ilike(pattern),
            )
        )
    if low_stock_only:
        query = query.filter(WarehouseInventory.quantity < WarehouseInventory.reorder_level)

    rows = query.all()
    rows.sort(key=lambda r: (not r.is_low_stock, r.product.name.lower()))

    return {
        "warehouse_id": warehouse_id,
        "items": [r.to_dict() for r in rows],
        "total_items": len(rows),
        "total_units": sum(r.quantity for r in rows),
        "low_stock_count": sum(1 for r in rows if r.is_low_stock),
    }


def list_distributor_inventory(
    *,
    distributor_id: int,
    search: str | None = None,
    available_only: bool = False,
) -> dict:
    """
    Distributor stock view. available_only keeps active products with stock
    on hand, which is what a client can order from.
    """
    query = (
        db.session.query(DistributorInventory)
        .join(Product, Product.id == DistributorInventory.product_id)
        .filter(DistributorInventory.distributor_id == distributor_id)
    )
    if available_only:
        query = query.filter(Product.is_active.is_(True), DistributorInventory.quantity > 0)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

    rows = query.order_by(Product.name.asc()).all()
    return {
        "distributor_id": distributor_id,
        "items": [r.to_dict() for r in rows],
        "total_items": len(rows),
        "total_units": sum(r.quantity for r in rows),
    }

