# Overview: Service-layer operations for products; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, TransactionType, Warehouse
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, coerce_int, enforce_rules_product, validate_payload
from .concurrency import run_in_transaction
from .ledger_service import StockLocation, apply_delta, get_or_create


logger = logging.getLogger(__name__)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "flavor", "category", "description", "image_url", "unit_price_cents", "is_active"},
    required_on_create={"sku", "name", "unit_price_cents"},
)

# Create-only keys handled outside the Product columns
STOCK_FIELDS = {"warehouse_id", "initial_stock", "reorder_level"}


def _split_payload(payload: dict | None) -> tuple[dict, dict]:
    payload = dict(payload or {})
    stock = {k: payload.pop(k) for k in list(payload) if k in STOCK_FIELDS}
    return payload, stock


def _ensure_unique_sku(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(f"SKU {sku} already exists")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(
    *,
    include_inactive: bool = False,
    category: str | None = None,
    search: str | None = None,
) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(Product.name.ilike(pattern), Product.sku.ilike(pattern), Product.flavor.ilike(pattern))
        )
    return query.order_by(Product.name.asc()).all()


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category.isnot(None), Product.is_active.is_(True))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def create_product(payload: dict, *, user_id: int):
    """
    Create a product and, when `warehouse_id` is supplied, its warehouse
    inventory row.

    Optional stock keys:
    - warehouse_id: warehouse that stocks the product
    - initial_stock: opening quantity, recorded as a RESTOCK movement
    - reorder_level: low-stock threshold for that warehouse

    Returns (product, inventory_record | None, transactions).
    """
    def _op():
        fields, stock = _split_payload(payload)
        patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        _ensure_unique_sku(patch["sku"])

        initial_stock = coerce_int("initial_stock", stock["initial_stock"]) if stock.get("initial_stock") is not None else 0
        reorder_level = coerce_int("reorder_level", stock["reorder_level"]) if stock.get("reorder_level") is not None else None
        if initial_stock < 0:
            raise ValidationError("initial_stock must be >= 0")
        if reorder_level is not None and reorder_level < 0:
            raise ValidationError("reorder_level must be >= 0")

        warehouse_id = stock.get("warehouse_id")
        if warehouse_id is None and (initial_stock or reorder_level is not None):
            raise ValidationError("warehouse_id is required when setting initial_stock or reorder_level")

        product = Product(**patch)
        db.session.add(product)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"SKU {patch['sku']} already exists") from exc

        record = None
        transactions = []
        if warehouse_id is not None:
            warehouse_id = coerce_int("warehouse_id", warehouse_id)
            warehouse = db.session.get(Warehouse, warehouse_id)
            if not warehouse or not warehouse.is_active:
                raise NotFoundError(f"Warehouse {warehouse_id} not found")

            location = StockLocation.warehouse(warehouse_id)
            record = get_or_create(location, product.id)
            if reorder_level is not None:
                record.reorder_level = reorder_level
            if initial_stock > 0:
                record, txn = apply_delta(
                    location,
                    product.id,
                    initial_stock,
                    TransactionType.RESTOCK,
                    actor_user_id=user_id,
                    notes="Initial stock",
                )
                record.last_restocked_at = utcnow()
                transactions.append(txn)

        logger.info("Created product %s (%s)", product.sku, product.id)
        return product, record, transactions

    return run_in_transaction(_op)


def update_product(product_id: int, payload: dict) -> Product:
    def _op():
        product = get_product(product_id)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        if "sku" in patch and patch["sku"] != product.sku:
            _ensure_unique_sku(patch["sku"], exclude_id=product.id)

        for key, value in patch.items():
            setattr(product, key, value)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft delete: the product disappears from ordering, history is kept."""
    def _op():
        product = get_product(product_id)
        product.is_active = False
        return product

    return run_in_transaction(_op)
