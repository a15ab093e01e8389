from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .enums import TransactionType, enum_column


class Product(db.Model):
    """
    Product master data, shared by every stock location.

    SKU is globally unique. Products are never deleted: deactivation hides
    them from ordering while keeping order history and the ledger intact.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    flavor = db.Column(db.String(120), nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "flavor": self.flavor,
            "category": self.category,
            "description": self.description,
            "image_url": self.image_url,
            "unit_price_cents": self.unit_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WarehouseInventory(db.Model):
    """
    On-hand counter for one product in one warehouse.

    INVARIANT: quantity never goes negative. Services check before every
    debit and the CHECK constraint backs it at the storage level.
    Low stock (quantity < reorder_level) is derived on read, never stored.
    """
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "product_id", name="uq_warehouse_inventory_location_product"),
        db.CheckConstraint("quantity >= 0", name="ck_warehouse_inventory_quantity_nonnegative"),
        db.CheckConstraint("reorder_level >= 0", name="ck_warehouse_inventory_reorder_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=50)
    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")

    @property
    def is_low_stock(self) -> bool:
        return self.quantity < self.reorder_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "is_low_stock": self.is_low_stock,
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DistributorInventory(db.Model):
    """On-hand counter for one product held by one distributor."""
    __tablename__ = "distributor_inventory"
    __table_args__ = (
        db.UniqueConstraint("distributor_id", "product_id", name="uq_distributor_inventory_location_product"),
        db.CheckConstraint("quantity >= 0", name="ck_distributor_inventory_quantity_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "distributor_id": self.distributor_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only stock movement log.

    Exactly one of warehouse_id / distributor_id is set. Every change to a
    WarehouseInventory or DistributorInventory quantity writes one row here
    in the same database transaction, with balance_after equal to the new
    quantity. Rows are never updated or deleted through the ORM.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "(warehouse_id IS NULL) != (distributor_id IS NULL)",
            name="ck_inventory_transactions_single_location",
        ),
        db.CheckConstraint("quantity_change != 0", name="ck_inventory_transactions_nonzero"),
        db.CheckConstraint("balance_after >= 0", name="ck_inventory_transactions_balance_nonnegative"),
        db.Index("ix_inventory_transactions_warehouse_product", "warehouse_id", "product_id", "created_at"),
        db.Index("ix_inventory_transactions_distributor_product", "distributor_id", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(enum_column(TransactionType), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    reference_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "distributor_id": self.distributor_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "transaction_type": self.transaction_type.value,
            "quantity_change": self.quantity_change,
            "balance_after": self.balance_after,
            "performed_by_user_id": self.performed_by_user_id,
            "reference_order_id": self.reference_order_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class ImmutableTransactionError(RuntimeError):
    pass


@event.listens_for(InventoryTransaction, "before_update")
def _refuse_transaction_update(mapper, connection, target):
    raise ImmutableTransactionError("inventory_transactions rows are append-only")


@event.listens_for(InventoryTransaction, "before_delete")
def _refuse_transaction_delete(mapper, connection, target):
    raise ImmutableTransactionError("inventory_transactions rows are append-only")
