from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .enums import OrderStatus, OrderType, PaymentStatus, enum_column


class Order(db.Model):
    """
    Order header for both tiers.

    WAREHOUSE_TO_DISTRIBUTOR: warehouse_id + distributor_id set, client_id null.
    DISTRIBUTOR_TO_CLIENT: distributor_id + client_id set, warehouse_id null.

    LIFECYCLE:
    1. PENDING: created by the buyer
    2. PROCESSING: picked up by the seller (optional step)
    3. FULFILLED: stock debited from the seller (terminal)
    4. CANCELLED: abandoned before fulfillment (terminal)

    received_at is set exactly once, when the distributor credits a fulfilled
    warehouse order into its own stock.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_nonnegative"),
        db.Index("ix_orders_type_status", "order_type", "status"),
        db.Index("ix_orders_distributor_created", "distributor_id", "created_at"),
        db.Index("ix_orders_client_created", "client_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)
    order_type = db.Column(enum_column(OrderType), nullable=False)

    status = db.Column(enum_column(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_status = db.Column(enum_column(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID)
    payment_method = db.Column(db.String(64), nullable=True)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)

    placed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    fulfilled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    distributor = db.relationship("Distributor")
    client = db.relationship("Client")
    warehouse = db.relationship("Warehouse")

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.FULFILLED, OrderStatus.CANCELLED)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "order_type": self.order_type.value,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method,
            "warehouse_id": self.warehouse_id,
            "distributor_id": self.distributor_id,
            "distributor_name": self.distributor.business_name if self.distributor else None,
            "client_id": self.client_id,
            "client_name": self.client.business_name if self.client else None,
            "placed_by_user_id": self.placed_by_user_id,
            "fulfilled_by_user_id": self.fulfilled_by_user_id,
            "received_by_user_id": self.received_by_user_id,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "received_at": to_utc_z(self.received_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self) -> str:
        return f"<Order {self.order_number} {self.status}>"


class OrderItem(db.Model):
    """Order line. Price is captured at order creation and never changes."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_order_items_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class OrderSequence(db.Model):
    """
    Per-(prefix, year) order number counter.

    next_number is incremented with a single conditional UPDATE, so two
    concurrent order creations can never draw the same number.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", "year", name="uq_order_sequences_prefix_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(8), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
