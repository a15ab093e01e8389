from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .enums import PaymentStatus, enum_column


class Payment(db.Model):
    """
    Settlement record for a warehouse order (distributor pays warehouse).

    One row per order, upserted as payment moves UNPAID -> PENDING -> PAID/FAILED.
    The order's payment_status is the authoritative state; this row keeps the
    method, gateway reference and confirmation trail.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_payments_order"),
        db.CheckConstraint("amount_cents >= 0", name="ck_payments_amount_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(64), nullable=True)
    status = db.Column(enum_column(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    # Gateway reference or receipt number, if any
    reference = db.Column(db.String(255), nullable=True)
    failure_reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    confirmed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "distributor_id": self.distributor_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "status": self.status.value,
            "reference": self.reference,
            "failure_reason": self.failure_reason,
            "notes": self.notes,
            "confirmed_by_user_id": self.confirmed_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }


class ClientPayment(db.Model):
    """
    Manual receipt recorded by a distributor for a client order.
    At most one per order.
    """
    __tablename__ = "client_payments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_client_payments_order"),
        db.CheckConstraint("amount_cents >= 0", name="ck_client_payments_amount_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(64), nullable=False, default="Manual")
    notes = db.Column(db.Text, nullable=True)

    marked_paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    marked_paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "client_id": self.client_id,
            "distributor_id": self.distributor_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "marked_paid_by_user_id": self.marked_paid_by_user_id,
            "marked_paid_at": to_utc_z(self.marked_paid_at),
        }
