# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment axis of the order state machine.

    UNPAID -> PENDING -> PAID
                      -> FAILED -> PENDING (retry) | PAID
    UNPAID | PENDING | FAILED -> PAID   (manual confirmation)

Warehouse orders keep one Payment row per order, upserted as the payment
moves. Client orders are settled off-platform; the distributor records
the receipt, which creates the order's single ClientPayment row.

A PAID order can never be paid again, and a CANCELLED order cannot be
paid at all.
"""
from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..extensions import db
from ..models import ClientPayment, Order, OrderStatus, OrderType, Payment, PaymentStatus, Role, User
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .directory_service import get_client_for_user, get_distributor_for_user


logger = logging.getLogger(__name__)


DEFAULT_CLIENT_PAYMENT_METHOD = "Manual"
DEFAULT_WAREHOUSE_PAYMENT_METHOD = "Manual"


def _load_locked_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise AuthorizationError("User is not active")
    return user


def _owning_distributor(order: Order, user: User):
    if user.role != Role.DISTRIBUTOR:
        return None
    distributor = get_distributor_for_user(user.id)
    if distributor and distributor.id == order.distributor_id:
        return distributor
    return None


def _set_payment_status(order: Order, expected: tuple[PaymentStatus, ...], new_status: PaymentStatus, **values) -> None:
    """Compare-and-set on payment_status; cancelled orders never match."""
    now = utcnow()
    stmt = (
        update(Order)
        .where(
            Order.id == order.id,
            Order.payment_status.in_(expected),
            Order.status != OrderStatus.CANCELLED,
        )
        .values(payment_status=new_status, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount != 1:
        raise StateConflictError("Order payment status changed, please reload the order")
    db.session.refresh(order)


def _get_or_create_payment(order: Order) -> Payment:
    payment = lock_for_update(db.session.query(Payment).filter_by(order_id=order.id)).first()
    if payment is None:
        payment = Payment(
            order_id=order.id,
            distributor_id=order.distributor_id,
            amount_cents=order.total_amount_cents,
            status=PaymentStatus.PENDING,
        )
        db.session.add(payment)
    return payment


def _check_payable(order: Order) -> None:
    if order.payment_status == PaymentStatus.PAID:
        raise StateConflictError("Order is already marked as paid")
    if order.status == OrderStatus.CANCELLED:
        raise StateConflictError("Cannot mark a cancelled order as paid")


def mark_paid(
    *,
    order_id: int,
    user_id: int,
    payment_method: str | None = None,
    notes: str | None = None,
):
    """
    Record that an order has been paid.

    Warehouse orders: OWNER or MANAGER confirms; the Payment row is upserted
    to PAID. Client orders: only the owning distributor; a ClientPayment row
    is created.

    Returns (order, payment_record).
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        method = (payment_method or "").strip() or None
        now = utcnow()

        if order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR:
            if user.role not in (Role.OWNER, Role.MANAGER):
                raise AuthorizationError("Only warehouse staff can confirm warehouse order payments")
            _check_payable(order)

            method = method or order.payment_method or DEFAULT_WAREHOUSE_PAYMENT_METHOD
            _set_payment_status(
                order,
                (PaymentStatus.UNPAID, PaymentStatus.PENDING, PaymentStatus.FAILED),
                PaymentStatus.PAID,
                payment_method=method,
            )

            payment = _get_or_create_payment(order)
            payment.status = PaymentStatus.PAID
            payment.payment_method = method
            payment.amount_cents = order.total_amount_cents
            payment.paid_at = now
            payment.confirmed_by_user_id = user.id
            payment.failure_reason = None
            if notes:
                payment.notes = notes
            db.session.flush()
        else:
            if not _owning_distributor(order, user):
                raise AuthorizationError("Only the distributor that owns this order can mark it paid")
            _check_payable(order)
            if db.session.query(ClientPayment.id).filter_by(order_id=order.id).first():
                raise StateConflictError("Order is already marked as paid")

            method = method or DEFAULT_CLIENT_PAYMENT_METHOD
            _set_payment_status(
                order,
                (PaymentStatus.UNPAID, PaymentStatus.PENDING, PaymentStatus.FAILED),
                PaymentStatus.PAID,
                payment_method=method,
            )

            payment = ClientPayment(
                order_id=order.id,
                client_id=order.client_id,
                distributor_id=order.distributor_id,
                amount_cents=order.total_amount_cents,
                payment_method=method,
                notes=notes or f"Payment marked as received via {payment_method or 'manual entry'}",
                marked_paid_by_user_id=user.id,
                marked_paid_at=now,
            )
            db.session.add(payment)
            db.session.flush()

        logger.info("Order %s marked paid via %s", order.order_number, method)
        return order, payment

    return run_in_transaction(_op)


def begin_payment(
    *,
    order_id: int,
    user_id: int,
    payment_method: str,
    reference: str | None = None,
) -> tuple[Order, Payment]:
    """
    Distributor starts paying a warehouse order (UNPAID/FAILED -> PENDING).
    The gateway outcome is recorded later with confirm_payment or fail_payment.
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if order.order_type != OrderType.WAREHOUSE_TO_DISTRIBUTOR:
            raise StateConflictError("Client orders are settled directly with the distributor")
        if not _owning_distributor(order, user):
            raise AuthorizationError("Only the ordering distributor can pay this order")

        method = (payment_method or "").strip()
        if not method:
            raise ValidationError("payment_method is required")
        if order.payment_status == PaymentStatus.PAID:
            raise StateConflictError("Order is already marked as paid")
        if order.payment_status == PaymentStatus.PENDING:
            raise StateConflictError("A payment is already in progress for this order")
        if order.status == OrderStatus.CANCELLED:
            raise StateConflictError("Cannot pay a cancelled order")

        _set_payment_status(
            order,
            (PaymentStatus.UNPAID, PaymentStatus.FAILED),
            PaymentStatus.PENDING,
            payment_method=method,
        )

        payment = _get_or_create_payment(order)
        payment.status = PaymentStatus.PENDING
        payment.payment_method = method
        payment.amount_cents = order.total_amount_cents
        payment.reference = reference
        payment.failure_reason = None
        db.session.flush()
        return order, payment

    return run_in_transaction(_op)


def confirm_payment(
    *,
    order_id: int,
    user_id: int,
    reference: str | None = None,
) -> tuple[Order, Payment]:
    """Gateway success for a PENDING warehouse payment (PENDING -> PAID)."""
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if user.role not in (Role.OWNER, Role.MANAGER):
            raise AuthorizationError("Only warehouse staff can confirm payments")
        if order.payment_status != PaymentStatus.PENDING:
            raise StateConflictError(f"Cannot confirm payment with status {order.payment_status.value}")

        _set_payment_status(order, (PaymentStatus.PENDING,), PaymentStatus.PAID)

        payment = _get_or_create_payment(order)
        payment.status = PaymentStatus.PAID
        payment.paid_at = utcnow()
        payment.confirmed_by_user_id = user.id
        if reference:
            payment.reference = reference
        db.session.flush()
        return order, payment

    return run_in_transaction(_op)


def fail_payment(
    *,
    order_id: int,
    user_id: int,
    reason: str | None = None,
) -> tuple[Order, Payment]:
    """Gateway failure for a PENDING warehouse payment (PENDING -> FAILED)."""
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if user.role not in (Role.OWNER, Role.MANAGER):
            raise AuthorizationError("Only warehouse staff can record payment failures")
        if order.payment_status != PaymentStatus.PENDING:
            raise StateConflictError(f"Cannot fail payment with status {order.payment_status.value}")

        _set_payment_status(order, (PaymentStatus.PENDING,), PaymentStatus.FAILED)

        payment = _get_or_create_payment(order)
        payment.status = PaymentStatus.FAILED
        payment.failure_reason = (reason or "").strip() or "Payment failed"
        db.session.flush()
        return order, payment

    return run_in_transaction(_op)


def list_payments(user: User, *, status: str | None = None) -> dict:
    """
    Payments visible to the caller.

    OWNER/MANAGER: every warehouse payment.
    DISTRIBUTOR: its own warehouse payments and the client receipts it recorded.
    CLIENT: receipts for its own orders.
    """
    payments_query = db.session.query(Payment)
    client_query = db.session.query(ClientPayment)

    if user.role in (Role.OWNER, Role.MANAGER):
        client_query = None
    elif user.role == Role.DISTRIBUTOR:
        distributor = get_distributor_for_user(user.id)
        distributor_id = distributor.id if distributor else -1
        payments_query = payments_query.filter(Payment.distributor_id == distributor_id)
        client_query = client_query.filter(ClientPayment.distributor_id == distributor_id)
    elif user.role == Role.CLIENT:
        client = get_client_for_user(user.id)
        payments_query = None
        client_query = client_query.filter(ClientPayment.client_id == (client.id if client else -1))
    else:
        raise AuthorizationError("Role is not permitted to view payments")

    if status and payments_query is not None:
        try:
            payments_query = payments_query.filter(Payment.status == PaymentStatus(status.upper()))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    return {
        "payments": [
            p.to_dict() for p in (payments_query.order_by(Payment.created_at.desc()).all() if payments_query is not None else [])
        ],
        "client_payments": [
            p.to_dict() for p in (client_query.order_by(ClientPayment.marked_paid_at.desc()).all() if client_query is not None else [])
        ],
    }
