# Overview: Service-layer operations for order fulfillment; encapsulates business logic and database work.

"""
Order state machine and the stock movements it drives.

LIFECYCLE:
1. PENDING: order placed by the buyer
2. PROCESSING: seller has started work (optional step)
3. FULFILLED: seller's stock debited, one ORDER_FULFILLED txn per line (terminal)
4. CANCELLED: abandoned before fulfillment, no stock effect (terminal)

After a warehouse order is FULFILLED the distributor receives it, which
credits its own stock (ORDER_RECEIVED) exactly once.

CONCURRENCY: the order row is locked for the read-check phase and every
transition is written with a conditional UPDATE that re-states the
expected status. If a concurrent caller already moved the order, the
UPDATE matches zero rows and this caller fails with no stock moved.
"""
from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    StateConflictError,
)
from ..extensions import db
from ..models import (
    InventoryTransaction,
    Order,
    OrderStatus,
    OrderType,
    PaymentStatus,
    Role,
    TransactionType,
    User,
)
from ..models.enums import OPEN_ORDER_STATUSES
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .directory_service import get_client_for_user, get_distributor_for_user
from .ledger_service import StockLocation, apply_delta, check_sufficiency


logger = logging.getLogger(__name__)


WAREHOUSE_ROLES = (Role.OWNER, Role.MANAGER)


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


def _is_seller(order: Order, user: User) -> bool:
    """The party whose stock the order draws on."""
    if order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR:
        return user.role in WAREHOUSE_ROLES
    distributor = get_distributor_for_user(user.id) if user.role == Role.DISTRIBUTOR else None
    return distributor is not None and distributor.id == order.distributor_id


def _is_buyer(order: Order, user: User) -> bool:
    if order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR:
        distributor = get_distributor_for_user(user.id) if user.role == Role.DISTRIBUTOR else None
        return distributor is not None and distributor.id == order.distributor_id
    client = get_client_for_user(user.id) if user.role == Role.CLIENT else None
    return client is not None and client.id == order.client_id


def _transition(order: Order, expected: tuple, **values) -> None:
    """
    Compare-and-set the order row: apply values only while status is still
    one of `expected`. Raises if another transaction got there first.
    """
    values.setdefault("updated_at", utcnow())
    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrencyConflictError("Order was modified by another request, please retry")
    db.session.refresh(order)


def cancel_order(*, order_id: int, user_id: int, reason: str | None = None) -> Order:
    """
    Cancel an open order. No inventory effect.

    The seller or the buyer may cancel. The reason is appended to the order
    notes.

    Raises:
        StateConflictError: order is FULFILLED or already CANCELLED
        AuthorizationError: caller is neither party
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if not (_is_seller(order, user) or _is_buyer(order, user)):
            raise AuthorizationError("You cannot cancel this order")

        if order.status == OrderStatus.FULFILLED:
            raise StateConflictError("Cannot cancel fulfilled order")
        if order.status == OrderStatus.CANCELLED:
            raise StateConflictError("Order is already cancelled")

        reason_text = (reason or "").strip() or "No reason given"
        line = f"Cancellation reason: {reason_text}"
        notes = f"{order.notes}\n\n{line}" if order.notes else line

        _transition(
            order,
            OPEN_ORDER_STATUSES,
            status=OrderStatus.CANCELLED,
            cancelled_at=utcnow(),
            notes=notes,
        )
        logger.info("Order %s cancelled by user %s", order.order_number, user_id)
        return order

    return run_in_transaction(_op)


def start_processing(*, order_id: int, user_id: int) -> Order:
    """PENDING -> PROCESSING. Seller only."""
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if not _is_seller(order, user):
            raise AuthorizationError("Only the fulfilling party can process this order")
        if order.status != OrderStatus.PENDING:
            raise StateConflictError(f"Cannot start processing order with status {order.status.value}")

        _transition(order, (OrderStatus.PENDING,), status=OrderStatus.PROCESSING)
        return order

    return run_in_transaction(_op)


def _fulfill(order: Order, location: StockLocation, user_id: int, note: str) -> list[InventoryTransaction]:
    if order.payment_status != PaymentStatus.PAID:
        raise StateConflictError("Order must be paid before fulfillment")
    if order.status not in OPEN_ORDER_STATUSES:
        raise StateConflictError(f"Cannot fulfill order with status {order.status.value}")
    if not order.items:
        raise StateConflictError("Cannot fulfill order with no items")

    # All lines are checked before any stock moves
    shortfalls = check_sufficiency(location, [(item.product, item.quantity) for item in order.items])
    if shortfalls:
        raise InsufficientStockError(shortfalls)

    now = utcnow()
    _transition(
        order,
        OPEN_ORDER_STATUSES,
        status=OrderStatus.FULFILLED,
        fulfilled_at=now,
        fulfilled_by_user_id=user_id,
    )

    transactions = []
    for item in order.items:
        _, txn = apply_delta(
            location,
            item.product_id,
            -item.quantity,
            TransactionType.ORDER_FULFILLED,
            actor_user_id=user_id,
            order_id=order.id,
            notes=note,
        )
        transactions.append(txn)
    return transactions


def fulfill_warehouse_order(*, order_id: int, user_id: int) -> tuple[Order, list[InventoryTransaction]]:
    """
    Ship a paid warehouse order from its warehouse.

    Debits the order's warehouse for every line in one transaction.
    Any shortfall aborts the whole fulfillment and is reported per line.
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if order.order_type != OrderType.WAREHOUSE_TO_DISTRIBUTOR:
            raise StateConflictError("Client orders are fulfilled by their distributor")
        if not _is_seller(order, user):
            raise AuthorizationError("Only warehouse staff can fulfill warehouse orders")

        transactions = _fulfill(
            order,
            StockLocation.warehouse(order.warehouse_id),
            user_id,
            f"Order {order.order_number} fulfilled",
        )
        logger.info("Order %s fulfilled (%d lines)", order.order_number, len(transactions))
        return order, transactions

    return run_in_transaction(_op)


def fulfill_client_order(*, order_id: int, user_id: int) -> tuple[Order, list[InventoryTransaction]]:
    """
    Distributor ships a paid client order from its own stock.

    Only the distributor that owns the order may fulfill it; ownership is
    checked before anything else about the order is revealed.
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if order.order_type != OrderType.DISTRIBUTOR_TO_CLIENT:
            raise StateConflictError("Warehouse orders are fulfilled by the warehouse")
        if not _is_seller(order, user):
            raise AuthorizationError("Only the distributor that owns this order can fulfill it")

        transactions = _fulfill(
            order,
            StockLocation.distributor(order.distributor_id),
            user_id,
            f"Fulfilled client order {order.order_number}",
        )
        logger.info("Client order %s fulfilled (%d lines)", order.order_number, len(transactions))
        return order, transactions

    return run_in_transaction(_op)


def receive_order(*, order_id: int, user_id: int) -> tuple[Order, list[InventoryTransaction]]:
    """
    Distributor confirms delivery of a fulfilled warehouse order.

    Credits every line into the distributor's stock, creating inventory
    rows as needed. received_at is set by compare-and-set, so a repeated or
    concurrent receive cannot credit the stock twice.
    """
    def _op():
        order = _load_locked_order(order_id)
        user = _load_user(user_id)
        if order.order_type != OrderType.WAREHOUSE_TO_DISTRIBUTOR:
            raise StateConflictError("Only warehouse orders can be received")
        if not _is_buyer(order, user):
            raise AuthorizationError("Only the ordering distributor can receive this order")
        if order.status != OrderStatus.FULFILLED:
            raise StateConflictError("Order must be fulfilled before it can be received")
        if order.received_at is not None:
            raise StateConflictError("Order has already been received")

        now = utcnow()
        stmt = (
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.FULFILLED,
                Order.received_at.is_(None),
            )
            .values(received_at=now, received_by_user_id=user_id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount != 1:
            raise StateConflictError("Order has already been received")
        db.session.refresh(order)

        location = StockLocation.distributor(order.distributor_id)
        transactions = []
        for item in order.items:
            _, txn = apply_delta(
                location,
                item.product_id,
                item.quantity,
                TransactionType.ORDER_RECEIVED,
                actor_user_id=user_id,
                order_id=order.id,
                notes=f"Received from order {order.order_number}",
            )
            transactions.append(txn)

        logger.info("Order %s received by distributor %s", order.order_number, order.distributor_id)
        return order, transactions

    return run_in_transaction(_op)
