# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order creation and role-scoped order access.

Two order tiers share one table:
- WAREHOUSE_TO_DISTRIBUTOR ("ORD-YYYY-NNNN"): a distributor buys from a
  named warehouse. Stock is checked at fulfillment, not here.
- DISTRIBUTOR_TO_CLIENT ("CLT-YYYY-NNNN"): a client buys from its own
  distributor. Distributor stock is checked upfront so clients cannot
  order what the distributor does not hold, but nothing is debited until
  the distributor fulfills the order.

Prices are captured from the product at creation time.
"""
from __future__ import annotations

import logging

from sqlalchemy import false

from ..errors import AuthorizationError, InsufficientStockError, NotFoundError, StateConflictError, ValidationError
from ..extensions import db
from ..models import (
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentStatus,
    Product,
    Role,
    User,
    Warehouse,
)
from .concurrency import run_in_transaction
from .directory_service import get_client_for_user, get_distributor_for_user, require_client_for_user, require_distributor_for_user
from .ledger_service import StockLocation, check_sufficiency
from .sequence_service import CLIENT_ORDER_PREFIX, WAREHOUSE_ORDER_PREFIX, next_order_number


logger = logging.getLogger(__name__)


def _load_active_products(lines: list[tuple[int, int]]) -> list[tuple[Product, int]]:
    resolved = []
    for product_id, quantity in lines:
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise ValidationError(f"Product {product.name} is not available")
        resolved.append((product, quantity))
    return resolved


def _build_items(order: Order, resolved: list[tuple[Product, int]]) -> int:
    total = 0
    for product, quantity in resolved:
        subtotal = product.unit_price_cents * quantity
        order.items.append(
            OrderItem(
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=product.unit_price_cents,
                subtotal_cents=subtotal,
            )
        )
        total += subtotal
    return total


def create_warehouse_order(
    *,
    user_id: int,
    warehouse_id: int,
    items: list[tuple[int, int]],
    notes: str | None = None,
) -> Order:
    """
    Distributor places an order against a warehouse.

    Args:
        user_id: distributor user placing the order
        warehouse_id: warehouse that will fulfill it
        items: (product_id, quantity) pairs, already validated as positive

    Raises:
        AuthorizationError: caller has no active distributor profile
        NotFoundError: warehouse or product missing
        ValidationError: inactive product or empty order
    """
    def _op():
        distributor = require_distributor_for_user(user_id)
        if not items:
            raise ValidationError("Order must contain at least one item")

        warehouse = db.session.get(Warehouse, warehouse_id)
        if not warehouse or not warehouse.is_active:
            raise NotFoundError(f"Warehouse {warehouse_id} not found")

        resolved = _load_active_products(items)

        order = Order(
            order_number=next_order_number(WAREHOUSE_ORDER_PREFIX),
            order_type=OrderType.WAREHOUSE_TO_DISTRIBUTOR,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            warehouse_id=warehouse.id,
            distributor_id=distributor.id,
            placed_by_user_id=user_id,
            notes=notes,
        )
        order.total_amount_cents = _build_items(order, resolved)
        db.session.add(order)
        db.session.flush()

        logger.info("Order %s placed by distributor %s", order.order_number, distributor.id)
        return order

    return run_in_transaction(_op)


def create_client_order(
    *,
    user_id: int,
    items: list[tuple[int, int]],
    notes: str | None = None,
) -> Order:
    """
    Client places an order with its distributor.

    Every line must be covered by the distributor's current stock; all
    shortfalls are reported together. No stock moves until fulfillment.
    """
    def _op():
        client = require_client_for_user(user_id)
        distributor = client.distributor
        if not distributor or not distributor.is_active:
            raise StateConflictError("Your distributor is not currently accepting orders")
        if not items:
            raise ValidationError("Order must contain at least one item")

        resolved = _load_active_products(items)

        shortfalls = check_sufficiency(StockLocation.distributor(distributor.id), resolved)
        if shortfalls:
            raise InsufficientStockError(shortfalls, message="Insufficient distributor stock for this order")

        order = Order(
            order_number=next_order_number(CLIENT_ORDER_PREFIX),
            order_type=OrderType.DISTRIBUTOR_TO_CLIENT,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            distributor_id=distributor.id,
            client_id=client.id,
            placed_by_user_id=user_id,
            notes=notes,
        )
        order.total_amount_cents = _build_items(order, resolved)
        db.session.add(order)
        db.session.flush()

        logger.info("Client order %s placed by client %s", order.order_number, client.id)
        return order

    return run_in_transaction(_op)


def _scope_all(query, user: User):
    return query


def _scope_distributor(query, user: User):
    distributor = get_distributor_for_user(user.id)
    if not distributor:
        return query.filter(false())
    return query.filter(Order.distributor_id == distributor.id)


def _scope_client(query, user: User):
    client = get_client_for_user(user.id)
    if not client:
        return query.filter(false())
    return query.filter(Order.client_id == client.id)


ORDER_SCOPES = {
    Role.OWNER: _scope_all,
    Role.MANAGER: _scope_all,
    Role.DISTRIBUTOR: _scope_distributor,
    Role.CLIENT: _scope_client,
}

_missing_scopes = set(Role) - set(ORDER_SCOPES)
if _missing_scopes:
    raise RuntimeError(f"Order visibility undefined for roles: {sorted(r.value for r in _missing_scopes)}")


def scoped_orders(user: User):
    scope = ORDER_SCOPES.get(user.role)
    if scope is None:
        raise AuthorizationError("Role is not permitted to view orders")
    return scope(db.session.query(Order), user)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def get_order_for_user(order_id: int, user: User) -> Order:
    """Load an order the user may see. Orders outside the caller's scope read as missing."""
    order = scoped_orders(user).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    user: User,
    *,
    status: str | None = None,
    payment_status: str | None = None,
    order_type: str | None = None,
    distributor_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = scoped_orders(user)

    try:
        if status:
            query = query.filter(Order.status == OrderStatus(status.upper()))
        if payment_status:
            query = query.filter(Order.payment_status == PaymentStatus(payment_status.upper()))
        if order_type:
            query = query.filter(Order.order_type == OrderType(order_type.upper()))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if distributor_id is not None:
        query = query.filter(Order.distributor_id == distributor_id)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .limit(max(1, min(limit, 200)))
        .offset(max(0, offset))
        .all()
    )
    return orders, total
