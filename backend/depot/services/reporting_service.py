# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Client,
    Distributor,
    InventoryTransaction,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Payment,
    PaymentStatus,
    Product,
    TransactionType,
    User,
    Warehouse,
    WarehouseInventory,
)
from ..time_utils import hours_between, month_start, parse_iso_datetime, shift_months, to_utc_z, utcnow


TURNOVER_PERIODS = (30, 60, 90)
NO_SALES_DAYS_TO_SELL = 999


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError as exc:
        raise ReportError("start and end must be ISO-8601 dates") from exc
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def _parse_order_type(order_type: str | None) -> OrderType | None:
    if not order_type:
        return None
    try:
        return OrderType(order_type.upper())
    except ValueError as exc:
        raise ReportError(f"Unknown order_type: {order_type}") from exc


def _month_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m")


def _trailing_months(now: datetime, count: int = 12) -> list[datetime]:
    current = month_start(now)
    return [shift_months(current, offset) for offset in range(-(count - 1), 1)]


def _paid_orders_query(order_type: OrderType | None):
    query = db.session.query(Order).filter(
        Order.payment_status == PaymentStatus.PAID,
        Order.status != OrderStatus.CANCELLED,
    )
    if order_type:
        query = query.filter(Order.order_type == order_type)
    return query


def overview(*, order_type: str | None = OrderType.WAREHOUSE_TO_DISTRIBUTOR.value) -> dict:
    """Headline numbers for the dashboard."""
    now = utcnow()
    this_month = month_start(now)
    last_month = shift_months(this_month, -1)
    year_start = this_month.replace(month=1)
    kind = _parse_order_type(order_type)

    def revenue_between(start: datetime, end: datetime | None) -> int:
        query = db.session.query(func.coalesce(func.sum(Order.total_amount_cents), 0)).filter(
            Order.payment_status == PaymentStatus.PAID,
            Order.status != OrderStatus.CANCELLED,
            Order.created_at >= start,
        )
        if end is not None:
            query = query.filter(Order.created_at < end)
        if kind:
            query = query.filter(Order.order_type == kind)
        return int(query.scalar() or 0)

    active_orders = db.session.query(func.count(Order.id)).filter(
        Order.status.in_((OrderStatus.PENDING, OrderStatus.PROCESSING))
    )
    awaiting_payment = db.session.query(func.count(Order.id)).filter(
        Order.payment_status.in_((PaymentStatus.UNPAID, PaymentStatus.PENDING, PaymentStatus.FAILED)),
        Order.status != OrderStatus.CANCELLED,
    )
    if kind:
        active_orders = active_orders.filter(Order.order_type == kind)
        awaiting_payment = awaiting_payment.filter(Order.order_type == kind)

    inventory_value = (
        db.session.query(func.coalesce(func.sum(WarehouseInventory.quantity * Product.unit_price_cents), 0))
        .join(Product, Product.id == WarehouseInventory.product_id)
        .scalar()
    )
    low_stock = (
        db.session.query(func.count(WarehouseInventory.id))
        .join(Product, Product.id == WarehouseInventory.product_id)
        .filter(
            Product.is_active.is_(True),
            WarehouseInventory.quantity < WarehouseInventory.reorder_level,
        )
        .scalar()
    )

    return {
        "revenue_this_month_cents": revenue_between(this_month, None),
        "revenue_last_month_cents": revenue_between(last_month, this_month),
        "revenue_ytd_cents": revenue_between(year_start, None),
        "active_orders": int(active_orders.scalar() or 0),
        "orders_awaiting_payment": int(awaiting_payment.scalar() or 0),
        "active_distributors": int(
            db.session.query(func.count(Distributor.id)).filter(Distributor.is_active.is_(True)).scalar() or 0
        ),
        "active_clients": int(
            db.session.query(func.count(Client.id)).filter(Client.is_active.is_(True)).scalar() or 0
        ),
        "active_products": int(
            db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar() or 0
        ),
        "inventory_value_cents": int(inventory_value or 0),
        "low_stock_count": int(low_stock or 0),
        "generated_at": to_utc_z(now),
    }


def revenue_by_month(
    *,
    by_distributor: bool = False,
    order_type: str | None = OrderType.WAREHOUSE_TO_DISTRIBUTOR.value,
    months: int = 12,
) -> dict:
    """
    Revenue of PAID orders for the trailing `months` calendar months,
    oldest first, current month last. Months with no sales report zero.
    """
    if months < 1 or months > 36:
        raise ReportError("months must be between 1 and 36")

    now = utcnow()
    buckets = _trailing_months(now, months)
    window_start = buckets[0]
    kind = _parse_order_type(order_type)

    orders = _paid_orders_query(kind).filter(Order.created_at >= window_start).all()

    totals = {_month_key(b): {"revenue_cents": 0, "order_count": 0} for b in buckets}
    per_distributor: dict[str, dict[int, int]] = {_month_key(b): defaultdict(int) for b in buckets}
    names = {}

    for order in orders:
        key = _month_key(order.created_at)
        if key not in totals:
            continue
        totals[key]["revenue_cents"] += order.total_amount_cents
        totals[key]["order_count"] += 1
        per_distributor[key][order.distributor_id] += order.total_amount_cents
        if by_distributor and order.distributor_id not in names:
            names[order.distributor_id] = order.distributor.business_name if order.distributor else None

    rows = []
    for bucket in buckets:
        key = _month_key(bucket)
        row = {"month": key, **totals[key]}
        if by_distributor:
            row["distributors"] = sorted(
                (
                    {"distributor_id": d_id, "business_name": names.get(d_id), "revenue_cents": amount}
                    for d_id, amount in per_distributor[key].items()
                ),
                key=lambda r: r["revenue_cents"],
                reverse=True,
            )
        rows.append(row)

    return {
        "months": rows,
        "total_revenue_cents": sum(r["revenue_cents"] for r in rows),
        "total_orders": sum(r["order_count"] for r in rows),
    }


def orders_fulfilled(*, order_type: str | None = OrderType.WAREHOUSE_TO_DISTRIBUTOR.value) -> dict:
    """
    Fulfillment throughput and latency.

    Latency is fulfilled_at - created_at in hours, averaged over every
    fulfilled order and rounded to one decimal.
    """
    now = utcnow()
    this_month = month_start(now)
    quarter_start = this_month.replace(month=((this_month.month - 1) // 3) * 3 + 1)
    year_start = this_month.replace(month=1)
    buckets = _trailing_months(now, 12)
    kind = _parse_order_type(order_type)

    base = db.session.query(Order)
    if kind:
        base = base.filter(Order.order_type == kind)

    fulfilled = base.filter(Order.status == OrderStatus.FULFILLED, Order.fulfilled_at.isnot(None)).all()

    latencies = [hours_between(o.created_at, o.fulfilled_at) for o in fulfilled]
    average_hours = round(sum(latencies) / len(latencies), 1) if latencies else 0.0

    monthly = {_month_key(b): 0 for b in buckets}
    for order in fulfilled:
        key = _month_key(order.fulfilled_at)
        if key in monthly:
            monthly[key] += 1

    status_counts = {status.value: 0 for status in OrderStatus}
    for status, count in base.with_entities(Order.status, func.count(Order.id)).group_by(Order.status).all():
        status_counts[status.value] = int(count)

    return {
        "fulfilled_this_month": sum(1 for o in fulfilled if o.fulfilled_at >= this_month),
        "fulfilled_this_quarter": sum(1 for o in fulfilled if o.fulfilled_at >= quarter_start),
        "fulfilled_this_year": sum(1 for o in fulfilled if o.fulfilled_at >= year_start),
        "average_fulfillment_hours": average_hours,
        "pending": status_counts[OrderStatus.PENDING.value],
        "processing": status_counts[OrderStatus.PROCESSING.value],
        "completed": status_counts[OrderStatus.FULFILLED.value],
        "cancelled": status_counts[OrderStatus.CANCELLED.value],
        "monthly": [{"month": k, "fulfilled": v} for k, v in monthly.items()],
    }


def inventory_turnover(*, warehouse_id: int, period_days: int = 30) -> dict:
    """
    Stock velocity per product over a trailing window.

    units_sold       = |sum of ORDER_FULFILLED deltas| in the window
    units_restocked  = sum of positive RESTOCK / ADJUSTMENT deltas in the window
    average_inventory = (current quantity + units_restocked) / 2
    turnover_rate    = units_sold / average_inventory (2 decimals)
    days_to_sell     = quantity / (units_sold / period_days), 999 with no sales
    """
    if period_days not in TURNOVER_PERIODS:
        raise ReportError(f"period_days must be one of {', '.join(str(p) for p in TURNOVER_PERIODS)}")
    if not db.session.get(Warehouse, warehouse_id):
        raise NotFoundError(f"Warehouse {warehouse_id} not found")

    now = utcnow()
    since = now - timedelta(days=period_days)

    records = (
        db.session.query(WarehouseInventory)
        .join(Product, Product.id == WarehouseInventory.product_id)
        .filter(WarehouseInventory.warehouse_id == warehouse_id, Product.is_active.is_(True))
        .all()
    )

    txns = (
        db.session.query(InventoryTransaction)
        .filter(
            InventoryTransaction.warehouse_id == warehouse_id,
            InventoryTransaction.created_at >= since,
        )
        .all()
    )
    sold: dict[int, int] = defaultdict(int)
    restocked: dict[int, int] = defaultdict(int)
    for txn in txns:
        if txn.transaction_type == TransactionType.ORDER_FULFILLED:
            sold[txn.product_id] += abs(txn.quantity_change)
        elif txn.transaction_type in (TransactionType.RESTOCK, TransactionType.ADJUSTMENT) and txn.quantity_change > 0:
            restocked[txn.product_id] += txn.quantity_change

    rows = []
    for record in records:
        units_sold = sold.get(record.product_id, 0)
        units_restocked = restocked.get(record.product_id, 0)
        average_inventory = (record.quantity + units_restocked) / 2
        turnover = round(units_sold / average_inventory, 2) if average_inventory > 0 else 0.0
        if units_sold > 0:
            days_to_sell = round(record.quantity / (units_sold / period_days), 1)
        else:
            days_to_sell = NO_SALES_DAYS_TO_SELL
        rows.append(
            {
                "product_id": record.product_id,
                "product_name": record.product.name,
                "sku": record.product.sku,
                "current_stock": record.quantity,
                "reorder_level": record.reorder_level,
                "is_low_stock": record.is_low_stock,
                "units_sold": units_sold,
                "units_restocked": units_restocked,
                "average_inventory": average_inventory,
                "turnover_rate": turnover,
                "days_to_sell_stock": days_to_sell,
            }
        )

    by_turnover = sorted(rows, key=lambda r: (-r["turnover_rate"], r["product_name"]))
    recent = sorted(txns, key=lambda t: (t.created_at, t.id), reverse=True)[:20]

    return {
        "warehouse_id": warehouse_id,
        "period_days": period_days,
        "highest_turnover": by_turnover[:10],
        "lowest_turnover": list(reversed(by_turnover))[:10],
        "low_stock_alerts": sorted(
            (r for r in rows if r["is_low_stock"]),
            key=lambda r: r["current_stock"] - r["reorder_level"],
        ),
        "recent_movements": [t.to_dict() for t in recent],
        "summary": {
            "total_products": len(rows),
            "total_units_sold": sum(r["units_sold"] for r in rows),
            "total_units_restocked": sum(r["units_restocked"] for r in rows),
            "average_turnover_rate": round(sum(r["turnover_rate"] for r in rows) / len(rows), 2) if rows else 0.0,
            "low_stock_count": sum(1 for r in rows if r["is_low_stock"]),
        },
    }


def top_products(
    *,
    limit: int = 10,
    start: str | None = None,
    end: str | None = None,
    order_type: str | None = OrderType.WAREHOUSE_TO_DISTRIBUTOR.value,
) -> dict:
    """Best sellers by units across FULFILLED orders, optionally date-bounded on fulfilled_at."""
    if limit < 1 or limit > 100:
        raise ReportError("limit must be between 1 and 100")
    start_dt, end_dt = _parse_range(start, end)
    kind = _parse_order_type(order_type)

    query = (
        db.session.query(
            Product.id,
            Product.name,
            Product.sku,
            Product.category,
            func.sum(OrderItem.quantity).label("units_sold"),
            func.sum(OrderItem.subtotal_cents).label("revenue_cents"),
            func.count(func.distinct(Order.id)).label("order_count"),
        )
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == OrderStatus.FULFILLED)
    )
    if kind:
        query = query.filter(Order.order_type == kind)
    if start_dt:
        query = query.filter(Order.fulfilled_at >= start_dt)
    if end_dt:
        query = query.filter(Order.fulfilled_at <= end_dt)

    rows = (
        query.group_by(Product.id, Product.name, Product.sku, Product.category)
        .order_by(func.sum(OrderItem.quantity).desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return {
        "products": [
            {
                "product_id": row.id,
                "product_name": row.name,
                "sku": row.sku,
                "category": row.category,
                "units_sold": int(row.units_sold or 0),
                "revenue_cents": int(row.revenue_cents or 0),
                "order_count": int(row.order_count or 0),
            }
            for row in rows
        ],
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }


def distributor_performance(*, start: str | None = None, end: str | None = None) -> dict:
    """
    Warehouse-order statistics per distributor, highest revenue first.
    Revenue counts PAID orders; average order value is revenue / paid orders.
    """
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Order).filter(Order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR)
    if start_dt:
        query = query.filter(Order.created_at >= start_dt)
    if end_dt:
        query = query.filter(Order.created_at <= end_dt)

    stats: dict[int, dict] = {}
    for distributor in db.session.query(Distributor).all():
        stats[distributor.id] = {
            "distributor_id": distributor.id,
            "business_name": distributor.business_name,
            "is_active": distributor.is_active,
            "total_orders": 0,
            "revenue_cents": 0,
            "paid_orders": 0,
            "average_order_value_cents": 0,
            "average_fulfillment_hours": None,
            "status_counts": {s.value: 0 for s in OrderStatus},
            "payment_counts": {s.value: 0 for s in PaymentStatus},
            "_latencies": [],
        }

    for order in query.all():
        entry = stats.get(order.distributor_id)
        if entry is None:
            continue
        entry["total_orders"] += 1
        entry["status_counts"][order.status.value] += 1
        entry["payment_counts"][order.payment_status.value] += 1
        if order.payment_status == PaymentStatus.PAID and order.status != OrderStatus.CANCELLED:
            entry["revenue_cents"] += order.total_amount_cents
            entry["paid_orders"] += 1
        if order.status == OrderStatus.FULFILLED and order.fulfilled_at:
            entry["_latencies"].append(hours_between(order.created_at, order.fulfilled_at))

    rows = []
    for entry in stats.values():
        latencies = entry.pop("_latencies")
        if entry["paid_orders"]:
            entry["average_order_value_cents"] = round(entry["revenue_cents"] / entry["paid_orders"])
        if latencies:
            entry["average_fulfillment_hours"] = round(sum(latencies) / len(latencies), 1)
        rows.append(entry)

    rows.sort(key=lambda r: (-r["revenue_cents"], r["business_name"]))
    return {
        "distributors": rows,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }


_STOCK_ACTIONS = {
    TransactionType.RESTOCK: "restocked",
    TransactionType.ORDER_FULFILLED: "shipped",
    TransactionType.ORDER_RECEIVED: "received",
    TransactionType.ADJUSTMENT: "adjusted",
}

# Newest parties pulled into the feed, independent of limit
PARTY_FEED_SIZE = 10


def _money(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def activity_feed(*, limit: int = 20) -> dict:
    """
    Recent activity across the chain, newest first.

    Merges the latest orders, PAID warehouse payments, inventory movements and
    distributor and client additions, then cuts the merged list to limit.
    total is the merged count before the cut.
    """
    if limit < 1 or limit > 100:
        raise ReportError("limit must be between 1 and 100")

    entries: list[tuple[datetime, dict]] = []

    orders = db.session.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    for order in orders:
        if order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR:
            buyer = order.distributor.business_name if order.distributor else "Unknown"
        else:
            buyer = order.client.business_name if order.client else "Unknown"
        entries.append((order.created_at, {
            "id": f"order-{order.id}",
            "type": "ORDER",
            "title": f"New Order: {order.order_number}",
            "description": f"{buyer} placed an order for {_money(order.total_amount_cents)}",
            "status": order.status.value,
            "metadata": {
                "order_number": order.order_number,
                "order_type": order.order_type.value,
                "amount_cents": order.total_amount_cents,
                "payment_status": order.payment_status.value,
            },
        }))

    payments = (
        db.session.query(Payment)
        .filter(Payment.status == PaymentStatus.PAID)
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
        .limit(limit)
        .all()
    )
    for payment in payments:
        order = payment.order
        payer = order.distributor.business_name if order and order.distributor else "Unknown"
        entries.append((payment.paid_at or payment.created_at, {
            "id": f"payment-{payment.id}",
            "type": "PAYMENT",
            "title": f"Payment Confirmed: {order.order_number if order else payment.order_id}",
            "description": f"{payer} paid {_money(payment.amount_cents)} via {payment.payment_method or 'Manual'}",
            "status": "COMPLETED",
            "metadata": {
                "amount_cents": payment.amount_cents,
                "payment_method": payment.payment_method,
                "reference": payment.reference,
            },
        }))

    movements = (
        db.session.query(InventoryTransaction, User)
        .outerjoin(User, User.id == InventoryTransaction.performed_by_user_id)
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )
    for txn, user in movements:
        action = _STOCK_ACTIONS.get(txn.transaction_type, "updated")
        product_name = txn.product.name if txn.product else f"product {txn.product_id}"
        entries.append((txn.created_at, {
            "id": f"stock-{txn.id}",
            "type": "STOCK_UPDATE",
            "title": f"Stock {action.capitalize()}: {product_name}",
            "description": (
                f"{user.full_name if user else 'System'} {action} "
                f"{abs(txn.quantity_change)} units of {product_name}"
            ),
            "status": txn.transaction_type.value,
            "metadata": {
                "quantity_change": txn.quantity_change,
                "balance_after": txn.balance_after,
                "warehouse_id": txn.warehouse_id,
                "distributor_id": txn.distributor_id,
            },
        }))

    distributors = (
        db.session.query(Distributor)
        .order_by(Distributor.created_at.desc(), Distributor.id.desc())
        .limit(PARTY_FEED_SIZE)
        .all()
    )
    for distributor in distributors:
        entries.append((distributor.created_at, {
            "id": f"distributor-{distributor.id}",
            "type": "DISTRIBUTOR_ADDED",
            "title": f"New Distributor: {distributor.business_name}",
            "description": f"{distributor.business_name} was added as a distributor",
            "status": "ACTIVE" if distributor.is_active else "INACTIVE",
            "metadata": {"email": distributor.user.email if distributor.user else None},
        }))

    clients = (
        db.session.query(Client)
        .order_by(Client.created_at.desc(), Client.id.desc())
        .limit(PARTY_FEED_SIZE)
        .all()
    )
    for client in clients:
        owner = client.distributor.business_name if client.distributor else "Unknown"
        entries.append((client.created_at, {
            "id": f"client-{client.id}",
            "type": "CLIENT_ADDED",
            "title": f"New Client: {client.business_name}",
            "description": f"{client.business_name} was added by {owner}",
            "status": "ACTIVE" if client.is_active else "INACTIVE",
            "metadata": {"distributor_id": client.distributor_id},
        }))

    entries.sort(key=lambda pair: pair[0], reverse=True)

    activities = []
    for when, entry in entries[:limit]:
        entry["timestamp"] = to_utc_z(when)
        activities.append(entry)

    return {"activities": activities, "total": len(entries)}
