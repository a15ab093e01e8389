# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/depot/routes/orders.py
"""
Order API routes.

Every mutating endpoint answers with the order, its items, and the
inventory transactions the action produced (empty when stock did not move).
Ownership (which distributor, which client) is enforced by the services.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import fulfillment_service, ledger_service, order_service, payment_service
from ..validation import optional_int, optional_str, parse_order_items, require_int
from ..decorators import require_auth, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_payload(order, transactions=None, **extra) -> dict:
    payload = {
        "order": order.to_dict(),
        "items": [item.to_dict() for item in order.items],
        "transactions": [txn.to_dict() for txn in (transactions or [])],
    }
    payload.update(extra)
    return payload


@orders_bp.post("")
@require_auth
@require_permission("PLACE_WAREHOUSE_ORDER")
def create_warehouse_order_route():
    """
    Distributor orders stock from a warehouse.

    Request body:
    {
        "warehouse_id": int,
        "items": [{"product_id": int, "quantity": int}, ...],
        "notes": str (optional)
    }

    Returns:
        201: Order created (PENDING / UNPAID)
        400: Invalid request or inactive product
        403: Caller has no active distributor profile
        404: Warehouse or product not found
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_warehouse_order(
            user_id=g.current_user.id,
            warehouse_id=require_int(data, "warehouse_id"),
            items=parse_order_items(data.get("items")),
            notes=optional_str(data, "notes"),
        )
        return jsonify(_order_payload(order)), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/client")
@require_auth
@require_permission("PLACE_CLIENT_ORDER")
def create_client_order_route():
    """
    Client orders stock from its distributor.

    Request body:
    {
        "items": [{"product_id": int, "quantity": int}, ...],
        "notes": str (optional)
    }

    Returns:
        201: Order created (PENDING / UNPAID, no stock moved)
        400: Invalid request, inactive product, or insufficient distributor stock
        403: Caller has no active client profile
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_client_order(
            user_id=g.current_user.id,
            items=parse_order_items(data.get("items")),
            notes=optional_str(data, "notes"),
        )
        return jsonify(_order_payload(order)), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create client order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
@require_permission("VIEW_ORDERS")
def list_orders_route():
    """
    List orders visible to the caller.

    Query params: status, payment_status, order_type, distributor_id, limit, offset
    """
    try:
        args = request.args
        orders, total = order_service.list_orders(
            g.current_user,
            status=args.get("status"),
            payment_status=args.get("payment_status"),
            order_type=args.get("order_type"),
            distributor_id=optional_int(args.to_dict(), "distributor_id"),
            limit=optional_int(args.to_dict(), "limit", 50),
            offset=optional_int(args.to_dict(), "offset", 0),
        )
        return jsonify({
            "orders": [o.to_dict() for o in orders],
            "total": total,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_ORDERS")
def get_order_route(order_id: int):
    """Order detail with items and every stock movement it caused."""
    try:
        order = order_service.get_order_for_user(order_id, g.current_user)
        transactions, _ = ledger_service.list_transactions(order_id=order.id, limit=500)
        return jsonify(_order_payload(order, transactions)), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/process")
@require_auth
@require_permission("PROCESS_ORDERS")
def start_processing_route(order_id: int):
    """
    Move a PENDING order to PROCESSING.

    Returns:
        200: Order updated
        400: Order is not PENDING
        403: Caller is not the fulfilling party
        404: Order not found
    """
    try:
        order = fulfillment_service.start_processing(order_id=order_id, user_id=g.current_user.id)
        return jsonify(_order_payload(order)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/fulfill")
@require_auth
@require_permission("FULFILL_WAREHOUSE_ORDERS")
def fulfill_order_route(order_id: int):
    """
    Fulfill a paid warehouse order from its warehouse.

    Returns:
        200: Order FULFILLED, one ORDER_FULFILLED transaction per line
        400: Not paid, wrong status, or insufficient stock ({error, details[]})
        404: Order not found
        409: Concurrent update, retry
    """
    try:
        order, transactions = fulfillment_service.fulfill_warehouse_order(
            order_id=order_id,
            user_id=g.current_user.id,
        )
        return jsonify(_order_payload(order, transactions)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to fulfill order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/fulfill-client")
@require_auth
@require_permission("FULFILL_CLIENT_ORDERS")
def fulfill_client_order_route(order_id: int):
    """
    Distributor fulfills a paid client order from its own stock.

    Returns:
        200: Order FULFILLED
        400: Not paid, wrong status, or insufficient stock
        403: Caller does not own the order
        404: Order not found
    """
    try:
        order, transactions = fulfillment_service.fulfill_client_order(
            order_id=order_id,
            user_id=g.current_user.id,
        )
        return jsonify(_order_payload(order, transactions)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to fulfill client order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/receive")
@require_auth
@require_permission("RECEIVE_ORDERS")
def receive_order_route(order_id: int):
    """
    Distributor receives a fulfilled warehouse order into its stock.

    Returns:
        200: Stock credited, one ORDER_RECEIVED transaction per line
        400: Order not FULFILLED or already received
        403: Caller is not the ordering distributor
        404: Order not found
    """
    try:
        order, transactions = fulfillment_service.receive_order(
            order_id=order_id,
            user_id=g.current_user.id,
        )
        return jsonify(_order_payload(order, transactions)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("CANCEL_ORDERS")
def cancel_order_route(order_id: int):
    """
    Cancel an open order.

    Request body:
    {
        "reason": str
    }

    Returns:
        200: Order CANCELLED
        400: Order already FULFILLED or CANCELLED
        403: Caller is not a party to the order
        404: Order not found
    """
    try:
        data = request.get_json(silent=True) or {}
        order = fulfillment_service.cancel_order(
            order_id=order_id,
            user_id=g.current_user.id,
            reason=optional_str(data, "reason"),
        )
        return jsonify(_order_payload(order)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/mark-paid")
@require_auth
@require_permission("MARK_PAID")
def mark_paid_route(order_id: int):
    """
    Record payment for an order.

    Request body:
    {
        "payment_method": str (optional),
        "notes": str (optional)
    }

    Returns:
        200: Order PAID, payment record returned
        400: Order already PAID or cancelled
        403: Caller may not confirm this order's payment
        404: Order not found
    """
    try:
        data = request.get_json(silent=True) or {}
        order, payment = payment_service.mark_paid(
            order_id=order_id,
            user_id=g.current_user.id,
            payment_method=optional_str(data, "payment_method", max_length=64),
            notes=optional_str(data, "notes"),
        )
        return jsonify(_order_payload(order, payment=payment.to_dict())), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark order paid")
        return jsonify({"error": "Internal server error"}), 500
