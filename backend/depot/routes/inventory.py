# backend/depot/routes/inventory.py
"""
Warehouse inventory routes.

SECURITY: All routes require authentication.
- View operations require VIEW_WAREHOUSE_INVENTORY permission
- Restock operations require RESTOCK_INVENTORY permission
- Adjust operations require ADJUST_INVENTORY permission

Every movement answers with the updated inventory row and the
InventoryTransaction it produced.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError, ValidationError
from ..extensions import db
from ..models import TransactionType
from ..services import inventory_service, ledger_service
from ..services.ledger_service import StockLocation
from ..validation import optional_int, optional_str, parse_bool_arg, require_int
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_WAREHOUSE_INVENTORY")
def list_inventory_route():
    """
    Warehouse stock with computed is_low_stock, low stock first.

    Query params: warehouse_id (required), category, search, low_stock_only
    """
    try:
        args = request.args.to_dict()
        result = inventory_service.list_warehouse_inventory(
            warehouse_id=require_int(args, "warehouse_id"),
            category=args.get("category") or None,
            search=args.get("search") or None,
            low_stock_only=parse_bool_arg(args.get("low_stock_only")),
        )
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/restock")
@require_auth
@require_permission("RESTOCK_INVENTORY")
def restock_route():
    """
    Add received stock to a warehouse.

    Request body:
    {
        "warehouse_id": int,
        "product_id": int,
        "quantity": int (> 0),
        "notes": str (optional)
    }

    Returns:
        200: {inventory, transaction}
        400: Invalid quantity or inactive product
        404: Warehouse or product not found
    """
    try:
        data = request.get_json(silent=True) or {}
        record, txn = inventory_service.restock_inventory(
            warehouse_id=require_int(data, "warehouse_id"),
            product_id=require_int(data, "product_id"),
            quantity=require_int(data, "quantity"),
            user_id=g.current_user.id,
            notes=optional_str(data, "notes"),
        )
        return jsonify({
            "inventory": record.to_dict(),
            "transaction": txn.to_dict(),
            "transactions": [txn.to_dict()],
        }), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to restock inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_route():
    """
    Manual stock correction.

    Request body:
    {
        "warehouse_id": int,
        "product_id": int,
        "quantity_change": int (non-zero, signed),
        "notes": str (at least 5 characters)
    }

    Returns:
        200: {inventory, transaction}
        400: Zero change, short notes, or result would be negative
        404: Warehouse or product not found
    """
    try:
        data = request.get_json(silent=True) or {}
        record, txn = inventory_service.adjust_inventory(
            warehouse_id=require_int(data, "warehouse_id"),
            product_id=require_int(data, "product_id"),
            quantity_change=require_int(data, "quantity_change"),
            user_id=g.current_user.id,
            notes=optional_str(data, "notes"),
        )
        return jsonify({
            "inventory": record.to_dict(),
            "transaction": txn.to_dict(),
            "transactions": [txn.to_dict()],
        }), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/reorder-level")
@require_auth
@require_permission("ADJUST_INVENTORY")
def set_reorder_level_route():
    """
    Request body:
    {
        "warehouse_id": int,
        "product_id": int,
        "reorder_level": int (>= 0)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        record = inventory_service.set_reorder_level(
            warehouse_id=require_int(data, "warehouse_id"),
            product_id=require_int(data, "product_id"),
            reorder_level=require_int(data, "reorder_level"),
        )
        return jsonify({"inventory": record.to_dict(), "transactions": []}), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set reorder level")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/transactions")
@require_auth
@require_permission("VIEW_WAREHOUSE_INVENTORY")
def list_transactions_route():
    """
    Stock movement history, newest first.

    Query params: warehouse_id, distributor_id, product_id, transaction_type, order_id, limit, offset
    """
    try:
        args = request.args.to_dict()
        warehouse_id = optional_int(args, "warehouse_id")
        distributor_id = optional_int(args, "distributor_id")
        if warehouse_id is not None and distributor_id is not None:
            raise ValidationError("Filter by warehouse_id or distributor_id, not both")

        location = None
        if warehouse_id is not None:
            location = StockLocation.warehouse(warehouse_id)
        elif distributor_id is not None:
            location = StockLocation.distributor(distributor_id)

        transaction_type = None
        if args.get("transaction_type"):
            try:
                transaction_type = TransactionType(args["transaction_type"].upper())
            except ValueError:
                raise ValidationError(f"Unknown transaction_type: {args['transaction_type']}")

        limit = optional_int(args, "limit", 100)
        rows, total = ledger_service.list_transactions(
            location,
            product_id=optional_int(args, "product_id"),
            transaction_type=transaction_type,
            order_id=optional_int(args, "order_id"),
            limit=max(1, min(limit, 500)),
            offset=max(0, optional_int(args, "offset", 0)),
        )
        return jsonify({"transactions": [t.to_dict() for t in rows], "total": total}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list inventory transactions")
        return jsonify({"error": "Internal server error"}), 500
