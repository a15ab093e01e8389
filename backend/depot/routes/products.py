# Overview: Flask API routes for product operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..extensions import db
from ..models import Role
from ..services import directory_service, inventory_service, product_service
from ..validation import parse_bool_arg
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """
    Product catalog.

    Query params: category, search, include_inactive (catalog managers only)
    """
    include_inactive = parse_bool_arg(request.args.get("include_inactive"))
    if include_inactive and g.current_user.role not in (Role.OWNER, Role.MANAGER):
        include_inactive = False

    products = product_service.list_products(
        include_inactive=include_inactive,
        category=request.args.get("category") or None,
        search=request.args.get("search") or None,
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/categories")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    return jsonify({"categories": product_service.list_categories()}), 200


@products_bp.get("/available")
@require_auth
@require_permission("VIEW_AVAILABLE_PRODUCTS")
def list_available_products_route():
    """
    Products the calling client can order: active, and in its distributor's stock.

    Returns:
        200: {products: [product + available_quantity], distributor_id}
        403: Caller has no active client profile
    """
    try:
        client = directory_service.require_client_for_user(g.current_user.id)
        result = inventory_service.list_distributor_inventory(
            distributor_id=client.distributor_id,
            search=request.args.get("search") or None,
            available_only=True,
        )
        products = [
            {**row["product"], "available_quantity": row["quantity"]}
            for row in result["items"]
        ]
        return jsonify({"products": products, "distributor_id": client.distributor_id}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        return jsonify({"product": product_service.get_product(product_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a product, optionally stocking it in a warehouse.

    Request body:
    {
        "sku": str,
        "name": str,
        "unit_price_cents": int,
        "flavor": str (optional),
        "category": str (optional),
        "description": str (optional),
        "image_url": str (optional),
        "warehouse_id": int (optional),
        "initial_stock": int (optional, recorded as RESTOCK "Initial stock"),
        "reorder_level": int (optional, default 50)
    }

    Returns:
        201: {product, inventory, transactions}
        400: Invalid payload
        409: Duplicate SKU
    """
    try:
        product, record, transactions = product_service.create_product(
            request.get_json(silent=True),
            user_id=g.current_user.id,
        )
        return jsonify({
            "product": product.to_dict(),
            "inventory": record.to_dict() if record else None,
            "transactions": [t.to_dict() for t in transactions],
        }), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Partial update of catalog fields. Stock is changed through /api/inventory."""
    try:
        product = product_service.update_product(product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict(), "transactions": []}), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def deactivate_product_route(product_id: int):
    """Soft delete. The product stays in order history and the ledger."""
    try:
        product = product_service.deactivate_product(product_id)
        return jsonify({"product": product.to_dict(), "transactions": []}), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500
