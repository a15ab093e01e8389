# Overview: Flask API routes for warehouses, distributors and clients; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import directory_service, inventory_service
from ..validation import optional_str, parse_bool_arg, require_str
from ..decorators import require_auth, require_permission


warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")
distributors_bp = Blueprint("distributors", __name__, url_prefix="/api/distributors")
clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@warehouses_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_warehouses_route():
    """Active warehouses a distributor can order from."""
    warehouses = directory_service.list_warehouses()
    return jsonify({"warehouses": [w.to_dict() for w in warehouses]}), 200


@distributors_bp.get("")
@require_auth
@require_permission("MANAGE_DISTRIBUTORS")
def list_distributors_route():
    """Distributors with order count, PAID revenue and client count."""
    include_inactive = request.args.get("include_inactive")
    rows = directory_service.list_distributors(
        include_inactive=True if include_inactive is None else parse_bool_arg(include_inactive),
    )
    return jsonify({"distributors": rows}), 200


@distributors_bp.post("")
@require_auth
@require_permission("MANAGE_DISTRIBUTORS")
def create_distributor_route():
    """
    Request body:
    {
        "email": str,
        "password": str,
        "full_name": str,
        "business_name": str,
        "phone": str (optional),
        "location": str (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        distributor = directory_service.create_distributor(
            email=require_str(data, "email"),
            password=require_str(data, "password"),
            full_name=require_str(data, "full_name"),
            business_name=require_str(data, "business_name"),
            phone=optional_str(data, "phone", max_length=64),
            location=optional_str(data, "location", max_length=255),
        )
        return jsonify({"distributor": distributor.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create distributor")
        return jsonify({"error": "Internal server error"}), 500


def _set_distributor_active(distributor_id: int, is_active: bool):
    try:
        distributor = directory_service.set_distributor_active(distributor_id, is_active)
        return jsonify({"distributor": distributor.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update distributor status")
        return jsonify({"error": "Internal server error"}), 500


@distributors_bp.post("/<int:distributor_id>/deactivate")
@require_auth
@require_permission("MANAGE_DISTRIBUTORS")
def deactivate_distributor_route(distributor_id: int):
    """Deactivate a distributor; its login stops working immediately."""
    return _set_distributor_active(distributor_id, False)


@distributors_bp.post("/<int:distributor_id>/activate")
@require_auth
@require_permission("MANAGE_DISTRIBUTORS")
def activate_distributor_route(distributor_id: int):
    return _set_distributor_active(distributor_id, True)


@distributors_bp.get("/me/inventory")
@require_auth
@require_permission("VIEW_OWN_INVENTORY")
def my_inventory_route():
    """The calling distributor's own stock. Query params: search"""
    try:
        distributor = directory_service.require_distributor_for_user(g.current_user.id, active=False)
        result = inventory_service.list_distributor_inventory(
            distributor_id=distributor.id,
            search=request.args.get("search") or None,
        )
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@clients_bp.get("")
@require_auth
@require_permission("MANAGE_CLIENTS")
def list_clients_route():
    """The calling distributor's clients with order count and PAID spend."""
    try:
        distributor = directory_service.require_distributor_for_user(g.current_user.id, active=False)
        rows = directory_service.list_clients(
            distributor_id=distributor.id,
            include_inactive=parse_bool_arg(request.args.get("include_inactive")),
        )
        return jsonify({"clients": rows}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@clients_bp.post("")
@require_auth
@require_permission("MANAGE_CLIENTS")
def create_client_route():
    """
    Request body:
    {
        "email": str,
        "password": str,
        "full_name": str,
        "business_name": str,
        "phone": str (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        client = directory_service.create_client(
            distributor_user_id=g.current_user.id,
            email=require_str(data, "email"),
            password=require_str(data, "password"),
            full_name=require_str(data, "full_name"),
            business_name=require_str(data, "business_name"),
            phone=optional_str(data, "phone", max_length=64),
        )
        return jsonify({"client": client.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.post("/<int:client_id>/deactivate")
@require_auth
@require_permission("MANAGE_CLIENTS")
def deactivate_client_route(client_id: int):
    try:
        client = directory_service.set_client_active(
            distributor_user_id=g.current_user.id,
            client_id=client_id,
            is_active=False,
        )
        return jsonify({"client": client.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate client")
        return jsonify({"error": "Internal server error"}), 500
