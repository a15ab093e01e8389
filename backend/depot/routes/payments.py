# Overview: Flask API routes for payment operations; parses input and returns JSON responses.

# backend/depot/routes/payments.py
"""
Warehouse-order payment flow (initiate -> gateway outcome) and payment
listings. Manual confirmation lives on /api/orders/<id>/mark-paid.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import payment_service
from ..validation import optional_str
from ..decorators import require_auth, require_permission


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _payment_payload(order, payment) -> dict:
    return {
        "order": order.to_dict(),
        "payment": payment.to_dict(),
        "transactions": [],
    }


@payments_bp.get("")
@require_auth
@require_permission("VIEW_PAYMENTS")
def list_payments_route():
    """Payments visible to the caller. Query params: status"""
    try:
        return jsonify(payment_service.list_payments(g.current_user, status=request.args.get("status"))), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@payments_bp.post("/orders/<int:order_id>/initiate")
@require_auth
@require_permission("INITIATE_PAYMENT")
def initiate_payment_route(order_id: int):
    """
    Distributor starts paying a warehouse order.

    Request body:
    {
        "payment_method": str,
        "reference": str (optional, gateway session or receipt id)
    }

    Returns:
        200: payment_status PENDING
        400: Already paid, already pending, or cancelled
        403: Caller is not the ordering distributor
    """
    try:
        data = request.get_json(silent=True) or {}
        order, payment = payment_service.begin_payment(
            order_id=order_id,
            user_id=g.current_user.id,
            payment_method=optional_str(data, "payment_method", max_length=64),
            reference=optional_str(data, "reference", max_length=255),
        )
        return jsonify(_payment_payload(order, payment)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to initiate payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/orders/<int:order_id>/confirm")
@require_auth
@require_permission("CONFIRM_PAYMENT")
def confirm_payment_route(order_id: int):
    """
    Record gateway success (PENDING -> PAID).

    Request body:
    {
        "reference": str (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order, payment = payment_service.confirm_payment(
            order_id=order_id,
            user_id=g.current_user.id,
            reference=optional_str(data, "reference", max_length=255),
        )
        return jsonify(_payment_payload(order, payment)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to confirm payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/orders/<int:order_id>/fail")
@require_auth
@require_permission("CONFIRM_PAYMENT")
def fail_payment_route(order_id: int):
    """
    Record gateway failure (PENDING -> FAILED). The distributor may retry.

    Request body:
    {
        "reason": str (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order, payment = payment_service.fail_payment(
            order_id=order_id,
            user_id=g.current_user.id,
            reason=optional_str(data, "reason"),
        )
        return jsonify(_payment_payload(order, payment)), 200

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment failure")
        return jsonify({"error": "Internal server error"}), 500
