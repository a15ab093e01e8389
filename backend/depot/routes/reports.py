from flask import Blueprint, jsonify, request

from depot.errors import ServiceError
from depot.decorators import require_auth, require_permission
from depot.services import reporting_service
from depot.validation import optional_int, parse_bool_arg, require_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/overview")
@require_auth
@require_permission("VIEW_REPORTS")
def overview_report():
    try:
        return jsonify(reporting_service.overview(order_type=request.args.get("order_type", "WAREHOUSE_TO_DISTRIBUTOR"))), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/revenue")
@require_auth
@require_permission("VIEW_REPORTS")
def revenue_report():
    try:
        args = request.args.to_dict()
        report = reporting_service.revenue_by_month(
            by_distributor=parse_bool_arg(args.get("by_distributor")),
            order_type=args.get("order_type", "WAREHOUSE_TO_DISTRIBUTOR"),
            months=optional_int(args, "months", 12),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/orders-fulfilled")
@require_auth
@require_permission("VIEW_REPORTS")
def orders_fulfilled_report():
    try:
        report = reporting_service.orders_fulfilled(
            order_type=request.args.get("order_type", "WAREHOUSE_TO_DISTRIBUTOR"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/inventory-turnover")
@require_auth
@require_permission("VIEW_REPORTS")
def inventory_turnover_report():
    try:
        args = request.args.to_dict()
        report = reporting_service.inventory_turnover(
            warehouse_id=require_int(args, "warehouse_id"),
            period_days=optional_int(args, "period", 30),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/top-products")
@require_auth
@require_permission("VIEW_REPORTS")
def top_products_report():
    try:
        args = request.args.to_dict()
        report = reporting_service.top_products(
            limit=optional_int(args, "limit", 10),
            start=args.get("start"),
            end=args.get("end"),
            order_type=args.get("order_type", "WAREHOUSE_TO_DISTRIBUTOR"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/distributor-performance")
@require_auth
@require_permission("VIEW_REPORTS")
def distributor_performance_report():
    try:
        report = reporting_service.distributor_performance(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/activity-feed")
@require_auth
@require_permission("VIEW_REPORTS")
def activity_feed_report():
    """Recent orders, payments, stock movements and new parties. Query params: limit"""
    try:
        report = reporting_service.activity_feed(limit=optional_int(request.args.to_dict(), "limit", 20))
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code
