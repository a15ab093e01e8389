# Overview: Service-layer operations for distributors and clients; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import case, func

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Client, Distributor, Order, OrderType, PaymentStatus, Role, User, Warehouse
from .auth_service import create_user
from .concurrency import run_in_transaction
from .session_service import revoke_all_user_sessions


logger = logging.getLogger(__name__)


def get_distributor_for_user(user_id: int) -> Distributor | None:
    return db.session.query(Distributor).filter_by(user_id=user_id).first()


def get_client_for_user(user_id: int) -> Client | None:
    return db.session.query(Client).filter_by(user_id=user_id).first()


def require_distributor_for_user(user_id: int, *, active: bool = True) -> Distributor:
    distributor = get_distributor_for_user(user_id)
    if not distributor:
        raise AuthorizationError("Distributor profile not found")
    if active and not distributor.is_active:
        raise AuthorizationError("Distributor account is inactive")
    return distributor


def require_client_for_user(user_id: int) -> Client:
    client = get_client_for_user(user_id)
    if not client:
        raise AuthorizationError("Client profile not found")
    if not client.is_active:
        raise AuthorizationError("Client account is inactive")
    return client


def get_distributor(distributor_id: int) -> Distributor:
    distributor = db.session.get(Distributor, distributor_id)
    if not distributor:
        raise NotFoundError(f"Distributor {distributor_id} not found")
    return distributor


def create_warehouse(*, code: str, name: str, location: str | None = None) -> Warehouse:
    def _op():
        clean_code = (code or "").strip().upper()
        clean_name = (name or "").strip()
        if not clean_code or not clean_name:
            raise ValidationError("code and name are required")
        if db.session.query(Warehouse.id).filter_by(code=clean_code).first():
            raise ConflictError(f"Warehouse code {clean_code} already exists")
        warehouse = Warehouse(code=clean_code, name=clean_name, location=location)
        db.session.add(warehouse)
        db.session.flush()
        return warehouse

    return run_in_transaction(_op)


def list_warehouses(include_inactive: bool = False) -> list[Warehouse]:
    query = db.session.query(Warehouse)
    if not include_inactive:
        query = query.filter(Warehouse.is_active.is_(True))
    return query.order_by(Warehouse.id.asc()).all()


def create_distributor(
    *,
    email: str,
    password: str,
    full_name: str,
    business_name: str,
    phone: str | None = None,
    location: str | None = None,
) -> Distributor:
    """Create a DISTRIBUTOR user together with its business profile."""
    def _op():
        name = (business_name or "").strip()
        if not name:
            raise ValidationError("business_name is required")
        user = create_user(email=email, password=password, full_name=full_name, role=Role.DISTRIBUTOR)
        distributor = Distributor(user_id=user.id, business_name=name, phone=phone, location=location)
        db.session.add(distributor)
        db.session.flush()
        logger.info("Created distributor %s (%s)", distributor.business_name, distributor.id)
        return distributor

    return run_in_transaction(_op)


def create_client(
    *,
    distributor_user_id: int,
    email: str,
    password: str,
    full_name: str,
    business_name: str,
    phone: str | None = None,
) -> Client:
    """Create a CLIENT user attached to the calling distributor."""
    def _op():
        distributor = require_distributor_for_user(distributor_user_id)
        name = (business_name or "").strip()
        if not name:
            raise ValidationError("business_name is required")
        user = create_user(email=email, password=password, full_name=full_name, role=Role.CLIENT)
        client = Client(user_id=user.id, distributor_id=distributor.id, business_name=name, phone=phone)
        db.session.add(client)
        db.session.flush()
        return client

    return run_in_transaction(_op)


def list_distributors(*, include_inactive: bool = True) -> list[dict]:
    """
    Distributors with their warehouse-order statistics.
    Revenue counts PAID warehouse orders only.
    """
    order_stats = (
        db.session.query(
            Order.distributor_id.label("distributor_id"),
            func.count(Order.id).label("total_orders"),
            func.coalesce(
                func.sum(
                    case((Order.payment_status == PaymentStatus.PAID, Order.total_amount_cents), else_=0)
                ),
                0,
            ).label("total_revenue_cents"),
        )
        .filter(Order.order_type == OrderType.WAREHOUSE_TO_DISTRIBUTOR)
        .group_by(Order.distributor_id)
        .subquery()
    )
    client_stats = (
        db.session.query(
            Client.distributor_id.label("distributor_id"),
            func.count(Client.id).label("client_count"),
        )
        .filter(Client.is_active.is_(True))
        .group_by(Client.distributor_id)
        .subquery()
    )

    query = (
        db.session.query(
            Distributor,
            func.coalesce(order_stats.c.total_orders, 0),
            func.coalesce(order_stats.c.total_revenue_cents, 0),
            func.coalesce(client_stats.c.client_count, 0),
        )
        .outerjoin(order_stats, order_stats.c.distributor_id == Distributor.id)
        .outerjoin(client_stats, client_stats.c.distributor_id == Distributor.id)
    )
    if not include_inactive:
        query = query.filter(Distributor.is_active.is_(True))

    results = []
    for distributor, total_orders, revenue, client_count in query.order_by(Distributor.business_name.asc()).all():
        data = distributor.to_dict()
        data["total_orders"] = int(total_orders)
        data["total_revenue_cents"] = int(revenue)
        data["client_count"] = int(client_count)
        results.append(data)
    return results


def set_distributor_active(distributor_id: int, is_active: bool) -> Distributor:
    """
    Activate or deactivate a distributor and its login.
    Deactivation revokes the distributor's open sessions.
    """
    def _op():
        distributor = get_distributor(distributor_id)
        distributor.is_active = is_active
        user = db.session.get(User, distributor.user_id)
        if user:
            user.is_active = is_active
            if not is_active:
                revoke_all_user_sessions(user.id)
        return distributor

    return run_in_transaction(_op)


def list_clients(*, distributor_id: int, include_inactive: bool = False) -> list[dict]:
    query = db.session.query(Client).filter(Client.distributor_id == distributor_id)
    if not include_inactive:
        query = query.filter(Client.is_active.is_(True))

    results = []
    for client in query.order_by(Client.business_name.asc()).all():
        data = client.to_dict()
        stats = (
            db.session.query(
                func.count(Order.id),
                func.coalesce(
                    func.sum(
                        case((Order.payment_status == PaymentStatus.PAID, Order.total_amount_cents), else_=0)
                    ),
                    0,
                ),
            )
            .filter(Order.client_id == client.id)
            .one()
        )
        data["total_orders"] = int(stats[0])
        data["total_spent_cents"] = int(stats[1])
        results.append(data)
    return results


def set_client_active(*, distributor_user_id: int, client_id: int, is_active: bool) -> Client:
    def _op():
        distributor = require_distributor_for_user(distributor_user_id)
        client = db.session.get(Client, client_id)
        if not client:
            raise NotFoundError(f"Client {client_id} not found")
        if client.distributor_id != distributor.id:
            raise AuthorizationError("Client does not belong to this distributor")
        client.is_active = is_active
        user = db.session.get(User, client.user_id)
        if user:
            user.is_active = is_active
            if not is_active:
                revoke_all_user_sessions(user.id)
        return client

    return run_in_transaction(_op)
