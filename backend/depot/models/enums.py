"""Enum definitions for depot models."""

import enum

from ..extensions import db


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class Role(str, enum.Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    DISTRIBUTOR = "DISTRIBUTOR"
    CLIENT = "CLIENT"


class OrderType(str, enum.Enum):
    WAREHOUSE_TO_DISTRIBUTOR = "WAREHOUSE_TO_DISTRIBUTOR"
    DISTRIBUTOR_TO_CLIENT = "DISTRIBUTOR_TO_CLIENT"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class TransactionType(str, enum.Enum):
    RESTOCK = "RESTOCK"
    ORDER_FULFILLED = "ORDER_FULFILLED"
    ORDER_RECEIVED = "ORDER_RECEIVED"
    ADJUSTMENT = "ADJUSTMENT"


OPEN_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)
TERMINAL_ORDER_STATUSES = (OrderStatus.FULFILLED, OrderStatus.CANCELLED)


def enum_column(enum_cls, **kwargs):
    """Portable VARCHAR-backed enum column type."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=enum_values,
        validate_strings=True,
        **kwargs,
    )
