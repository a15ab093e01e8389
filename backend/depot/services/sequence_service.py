# Overview: Service-layer operations for order numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence
from ..time_utils import utcnow


WAREHOUSE_ORDER_PREFIX = "ORD"
CLIENT_ORDER_PREFIX = "CLT"


def format_order_number(prefix: str, year: int, number: int, pad: int = 4) -> str:
    return f"{prefix}-{year}-{number:0{pad}d}"


def _increment(prefix: str, year: int) -> int | None:
    stmt = (
        update(OrderSequence)
        .where(
            OrderSequence.prefix == prefix,
            OrderSequence.year == year,
        )
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(prefix=prefix, year=year)
        .scalar()
    )
    return current - 1


def next_order_number(prefix: str, *, year: int | None = None) -> str:
    """
    Atomically allocate the next order number for a prefix within a year.

    Must run inside the caller's transaction: the number is only consumed
    if that transaction commits. The first number of a year inserts the
    counter row under a savepoint so a concurrent first insert falls back to
    the increment path instead of aborting the outer transaction.
    """
    if year is None:
        year = utcnow().year

    number = _increment(prefix, year)
    if number is None:
        try:
            with db.session.begin_nested():
                db.session.add(OrderSequence(prefix=prefix, year=year, next_number=2))
            number = 1
        except IntegrityError:
            number = _increment(prefix, year)
            if number is None:
                raise

    return format_order_number(prefix, year, number)
