# Overview: Service-layer helpers for transactions and row locking.

from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError
from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Execute a unit of work and commit it as one database transaction.

    Any exception rolls the whole unit back. Storage-level conflicts
    (deadlocks, lock timeouts, stale rows) surface as a retryable
    ConcurrencyConflictError; the caller decides whether to try again.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        logger.warning("Transaction aborted by storage conflict: %s", exc.__class__.__name__)
        raise ConcurrencyConflictError() from exc
    except Exception:
        db.session.rollback()
        raise
