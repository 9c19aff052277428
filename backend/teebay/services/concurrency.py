# Overview: Store-transaction helpers shared by the catalog and the transaction engine.

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the versioned UPDATE (Product.version_id) is what detects the race.
    """
    return query.with_for_update()


def run_atomically(
    session: Session,
    func: Callable[[], T],
    *,
    stale_message: str | Callable[[], str],
) -> T:
    """
    Run read-decide-write as one store transaction and commit it.

    Any exception rolls the whole unit back, so a product is never left
    marked sold without its ledger row. A StaleDataError means another
    transaction changed the same product row first; it is reported as a
    ConflictError carrying stale_message. When stale_message is callable it is
    evaluated after the rollback, so it can inspect what the winner committed.
    Nothing is retried here: the caller issues a fresh command if it wants
    another attempt.
    """
    try:
        result = func()
        session.commit()
        return result
    except StaleDataError:
        session.rollback()
        message = stale_message() if callable(stale_message) else stale_message
        logger.info("Concurrent modification detected: %s", message)
        raise ConflictError(message)
    except Exception:
        session.rollback()
        raise
