# Overview: Service-layer operations for concurrency; row locking and bounded retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError
from ..extensions import db


_LOCK_ERROR_MARKERS = (
    "database is locked",
    "deadlock",
    "lock wait timeout",
    "could not serialize",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes rows already in the identity map so the
    check-then-write always sees the committed values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id optimistic
    lock catches the race at flush time instead.
    """
    return query.with_for_update().populate_existing()


def get_for_update(model, entity_id: int):
    """Load one row by primary key under lock_for_update (None when missing)."""
    return lock_for_update(db.session.query(model).filter_by(id=entity_id)).first()


def _is_lock_error(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation as one unit, retrying on concurrency conflicts.

    - StaleDataError (optimistic version mismatch) and lock-timeout
      OperationalErrors roll back and re-run func from scratch.
    - Any other exception rolls back and propagates unchanged.
    - When attempts run out, ConcurrencyConflictError is raised.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if isinstance(exc, OperationalError) and not _is_lock_error(exc):
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                break
            current_app.logger.warning(
                "Concurrent update conflict (attempt %d/%d): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

    raise ConcurrencyConflictError(
        "Operation conflicted with concurrent updates; please retry",
        details={"attempts": attempts, "reason": str(last_exc)},
    ) from last_exc
