# Overview: Service-layer operations for concurrency; transaction scoping and retry.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import TransactionAborted
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing makes the re-read overwrite any stale copy already in
    the session identity map.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the write lock comes from BEGIN IMMEDIATE in unit_of_work().
    """
    return query.with_for_update().populate_existing()


def _begin_write_transaction() -> None:
    if db.engine.dialect.name != "sqlite":
        return
    # pysqlite opens its own transaction lazily before the first write
    raw = db.session.connection().connection.dbapi_connection
    if not getattr(raw, "in_transaction", False):
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work(operation: str):
    """
    One atomic, all-or-nothing group of writes.

    Commits when the block finishes. Any exception rolls everything back:
    database errors (lock timeouts, deadlocks, optimistic-lock conflicts,
    constraint violations) are re-raised as TransactionAborted, which is safe
    to retry as a whole; everything else propagates unchanged.

    Never retries. Retry policy belongs to the caller (see run_with_retry).
    """
    try:
        _begin_write_transaction()
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("%s aborted, rolled back: %s", operation, exc)
        raise TransactionAborted(
            f"{operation} aborted by the storage layer; no changes were applied",
            details={"operation": operation, "reason": exc.__class__.__name__},
        ) from exc
    except BaseException:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole engine operation with retry on TransactionAborted.

    Safe because an aborted operation left nothing behind. Used by the API
    and CLI boundaries; engine functions never call it themselves.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except TransactionAborted:
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def run_with_configured_retry(func):
    """run_with_retry using TRANSACTION_RETRY_ATTEMPTS / TRANSACTION_RETRY_BACKOFF."""
    return run_with_retry(
        func,
        attempts=int(current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)),
        backoff_base=float(current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1)),
    )
