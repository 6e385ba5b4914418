# Overview: Transaction helpers shared by every mutating service: row locks, SQLite write locks and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import BusyError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() provides the
    equivalent serialization there. populate_existing() refreshes rows that
    were already loaded into the session before the lock was taken.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Open a write transaction up front on SQLite (BEGIN IMMEDIATE).

    Taking the database write lock before the first read makes
    lock-then-validate-then-mutate hold on SQLite too. No-op on other
    dialects and when the connection already has a transaction open.
    """
    if db.engine.dialect.name != "sqlite":
        return
    connection = db.session.connection()
    if connection.connection.driver_connection.in_transaction:
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). After the last attempt the failure is
    raised as BusyError. Any other exception rolls the session back and
    propagates unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %d attempts: %s", attempts, exc.__class__.__name__
                )
                raise BusyError(
                    "Storage is busy, please retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
