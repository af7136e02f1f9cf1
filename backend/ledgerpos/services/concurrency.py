# Overview: Unit-of-work and retry helpers; every sale/return/receipt runs through run_in_unit_of_work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageUnavailableError, UnitOfWorkTimeoutError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the unit of work holds the write lock from BEGIN IMMEDIATE instead.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take the SQLite write lock up front so concurrent writers serialize
    instead of failing on lock upgrade mid-transaction. No-op on other
    dialects and when the connection is already inside a transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if getattr(raw, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_unit_of_work(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    timeout_seconds: float | None = None,
    label: str = "unit of work",
):
    """
    Run func() inside one database transaction and commit it.

    - Any exception rolls back every write func made; nothing partial survives.
    - OperationalError / StaleDataError are retried with exponential backoff.
      When attempts run out the caller gets StorageUnavailableError.
    - If the deadline passes before commit the transaction is rolled back and
      the caller gets UnitOfWorkTimeoutError. Both are RetryableError.
    - Domain errors (LedgerPosError) are never retried here.

    func must be safe to call again from scratch: it should re-read whatever it
    needs, because a retry starts from a rolled-back session.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("UNIT_OF_WORK_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("UNIT_OF_WORK_BACKOFF_SECONDS", 0.1)
    if timeout_seconds is None:
        timeout_seconds = config.get("UNIT_OF_WORK_TIMEOUT_SECONDS", 10)
    attempts = max(1, int(attempts))

    logger = current_app.logger
    deadline = time.monotonic() + timeout_seconds

    for attempt in range(attempts):
        try:
            begin_immediate()
            result = func()
            if time.monotonic() > deadline:
                raise UnitOfWorkTimeoutError(
                    f"{label} exceeded {timeout_seconds}s and was rolled back",
                    details={"timeout_seconds": timeout_seconds, "attempt": attempt + 1},
                )
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            delay = backoff_base * (2 ** attempt)
            if attempt >= attempts - 1:
                logger.warning("%s failed after %d attempts: %s", label, attempts, exc)
                raise StorageUnavailableError(
                    f"{label} could not complete; storage busy or unavailable",
                    details={"attempts": attempts, "cause": type(exc).__name__},
                ) from exc
            if time.monotonic() + delay > deadline:
                logger.warning("%s timed out during retry: %s", label, exc)
                raise UnitOfWorkTimeoutError(
                    f"{label} exceeded {timeout_seconds}s and was rolled back",
                    details={"timeout_seconds": timeout_seconds, "attempt": attempt + 1},
                ) from exc
            logger.warning(
                "%s attempt %d/%d hit %s; retrying in %.2fs",
                label, attempt + 1, attempts, type(exc).__name__, delay,
            )
            time.sleep(delay)
        except Exception:
            db.session.rollback()
            raise
