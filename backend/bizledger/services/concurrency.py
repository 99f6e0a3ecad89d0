# Overview: Transaction helpers for ledger writes; row locks plus retry on optimistic-concurrency conflicts.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, RemoteError


def lock_for_update(query):
    """
    Apply row-level locking for ledger parent reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the parent's
    version_id column is what turns a lost update into a StaleDataError.
    """
    return query.with_for_update()


def _configured_attempts(default: int = 3) -> int:
    if has_app_context():
        return int(current_app.config.get("LEDGER_RETRY_ATTEMPTS", default))
    return default


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (version_id mismatch). The session is rolled back before every retry,
    so func() always starts from freshly loaded rows.
    """
    if attempts is None:
        attempts = _configured_attempts()
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            if has_app_context():
                current_app.logger.warning(
                    "Concurrent write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
                )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


def run_in_transaction(func):
    """
    Run func() with retry and translate storage failures into domain errors.

    - IntegrityError (unique number, duplicate sku) -> ConflictError
    - a version conflict that survives every retry -> ConflictError
    - any other SQLAlchemyError -> RemoteError carrying the driver message
    """
    try:
        return run_with_retry(func)
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Conflicting record: {exc.orig}") from exc
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("Record was modified concurrently, please retry") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        if has_app_context():
            current_app.logger.exception("Storage call failed")
        raise RemoteError(str(exc)) from exc
