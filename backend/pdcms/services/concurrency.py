# Overview: Service-layer helpers for concurrency; row locks, atomic units of work, optimistic version checks.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ConcurrentModificationError


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes the locked read overwrite any stale copy
    already held in the session identity map.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update().populate_existing()


def check_version(entity: str, entity_id, expected_version: int | None, actual_version: int) -> None:
    """
    Compare the version the caller last read with the stored one.

    expected_version=None means the caller did not pin a version; the
    mapper-level version check at flush time still applies.
    """
    if expected_version is None:
        return
    if int(expected_version) != int(actual_version):
        raise ConcurrentModificationError(entity, entity_id, int(expected_version), int(actual_version))


def atomic(func, *, entity: str = "Record", entity_id=None):
    """
    Run func as one unit of work and commit it.

    Any exception rolls the whole unit back. A zero-row versioned UPDATE
    (StaleDataError) surfaces as ConcurrentModificationError; it is never
    retried here because the caller may need to re-validate business state.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except StaleDataError as exc:
        db.session.rollback()
        logger.info("Optimistic lock conflict on %s %s: %s", entity, entity_id, exc)
        raise ConcurrentModificationError(entity, entity_id) from exc
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Caller-side retry for jobs that may safely re-run a whole unit of work.

    Retries on OperationalError (deadlocks, locks) and ConcurrentModificationError.
    func must re-read and re-validate state on each attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, ConcurrentModificationError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
