# Overview: Row locking and retry helpers shared by every transactional write.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the sale or sale line being cancelled.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the version_id columns on
    Sale/SaleItem still catch concurrent writers there.
    """
    return query.with_for_update()


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple[type[Exception], ...] = (),
):
    """
    Run one deferred write, retrying lock timeouts (OperationalError) and
    version_id conflicts (StaleDataError) with exponential backoff.
    retry_on adds handler-specific conflicts (e.g. IntegrityError for writes
    that re-read before inserting).

    func must be safe to re-run from scratch: the session is rolled back
    before every retry.
    """
    if attempts is None:
        attempts = int(current_app.config.get("EVENT_WRITE_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(current_app.config.get("EVENT_RETRY_BACKOFF", 0.1))
    attempts = max(1, attempts)
    retryable = RETRYABLE_ERRORS + tuple(retry_on)

    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying write after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
