"""
Accept-now / write-later ingestion pipeline.

Routes validate synchronously and call accept_event(), which assigns a
process id, hands the durable write to the deferred dispatcher and returns
immediately. The caller is acknowledged whether or not the write later
succeeds.

A deferred write is one transaction, retried on lock/version conflicts. When
it still fails the transaction is rolled back, the failure is logged with the
process id and payload, and an EventFailure row is stored. That row is the
only audit trail: the caller is never told. `flask events replay` re-runs it.
"""
from __future__ import annotations

import uuid
from typing import Callable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db, dispatcher
from ..models import EventFailure
from ..models.events import FAILURE_OPEN, FAILURE_REPLAYED
from ..time_utils import utcnow
from .cancellation_service import apply_promo_codes_cancelled
from .catalog_service import apply_catalog_created, apply_catalog_updated
from .concurrency import run_with_retry
from .inventory_service import apply_inventory_added, apply_inventory_removed

EVENT_HANDLERS: dict[str, Callable[..., dict]] = {
    "product_catalog.created": apply_catalog_created,
    "product_catalog.updated": apply_catalog_updated,
    "inventory.added": apply_inventory_added,
    "inventory.removed": apply_inventory_removed,
    "promo_codes.cancelled": apply_promo_codes_cancelled,
}

# Concurrent deliveries can insert the same products.ext_id between our
# existence lookup and our INSERT; a re-run sees the row and skips or updates it.
CONFLICT_RETRY = {
    "product_catalog.created": (IntegrityError,),
    "product_catalog.updated": (IntegrityError,),
}


class ReplayError(Exception):
    """Raised when a dead-lettered event cannot be replayed."""


def new_process_id() -> str:
    return str(uuid.uuid4())


def accept_event(event_type: str, payload: dict, *, sequence_id: int | None = None) -> str:
    """Schedule the durable write for an already validated event; returns its process id."""
    if event_type not in EVENT_HANDLERS:
        raise ValueError(f"Unknown event type: {event_type}")

    process_id = new_process_id()
    current_app.logger.info(
        "Accepted %s event %s (sequence %s)", event_type, process_id, sequence_id
    )
    dispatcher.submit(
        run_deferred_write, event_type, payload, process_id=process_id, sequence_id=sequence_id
    )
    return process_id


def apply_event(event_type: str, payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    """Run the handler for event_type in one transaction with retry; raises on failure."""
    handler = EVENT_HANDLERS[event_type]
    return run_with_retry(
        lambda: handler(payload, process_id=process_id, sequence_id=sequence_id),
        retry_on=CONFLICT_RETRY.get(event_type, ()),
    )


def run_deferred_write(event_type: str, payload: dict, *, process_id: str, sequence_id: int | None = None) -> None:
    try:
        apply_event(event_type, payload, process_id=process_id, sequence_id=sequence_id)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Deferred %s write failed (process %s); payload=%r", event_type, process_id, payload
        )
        record_failure(event_type, payload, process_id=process_id, sequence_id=sequence_id, error=exc)


def record_failure(
    event_type: str,
    payload: dict,
    *,
    process_id: str,
    sequence_id: int | None,
    error: Exception,
) -> None:
    """Persist a dead-letter row in its own transaction. Never raises."""
    try:
        db.session.add(
            EventFailure(
                process_id=process_id,
                event_type=event_type,
                payload=payload,
                sequence_id=sequence_id,
                error=f"{type(error).__name__}: {error}",
                status=FAILURE_OPEN,
                attempts=1,
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Could not dead-letter %s event %s; payload=%r", event_type, process_id, payload
        )


def list_failures(*, include_replayed: bool = False, limit: int = 50) -> list[EventFailure]:
    query = db.session.query(EventFailure)
    if not include_replayed:
        query = query.filter_by(status=FAILURE_OPEN)
    return query.order_by(EventFailure.created_at.asc(), EventFailure.id.asc()).limit(limit).all()


def replay_failure(process_id: str) -> dict:
    """
    Re-apply a dead-lettered event synchronously.

    Success marks it replayed; failure bumps attempts and re-raises as ReplayError.
    """
    failure = db.session.query(EventFailure).filter_by(process_id=process_id).first()
    if failure is None:
        raise ReplayError(f"No failed event with process id {process_id}")
    if failure.status == FAILURE_REPLAYED:
        raise ReplayError(f"Event {process_id} was already replayed")

    event_type, payload, sequence_id = failure.event_type, failure.payload, failure.sequence_id
    try:
        summary = apply_event(event_type, payload, process_id=process_id, sequence_id=sequence_id)
    except Exception as exc:
        db.session.rollback()
        failure = db.session.query(EventFailure).filter_by(process_id=process_id).one()
        failure.attempts += 1
        failure.error = f"{type(exc).__name__}: {exc}"
        db.session.commit()
        current_app.logger.exception("Replay of %s event %s failed", event_type, process_id)
        raise ReplayError(str(exc)) from exc

    failure = db.session.query(EventFailure).filter_by(process_id=process_id).one()
    failure.status = FAILURE_REPLAYED
    failure.replayed_at = utcnow()
    db.session.commit()
    current_app.logger.info("Replayed %s event %s: %s", event_type, process_id, summary)
    return summary
