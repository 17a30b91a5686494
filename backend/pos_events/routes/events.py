# Overview: Flask API routes for POS event ingestion; validates, acknowledges, defers the write.

# backend/pos_events/routes/events.py
"""
Event ingestion routes.

Every route validates synchronously and answers 200 with a process id as
soon as the durable write is scheduled. The response says nothing about the
outcome of that write: failures are only visible in the app log and the
event_failures table (see services.event_pipeline).

SECURITY: All routes require a valid X-Signature.
Cancellation additionally checks the caller's branch against the sale
before acknowledging.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_signature
from ..exceptions import PosError, ValidationError
from ..responses import api_response, error_response, timestamp_meta
from ..services.cancellation_service import authorize_cancellation
from ..services.event_pipeline import accept_event
from ..services.event_schemas import (
    CATALOG_CREATED,
    CATALOG_UPDATED,
    INVENTORY_ADDED,
    INVENTORY_REMOVED,
    PROMO_CODE_CANCELLED,
)
from ..validation import parse_sequence_id

events_bp = Blueprint("events", __name__, url_prefix="/api/v1/pos/events")


def _read_event(schema):
    """Return (payload, sequence_id) or raise one ValidationError covering header and body."""
    payload = request.get_json(silent=True)
    errors = {}
    sequence_id = None
    try:
        sequence_id = parse_sequence_id(request.headers.get("X-Sequence-Id"))
    except ValidationError as e:
        errors.update(e.errors)
    errors.update(schema.validate(payload))
    if errors:
        raise ValidationError(errors)
    return payload, sequence_id


def _acknowledge(schema, payload: dict, sequence_id: int | None, message: str):
    try:
        process_id = accept_event(schema.event_type, payload, sequence_id=sequence_id)
    except Exception:
        current_app.logger.exception("Failed to schedule %s event", schema.event_type)
        return api_response(False, 500, "Failed to accept event")

    return api_response(
        True,
        200,
        message,
        {schema.count_key: schema.count(payload), "process_id": process_id},
        timestamp_meta(),
    )


def _ingest(schema, message: str):
    try:
        payload, sequence_id = _read_event(schema)
    except ValidationError as e:
        return error_response(e)
    return _acknowledge(schema, payload, sequence_id, message)


@events_bp.post("/product-catalog/created")
@require_signature
def product_catalog_created():
    """New products; already known external ids are ignored on write."""
    return _ingest(CATALOG_CREATED, "Product catalog created event accepted")


@events_bp.post("/product-catalog/updated")
@require_signature
def product_catalog_updated():
    """Upsert products keyed on external id."""
    return _ingest(CATALOG_UPDATED, "Product catalog updated event accepted")


@events_bp.post("/inventory/items/added")
@require_signature
def inventory_items_added():
    return _ingest(INVENTORY_ADDED, "Inventory items added event accepted")


@events_bp.post("/inventory/items/removed")
@require_signature
def inventory_items_removed():
    return _ingest(INVENTORY_REMOVED, "Inventory items removed event accepted")


@events_bp.post("/promo-codes/cancelled")
@require_signature
def promo_codes_cancelled():
    """
    Cancel sale lines by product id.

    The sale lookup and branch check must block the caller: a request from
    the wrong branch gets 403 and nothing is scheduled.
    """
    try:
        payload, sequence_id = _read_event(PROMO_CODE_CANCELLED)
        authorize_cancellation(payload["receipt_id"].strip(), payload["branch_id"].strip())
    except PosError as e:
        return error_response(e)

    return _acknowledge(PROMO_CODE_CANCELLED, payload, sequence_id, "Promo code cancellation event accepted")
