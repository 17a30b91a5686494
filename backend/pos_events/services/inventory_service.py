"""
Durable writes for inventory movement events.

Each resolved line appends one InventoryHistory row. Lines whose product or
branch ext id is unknown are skipped (best effort; the rest of the batch is
still written). Resulting quantities:

- added:   new_quantity = caller-supplied total_quantity, stored verbatim
- removed: new_quantity = max(0, previous_quantity - quantity)
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Branch, InventoryHistory, Product
from ..models.inventory import MOVEMENT_ADDED, MOVEMENT_REMOVED
from .catalog_service import is_stale
from .event_schemas import INVENTORY_ADDED, INVENTORY_REMOVED

DEFAULT_REASONS = {
    MOVEMENT_ADDED: "Stock replenishment",
    MOVEMENT_REMOVED: "Stock depletion",
}


def compute_new_quantity(movement: str, item: dict) -> Decimal:
    if movement == MOVEMENT_ADDED:
        # Stored as reported by the terminal, never recomputed
        return item["total_quantity"]
    if movement == MOVEMENT_REMOVED:
        return max(Decimal("0"), item["previous_quantity"] - item["quantity"])
    raise ValueError(f"Unsupported movement type: {movement}")


def _lookup(model, ext_ids: set[str]) -> dict[str, int]:
    if not ext_ids:
        return {}
    rows = db.session.query(model.ext_id, model.id).filter(model.ext_id.in_(ext_ids)).all()
    return {ext_id: pk for ext_id, pk in rows}


def last_sequence_id(product_id: int, branch_id: int) -> int | None:
    return (
        db.session.query(func.max(InventoryHistory.sequence_id))
        .filter_by(product_id=product_id, branch_id=branch_id)
        .scalar()
    )


def _apply_movement(movement: str, data: dict, *, process_id: str, sequence_id: int | None) -> dict:
    items = data["items"]
    products = _lookup(Product, {i["product_id"] for i in items})
    branches = _lookup(Branch, {i["branch_id"] for i in items})

    recorded = skipped = stale = 0
    for index, item in enumerate(items):
        product_pk = products.get(item["product_id"])
        branch_pk = branches.get(item["branch_id"])
        if product_pk is None or branch_pk is None:
            current_app.logger.warning(
                "Skipping inventory line %d of %s: unknown product %r or branch %r",
                index, process_id, item["product_id"], item["branch_id"],
            )
            skipped += 1
            continue

        if is_stale(last_sequence_id(product_pk, branch_pk), sequence_id):
            current_app.logger.warning(
                "Skipping stale inventory line %d of %s for product %r at branch %r (sequence %s)",
                index, process_id, item["product_id"], item["branch_id"], sequence_id,
            )
            stale += 1
            continue

        db.session.add(
            InventoryHistory(
                product_id=product_pk,
                branch_id=branch_pk,
                type=movement,
                quantity=item["quantity"],
                previous_quantity=item["previous_quantity"],
                new_quantity=compute_new_quantity(movement, item),
                total_quantity=item["total_quantity"],
                reason=item["reason"] or DEFAULT_REASONS[movement],
                notes=item["notes"],
                user_id=data.get("user_id"),
                status="new",
                sequence_id=sequence_id,
                process_id=process_id,
            )
        )
        # Flush so the next line of the same batch sees this row's sequence id
        db.session.flush()
        recorded += 1

    db.session.commit()

    summary = {"recorded": recorded, "skipped": skipped, "stale": stale}
    current_app.logger.info("Inventory %s event %s applied: %s", movement, process_id, summary)
    return summary


def apply_inventory_added(payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    return _apply_movement(
        MOVEMENT_ADDED, INVENTORY_ADDED.normalize(payload), process_id=process_id, sequence_id=sequence_id
    )


def apply_inventory_removed(payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    return _apply_movement(
        MOVEMENT_REMOVED, INVENTORY_REMOVED.normalize(payload), process_id=process_id, sequence_id=sequence_id
    )
