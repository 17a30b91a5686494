"""
Durable writes for product catalog events.

Products are keyed on their external catalog id (Product.ext_id). Both
handlers are safe to re-deliver:

- created: inserts only ext ids not already stored; known ones are skipped.
- updated: upsert; inserts unknown ext ids, overwrites known ones in place.

Each call is one transaction; the caller (event_pipeline) owns retry and
failure handling.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..models.catalog import PRODUCT_NEW
from .event_schemas import CATALOG_CREATED, CATALOG_UPDATED

PRODUCT_MUTABLE_FIELDS = ("name", "barcode", "description", "price", "discount_price", "unit", "category")


def _dedupe(products: list[dict], *, keep: str) -> list[dict]:
    """Collapse repeated ext ids within one batch ('first' or 'last' wins)."""
    by_ext_id: dict[str, dict] = {}
    for row in products:
        if keep == "first" and row["ext_id"] in by_ext_id:
            continue
        by_ext_id[row["ext_id"]] = row
    return list(by_ext_id.values())


def _existing_products(ext_ids: list[str]) -> dict[str, Product]:
    if not ext_ids:
        return {}
    rows = db.session.query(Product).filter(Product.ext_id.in_(ext_ids)).all()
    return {p.ext_id: p for p in rows}


def apply_product_patch(product: Product, row: dict) -> None:
    for field in PRODUCT_MUTABLE_FIELDS:
        setattr(product, field, row.get(field))


def is_stale(stored: int | None, incoming: int | None) -> bool:
    """An event is stale when it carries an older sequence id than the one applied."""
    if stored is None or incoming is None:
        return False
    return incoming < stored


def apply_catalog_created(payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    data = CATALOG_CREATED.normalize(payload)
    rows = _dedupe(data["products"], keep="first")
    existing = _existing_products([r["ext_id"] for r in rows])

    created = 0
    for row in rows:
        if row["ext_id"] in existing:
            continue
        product = Product(ext_id=row["ext_id"], is_active=True, status=PRODUCT_NEW, sequence_id=sequence_id)
        apply_product_patch(product, row)
        db.session.add(product)
        created += 1

    db.session.commit()

    summary = {"created": created, "skipped": len(rows) - created}
    current_app.logger.info("Catalog created event %s applied: %s", process_id, summary)
    return summary


def apply_catalog_updated(payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    data = CATALOG_UPDATED.normalize(payload)
    rows = _dedupe(data["products"], keep="last")
    existing = _existing_products([r["ext_id"] for r in rows])

    created = updated = stale = 0
    for row in rows:
        product = existing.get(row["ext_id"])
        if product is None:
            product = Product(ext_id=row["ext_id"], is_active=True)
            db.session.add(product)
            created += 1
        elif is_stale(product.sequence_id, sequence_id):
            current_app.logger.warning(
                "Skipping stale update for product %s (sequence %s < %s, process %s)",
                row["ext_id"], sequence_id, product.sequence_id, process_id,
            )
            stale += 1
            continue
        else:
            updated += 1

        apply_product_patch(product, row)
        product.status = PRODUCT_NEW
        if sequence_id is not None:
            product.sequence_id = sequence_id

    db.session.commit()

    summary = {"created": created, "updated": updated, "stale": stale}
    current_app.logger.info("Catalog updated event %s applied: %s", process_id, summary)
    return summary
