"""
Receipt cancellation workflow.

Sale status is a pure function of its lines:

    no line cancelled   -> completed
    some lines          -> partially_cancelled
    every line          -> cancelled

Line cancellation is monotonic, so once any line is cancelled a sale can only
move forward: completed -> partially_cancelled -> cancelled.

The branch check runs synchronously in the request (authorize_cancellation);
the line updates run deferred (apply_promo_codes_cancelled).
"""
from __future__ import annotations

from typing import Iterable

from flask import current_app

from ..exceptions import AuthorizationError, NotFoundError
from ..extensions import db
from ..models import PromoCodeGenerationHistory, Sale, SaleItem
from ..models.sales import (
    PROMO_CANCELLED,
    SALE_CANCELLED,
    SALE_COMPLETED,
    SALE_PARTIALLY_CANCELLED,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update
from .event_schemas import PROMO_CODE_CANCELLED


def compute_sale_status(items: Iterable[SaleItem]) -> str:
    items = list(items)
    cancelled = sum(1 for item in items if item.is_cancelled)
    if cancelled == 0:
        return SALE_COMPLETED
    if cancelled == len(items):
        return SALE_CANCELLED
    return SALE_PARTIALLY_CANCELLED


def authorize_cancellation(receipt_id: str, branch_id: str) -> Sale:
    """
    Resolve the sale and check the caller's branch before acknowledging.

    Raises:
        NotFoundError: no sale with this receipt id
        AuthorizationError: the sale belongs to another branch
    """
    sale = db.session.query(Sale).filter_by(receipt_id=receipt_id).first()
    if sale is None:
        raise NotFoundError("Sale not found")
    if sale.branch is None or sale.branch.ext_id != branch_id:
        current_app.logger.warning(
            "Cancellation for receipt %s rejected: branch %r does not own the sale", receipt_id, branch_id
        )
        raise AuthorizationError("Branch does not match the sale")
    return sale


def cancel_sale_items(sale: Sale, product_ids: Iterable[str]) -> list[SaleItem]:
    """
    Cancel the first still-active line for each requested product id.

    A product named twice cancels two lines (when the sale has two).
    Unknown or already-cancelled products are no-ops.
    """
    now = utcnow()
    cancelled: list[SaleItem] = []
    for product_id in product_ids:
        item = (
            lock_for_update(
                db.session.query(SaleItem).filter_by(
                    sale_id=sale.id, product_id=product_id, is_cancelled=False
                )
            )
            .order_by(SaleItem.id.asc())
            .first()
        )
        if item is None:
            continue
        item.is_cancelled = True
        item.cancelled_at = now
        (
            db.session.query(PromoCodeGenerationHistory)
            .filter_by(sale_item_id=item.id)
            .update({"status": PROMO_CANCELLED}, synchronize_session=False)
        )
        # Flush so the next lookup for the same product skips this line
        db.session.flush()
        cancelled.append(item)
    return cancelled


def apply_promo_codes_cancelled(payload: dict, *, process_id: str, sequence_id: int | None = None) -> dict:
    data = PROMO_CODE_CANCELLED.normalize(payload)

    sale = lock_for_update(db.session.query(Sale).filter_by(receipt_id=data["receipt_id"])).first()
    if sale is None:
        raise NotFoundError(f"Sale {data['receipt_id']} disappeared before cancellation")

    cancelled = cancel_sale_items(sale, [i["product_id"] for i in data["cancelled_items"]])

    items = db.session.query(SaleItem).filter_by(sale_id=sale.id).all()
    new_status = compute_sale_status(items)
    sale.status = new_status
    # Always touch the sale so its version_id serializes overlapping cancellations
    sale.updated_at = utcnow()

    db.session.commit()

    summary = {
        "receipt_id": data["receipt_id"],
        "cancelled": len(cancelled),
        "status": new_status,
        "sequence_id": sequence_id,
    }
    current_app.logger.info("Cancellation event %s applied: %s", process_id, summary)
    return summary
