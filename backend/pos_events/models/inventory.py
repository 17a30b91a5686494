from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow

MOVEMENT_ADDED = "added"
MOVEMENT_REMOVED = "removed"


class InventoryHistory(db.Model):
    """
    Append-only stock movement ledger fed by inventory events.

    Rows are never updated by the ingestion pipeline; status is for the
    downstream processor (new -> processed | failed).
    """
    __tablename__ = "inventory_history"
    __table_args__ = (
        db.Index("ix_inventory_history_product_branch", "product_id", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    previous_quantity = db.Column(db.Numeric(12, 3), nullable=False)
    new_quantity = db.Column(db.Numeric(12, 3), nullable=False)
    # Caller-reported resulting stock (added events only)
    total_quantity = db.Column(db.Numeric(12, 3), nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="new", index=True)
    sequence_id = db.Column(db.BigInteger, nullable=True, index=True)
    process_id = db.Column(db.String(36), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("inventory_history", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("inventory_history", lazy=True))
