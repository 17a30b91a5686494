from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow

SALE_COMPLETED = "completed"
SALE_PARTIALLY_CANCELLED = "partially_cancelled"
SALE_CANCELLED = "cancelled"

PROMO_GENERATED = "generated"
PROMO_CANCELLED = "cancelled"


class Sale(db.Model):
    """
    One completed POS transaction, identified externally by its receipt id.

    status is derived from the line items (see services.cancellation_service);
    it is only written directly at creation time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    cashier_id = db.Column(db.String(255), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(32), nullable=False, default=SALE_COMPLETED, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )
    promo_codes = db.relationship(
        "PromoCodeGenerationHistory",
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}


class SaleItem(db.Model):
    """One independently cancellable line of a sale."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_sale_product", "sale_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    # External product id as sent by the terminal; not a foreign key
    product_id = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)

    # Monotonic: never flips back to False
    is_cancelled = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    sale = db.relationship("Sale", back_populates="items")
    promo_codes = db.relationship("PromoCodeGenerationHistory", back_populates="sale_item", lazy=True)

    __mapper_args__ = {"version_id_col": version_id}


class PromoCodeGenerationHistory(db.Model):
    """
    One generated promo code per sale line.

    status mirrors the line: generated while the line stands, cancelled once
    the line is cancelled.
    """
    __tablename__ = "promo_code_generation_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    sale_item_id = db.Column(
        db.Integer, db.ForeignKey("sale_items.id", ondelete="CASCADE"), nullable=True, index=True
    )
    # Not unique: duplicate codes across sales are an accepted outcome
    promo_code = db.Column(db.String(32), nullable=True)
    amount_spent = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_received = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=PROMO_GENERATED, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    sale = db.relationship("Sale", back_populates="promo_codes")
    sale_item = db.relationship("SaleItem", back_populates="promo_codes")
