from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow

# Lifecycle for downstream processing: new -> processed | failed
PRODUCT_NEW = "new"


class Branch(db.Model):
    """
    A physical store location, addressed by POS terminals through ext_id.

    Created via catalog sync or the `flask branches create` command; rarely mutated.
    """
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ext_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Branch id={self.id} ext_id={self.ext_id!r}>"


class Product(db.Model):
    """
    Catalog product keyed on the external catalog id.

    ext_id is the only identity key. Barcode is a display attribute and is
    deliberately not unique: several catalog entries may share one.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ext_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    discount_price = db.Column(db.Numeric(10, 2), nullable=True)
    unit = db.Column(db.String(50), nullable=False, default="pcs")
    category = db.Column(db.String(100), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    status = db.Column(db.String(16), nullable=False, default=PRODUCT_NEW, index=True)
    sequence_id = db.Column(db.BigInteger, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} ext_id={self.ext_id!r}>"
