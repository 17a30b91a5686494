"""
Per-event-type payload schemas.

Each schema walks the raw JSON body, collects field-level errors and, once the
payload is known to be valid, normalizes it into typed values (Decimal
amounts, datetimes, stripped strings). Deferred handlers receive the raw JSON
and normalize it themselves so that a dead-lettered payload can be replayed
as-is.
"""
from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from ..exceptions import ValidationError
from ..extensions import db
from ..models import Sale
from ..time_utils import parse_iso_datetime
from ..validation import (
    QUANTITY,
    FieldErrors,
    check_datetime,
    check_integer,
    check_list,
    check_number,
    check_string,
    to_decimal,
    to_text,
)

BARCODE_PATTERN = re.compile(r"[A-Za-z0-9\-]+")
MIN_QUANTITY = Decimal("0.001")


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return to_decimal(value)


def _rows(errors: FieldErrors, payload: dict, key: str, min_message: str):
    """Yield (path, row) for each object in payload[key]."""
    rows = check_list(errors, key, payload.get(key), min_message=min_message)
    for index, row in enumerate(rows):
        path = f"{key}.{index}"
        if not isinstance(row, dict):
            errors.add(path, f"{path} must be an object")
            continue
        yield path, row


class BaseEventSchema:
    event_type: str = ""
    # Collection whose length is reported back in the acknowledgement
    collection_key: str = ""
    count_key: str = ""

    def validate(self, payload: Any) -> dict[str, list[str]]:
        errors = FieldErrors()
        if not isinstance(payload, dict):
            errors.add("payload", "Invalid JSON payload")
            return errors.as_dict()
        self._check(errors, payload)
        return errors.as_dict()

    def validate_or_raise(self, payload: Any) -> None:
        errors = self.validate(payload)
        if errors:
            raise ValidationError(errors)

    def _check(self, errors: FieldErrors, payload: dict) -> None:
        raise NotImplementedError

    def normalize(self, payload: dict) -> dict[str, Any]:
        raise NotImplementedError

    def count(self, payload: dict) -> int:
        return len(payload.get(self.collection_key) or [])


class PromoCodeGenerateSchema(BaseEventSchema):
    """Sale receipt submitted to obtain one promo code per line."""

    event_type = "promo_codes.generate"
    collection_key = "items"

    def _check(self, errors: FieldErrors, payload: dict) -> None:
        check_string(errors, "receipt_id", payload.get("receipt_id"))
        if not errors.has("receipt_id") and receipt_exists(payload["receipt_id"].strip()):
            errors.add("receipt_id", "This receipt ID has already been processed")
        check_number(errors, "total_amount", payload.get("total_amount"))
        check_datetime(errors, "sold_at", payload.get("sold_at"))
        check_string(errors, "branch_id", payload.get("branch_id"))
        check_string(errors, "cashier_id", payload.get("cashier_id"))
        for path, row in _rows(errors, payload, "items", "At least one item is required"):
            check_string(errors, f"{path}.product_id", row.get("product_id"))
            check_number(errors, f"{path}.amount", row.get("amount"))

    def normalize(self, payload: dict) -> dict[str, Any]:
        return {
            "receipt_id": to_text(payload["receipt_id"]),
            "total_amount": to_decimal(payload["total_amount"]),
            "sold_at": parse_iso_datetime(payload["sold_at"]),
            "branch_id": to_text(payload["branch_id"]),
            "cashier_id": to_text(payload["cashier_id"]),
            "items": [
                {"product_id": to_text(item["product_id"]), "amount": to_decimal(item["amount"])}
                for item in payload["items"]
            ],
        }


class ProductCatalogSchema(BaseEventSchema):
    """Shared by the catalog created and updated events."""

    collection_key = "products"
    count_key = "products_count"

    def __init__(self, event_type: str):
        self.event_type = event_type

    def _check(self, errors: FieldErrors, payload: dict) -> None:
        for path, row in _rows(errors, payload, "products", "At least one product is required"):
            check_string(errors, f"{path}.id", row.get("id"))
            check_string(errors, f"{path}.name", row.get("name"))
            check_string(
                errors,
                f"{path}.barcode",
                row.get("barcode"),
                max_length=50,
                pattern=BARCODE_PATTERN,
                pattern_message="Barcode must contain only alphanumeric characters and hyphens",
            )
            check_string(errors, f"{path}.description", row.get("description"), required=False, max_length=1000)
            check_number(errors, f"{path}.price", row.get("price"))
            check_number(errors, f"{path}.discount_price", row.get("discount_price"), required=False)
            check_string(errors, f"{path}.unit", row.get("unit"), max_length=50)
            check_string(errors, f"{path}.category", row.get("category"), required=False, max_length=100)

    def normalize(self, payload: dict) -> dict[str, Any]:
        return {
            "products": [
                {
                    "ext_id": to_text(row["id"]),
                    "name": to_text(row["name"]),
                    "barcode": to_text(row["barcode"]),
                    "description": to_text(row.get("description")),
                    "price": to_decimal(row["price"]),
                    "discount_price": _optional_decimal(row.get("discount_price")),
                    "unit": to_text(row["unit"]),
                    "category": to_text(row.get("category")),
                }
                for row in payload["products"]
            ]
        }


class InventoryMovementSchema(BaseEventSchema):
    """Stock added/removed lines; `added` also carries the resulting total."""

    collection_key = "items"
    count_key = "items_count"

    def __init__(self, event_type: str, *, requires_total: bool):
        self.event_type = event_type
        self.requires_total = requires_total

    def _check(self, errors: FieldErrors, payload: dict) -> None:
        check_integer(errors, "user_id", payload.get("user_id"))
        for path, row in _rows(errors, payload, "items", "At least one item is required"):
            check_string(errors, f"{path}.product_id", row.get("product_id"))
            check_string(errors, f"{path}.branch_id", row.get("branch_id"))
            check_number(errors, f"{path}.quantity", row.get("quantity"), minimum=MIN_QUANTITY, precision=QUANTITY)
            check_number(errors, f"{path}.previous_quantity", row.get("previous_quantity"), precision=QUANTITY)
            if self.requires_total:
                check_number(errors, f"{path}.total_quantity", row.get("total_quantity"), precision=QUANTITY)
            check_string(errors, f"{path}.reason", row.get("reason"), required=False)
            check_string(errors, f"{path}.notes", row.get("notes"), required=False, max_length=5000)

    def normalize(self, payload: dict) -> dict[str, Any]:
        items = []
        for row in payload["items"]:
            items.append({
                "product_id": to_text(row["product_id"]),
                "branch_id": to_text(row["branch_id"]),
                "quantity": to_decimal(row["quantity"]),
                "previous_quantity": to_decimal(row["previous_quantity"]),
                "total_quantity": _optional_decimal(row.get("total_quantity")),
                "reason": to_text(row.get("reason")),
                "notes": to_text(row.get("notes")),
            })
        return {"items": items, "user_id": payload.get("user_id")}


class PromoCodeCancelledSchema(BaseEventSchema):
    """
    Receipt cancellation. Only the shape is checked here; the sale lookup and
    branch comparison happen in the route so they map to 404/403.
    """

    event_type = "promo_codes.cancelled"
    collection_key = "cancelled_items"
    count_key = "cancelled_items_count"

    def _check(self, errors: FieldErrors, payload: dict) -> None:
        check_string(errors, "receipt_id", payload.get("receipt_id"))
        check_string(errors, "branch_id", payload.get("branch_id"))
        check_string(errors, "cashier_id", payload.get("cashier_id"))
        for path, row in _rows(errors, payload, "cancelled_items", "At least one item must be cancelled"):
            check_string(errors, f"{path}.product_id", row.get("product_id"))
            check_number(errors, f"{path}.amount", row.get("amount"))

    def normalize(self, payload: dict) -> dict[str, Any]:
        return {
            "receipt_id": to_text(payload["receipt_id"]),
            "branch_id": to_text(payload["branch_id"]),
            "cashier_id": to_text(payload["cashier_id"]),
            "cancelled_items": [
                {"product_id": to_text(item["product_id"]), "amount": to_decimal(item["amount"])}
                for item in payload["cancelled_items"]
            ],
        }


def receipt_exists(receipt_id: str) -> bool:
    return db.session.query(Sale.id).filter_by(receipt_id=receipt_id).first() is not None


PROMO_CODE_GENERATE = PromoCodeGenerateSchema()
CATALOG_CREATED = ProductCatalogSchema("product_catalog.created")
CATALOG_UPDATED = ProductCatalogSchema("product_catalog.updated")
INVENTORY_ADDED = InventoryMovementSchema("inventory.added", requires_total=True)
INVENTORY_REMOVED = InventoryMovementSchema("inventory.removed", requires_total=False)
PROMO_CODE_CANCELLED = PromoCodeCancelledSchema()

SCHEMAS = {
    schema.event_type: schema
    for schema in (
        CATALOG_CREATED,
        CATALOG_UPDATED,
        INVENTORY_ADDED,
        INVENTORY_REMOVED,
        PROMO_CODE_CANCELLED,
    )
}
