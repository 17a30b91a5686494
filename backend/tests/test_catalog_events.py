"""Product catalog created/updated events: acknowledgement, dedup and upsert."""

import uuid
from decimal import Decimal

import pytest

from pos_events.extensions import db
from pos_events.models import EventFailure, Product
from pos_events.services import catalog_service

CREATED_URL = "/api/v1/pos/events/product-catalog/created"
UPDATED_URL = "/api/v1/pos/events/product-catalog/updated"


def product_row(ext_id="P-1", **overrides):
    row = {
        "id": ext_id,
        "name": f"Product {ext_id}",
        "barcode": "460-0001",
        "description": "Fresh",
        "price": 12.5,
        "unit": "pcs",
        "category": "Dairy",
    }
    row.update(overrides)
    return row


class TestCatalogCreated:
    def test_acknowledges_with_count_and_process_id(self, api, db_session):
        response = api.post(CREATED_URL, {"products": [product_row("P-1"), product_row("P-2")]})

        assert response.status_code == 200
        body = response.json
        assert body["ok"] is True
        assert body["result"]["products_count"] == 2
        uuid.UUID(body["result"]["process_id"])
        assert "timestamp" in body["meta"]

    def test_stores_new_products(self, api, db_session):
        api.post(
            CREATED_URL,
            {"products": [product_row("P-1", discount_price="9.99")]},
            headers={"X-Sequence-Id": "17"},
        )

        product = db_session.query(Product).filter_by(ext_id="P-1").one()
        assert product.name == "Product P-1"
        assert product.price == Decimal("12.50")
        assert product.discount_price == Decimal("9.99")
        assert product.status == "new"
        assert product.is_active is True
        assert product.sequence_id == 17

    def test_redelivery_is_idempotent(self, api, db_session):
        payload = {"products": [product_row("P-1")]}

        first = api.post(CREATED_URL, payload)
        second = api.post(CREATED_URL, payload)

        assert first.status_code == second.status_code == 200
        assert db_session.query(Product).filter_by(ext_id="P-1").count() == 1

    def test_known_product_is_not_overwritten(self, api, db_session):
        api.post(CREATED_URL, {"products": [product_row("P-1", name="Original")]})
        api.post(CREATED_URL, {"products": [product_row("P-1", name="Changed"), product_row("P-2")]})

        db_session.expire_all()
        assert db_session.query(Product).filter_by(ext_id="P-1").one().name == "Original"
        assert db_session.query(Product).count() == 2

    def test_repeated_ext_id_in_one_batch_keeps_first(self, api, db_session):
        api.post(CREATED_URL, {"products": [product_row("P-1", name="First"), product_row("P-1", name="Second")]})

        products = db_session.query(Product).all()
        assert [p.name for p in products] == ["First"]

    def test_barcode_is_not_an_identity_key(self, api, db_session):
        api.post(CREATED_URL, {"products": [product_row("P-1", barcode="SAME"), product_row("P-2", barcode="SAME")]})

        assert db_session.query(Product).filter_by(barcode="SAME").count() == 2

    def test_invalid_barcode_rejected(self, api, db_session):
        response = api.post(CREATED_URL, {"products": [product_row("P-1", barcode="12 34!")]})

        assert response.status_code == 400
        assert response.json["result"]["errors"]["products.0.barcode"] == [
            "Barcode must contain only alphanumeric characters and hyphens"
        ]
        assert db_session.query(Product).count() == 0

    def test_missing_products_rejected(self, api):
        response = api.post(CREATED_URL, {"products": []})

        assert response.status_code == 400
        assert response.json["result"]["errors"]["products"] == ["At least one product is required"]

    def test_negative_price_rejected(self, api):
        response = api.post(CREATED_URL, {"products": [product_row("P-1", price=-0.01)]})

        assert response.status_code == 400
        assert "products.0.price" in response.json["result"]["errors"]

    def test_bad_sequence_header_rejected(self, api, db_session):
        response = api.post(CREATED_URL, {"products": [product_row()]}, headers={"X-Sequence-Id": "abc"})

        assert response.status_code == 400
        assert "X-Sequence-Id" in response.json["result"]["errors"]
        assert db_session.query(Product).count() == 0

    def test_header_and_body_errors_reported_together(self, api, db_session):
        response = api.post(
            CREATED_URL, {"products": [product_row(price="abc")]}, headers={"X-Sequence-Id": "-3"}
        )

        assert response.status_code == 400
        errors = response.json["result"]["errors"]
        assert errors["X-Sequence-Id"] == ["X-Sequence-Id must be a non-negative integer"]
        assert errors["products.0.price"] == ["products.0.price must be a number"]

    def test_price_beyond_column_precision_rejected(self, api, db_session):
        response = api.post(
            CREATED_URL,
            {"products": [product_row("P-1", price=1e9), product_row("P-2", discount_price="1.005")]},
        )

        assert response.status_code == 400
        errors = response.json["result"]["errors"]
        assert errors["products.0.price"] == ["products.0.price may not be greater than 99999999.99"]
        assert errors["products.1.discount_price"] == [
            "products.1.discount_price may not have more than 2 decimal places"
        ]
        assert db_session.query(Product).count() == 0


class TestCatalogUpdated:
    def test_unknown_product_is_created(self, api, db_session):
        response = api.post(UPDATED_URL, {"products": [product_row("P-9")]})

        assert response.status_code == 200
        assert response.json["result"]["products_count"] == 1
        assert db_session.query(Product).filter_by(ext_id="P-9").count() == 1

    def test_known_product_is_overwritten_in_place(self, api, db_session, product):
        product_id, created_at = product.id, product.created_at

        api.post(
            UPDATED_URL,
            {"products": [product_row("P-100", name="Milk 2L", price="3.49", barcode="NEW-1", category=None)]},
        )

        db_session.expire_all()
        rows = db_session.query(Product).filter_by(ext_id="P-100").all()
        assert len(rows) == 1
        updated = rows[0]
        assert updated.id == product_id
        assert updated.created_at == created_at
        assert updated.name == "Milk 2L"
        assert updated.price == Decimal("3.49")
        assert updated.barcode == "NEW-1"
        assert updated.category is None
        assert updated.status == "new"

    def test_stale_sequence_is_skipped(self, api, db_session):
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v5")]}, headers={"X-Sequence-Id": "5"})
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v3")]}, headers={"X-Sequence-Id": "3"})

        db_session.expire_all()
        product = db_session.query(Product).filter_by(ext_id="P-1").one()
        assert product.name == "v5"
        assert product.sequence_id == 5

    def test_equal_or_newer_sequence_is_applied(self, api, db_session):
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v5")]}, headers={"X-Sequence-Id": "5"})
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v5b")]}, headers={"X-Sequence-Id": "5"})
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v6")]}, headers={"X-Sequence-Id": "6"})

        db_session.expire_all()
        product = db_session.query(Product).filter_by(ext_id="P-1").one()
        assert product.name == "v6"
        assert product.sequence_id == 6

    def test_unsequenced_update_is_never_gated(self, api, db_session):
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="v5")]}, headers={"X-Sequence-Id": "5"})
        api.post(UPDATED_URL, {"products": [product_row("P-1", name="manual")]})

        db_session.expire_all()
        product = db_session.query(Product).filter_by(ext_id="P-1").one()
        assert product.name == "manual"
        assert product.sequence_id == 5


class TestConcurrentDelivery:
    """Another delivery commits the same ext_id between our lookup and our insert."""

    @pytest.fixture
    def competing_insert(self, monkeypatch):
        lookup = catalog_service._existing_products
        calls = []

        def lookup_then_lose_race(ext_ids):
            found = lookup(ext_ids)
            if not calls:
                with db.engine.begin() as conn:
                    conn.execute(
                        Product.__table__.insert().values(
                            ext_id="P-1", name="From other worker", barcode="OTHER-1", price=1, unit="pcs"
                        )
                    )
            calls.append(ext_ids)
            return found

        monkeypatch.setattr(catalog_service, "_existing_products", lookup_then_lose_race)
        return calls

    def test_created_batch_survives(self, api, db_session, competing_insert):
        response = api.post(CREATED_URL, {"products": [product_row("P-1"), product_row("P-9")]})

        assert response.status_code == 200
        assert len(competing_insert) == 2
        assert db_session.query(EventFailure).count() == 0
        products = {p.ext_id: p for p in db_session.query(Product).all()}
        assert set(products) == {"P-1", "P-9"}
        assert products["P-1"].name == "From other worker"

    def test_updated_batch_survives(self, api, db_session, competing_insert):
        response = api.post(UPDATED_URL, {"products": [product_row("P-1", name="Ours"), product_row("P-9")]})

        assert response.status_code == 200
        assert db_session.query(EventFailure).count() == 0
        products = {p.ext_id: p for p in db_session.query(Product).all()}
        assert set(products) == {"P-1", "P-9"}
        assert products["P-1"].name == "Ours"
