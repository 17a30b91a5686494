"""Request signing: every POS route rejects unsigned or tampered bodies."""

import json

import pytest

from pos_events.decorators import compute_signature
from pos_events.models import Product

from tests.conftest import TEST_SECRET

CREATED_URL = "/api/v1/pos/events/product-catalog/created"
PAYLOAD = {"products": [{"id": "P-1", "name": "Tea", "barcode": "T-1", "price": 2, "unit": "pcs"}]}

SIGNED_ROUTES = [
    "/api/v1/pos/promo-codes/generate",
    "/api/v1/pos/events/product-catalog/created",
    "/api/v1/pos/events/product-catalog/updated",
    "/api/v1/pos/events/inventory/items/added",
    "/api/v1/pos/events/inventory/items/removed",
    "/api/v1/pos/events/promo-codes/cancelled",
]


@pytest.mark.parametrize("url", SIGNED_ROUTES)
def test_missing_signature_is_400(api, url):
    response = api.post(url, PAYLOAD, sign=False)

    assert response.status_code == 400
    assert response.json == {"ok": False, "code": 400, "message": "X-Signature header is required"}


def test_wrong_signature_is_403(api, db_session):
    response = api.post(CREATED_URL, PAYLOAD, headers={"X-Signature": "deadbeef"})

    assert response.status_code == 403
    assert response.json["message"] == "Invalid signature"
    assert db_session.query(Product).count() == 0


def test_signature_covers_the_body(client, db_session):
    signed_body = json.dumps(PAYLOAD).encode()
    tampered = dict(PAYLOAD, products=[dict(PAYLOAD["products"][0], price=0)])

    response = client.post(
        CREATED_URL,
        data=json.dumps(tampered),
        headers={"Content-Type": "application/json", "X-Signature": compute_signature(TEST_SECRET, signed_body)},
    )

    assert response.status_code == 403


def test_signature_is_case_insensitive_hex(client, db_session):
    body = json.dumps(PAYLOAD).encode()

    response = client.post(
        CREATED_URL,
        data=body,
        headers={"Content-Type": "application/json", "X-Signature": compute_signature(TEST_SECRET, body).upper()},
    )

    assert response.status_code == 200


def test_unconfigured_secret_rejects(app, api):
    app.config["POS_SIGNATURE_SECRET"] = None
    try:
        response = api.post(CREATED_URL, PAYLOAD)
    finally:
        app.config["POS_SIGNATURE_SECRET"] = TEST_SECRET

    assert response.status_code == 403


def test_verification_can_be_disabled(app, api, db_session):
    app.config["SIGNATURE_VERIFICATION_ENABLED"] = False
    try:
        response = api.post(CREATED_URL, PAYLOAD, sign=False)
    finally:
        app.config["SIGNATURE_VERIFICATION_ENABLED"] = True

    assert response.status_code == 200
    assert db_session.query(Product).count() == 1


def test_health_is_unsigned(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json["result"]["database"]["status"] == "healthy"
    assert response.json["result"]["database"]["details"]["failed_events"] == 0
