"""
Pytest fixtures for the POS events backend.

Provides a file-backed SQLite app, per-test table cleanup, a client that
signs request bodies, and branch/product/sale fixtures.
"""

import json
import os
import random
from decimal import Decimal
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="pos_events_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.sqlite3')}"

import pytest

from pos_events import create_app
from pos_events.decorators import compute_signature
from pos_events.extensions import db, dispatcher
from pos_events.models import Branch, Product
from pos_events.services.event_schemas import PROMO_CODE_GENERATE
from pos_events.services.promo_code_service import PromoCodeGenerator, generate_promo_codes

TEST_SECRET = "test-signing-secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app()
    app.config.update({
        'TESTING': True,
        'POS_SIGNATURE_SECRET': TEST_SECRET,
        'SIGNATURE_VERIFICATION_ENABLED': True,
        'EVENTS_RUN_INLINE': True,
        'EVENT_RETRY_BACKOFF': 0,
    })
    app.extensions["promo_code_generator"] = PromoCodeGenerator(random.Random(1234))

    with app.app_context():
        db.create_all()
        yield app
        dispatcher.shutdown()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


class SignedClient:
    """Test client wrapper that signs every body like a POS terminal."""

    def __init__(self, client, secret: str = TEST_SECRET):
        self.client = client
        self.secret = secret

    def post(self, path: str, payload=None, *, headers: dict | None = None, sign: bool = True):
        body = json.dumps(payload).encode("utf-8")
        request_headers = {"Content-Type": "application/json"}
        if sign:
            request_headers["X-Signature"] = compute_signature(self.secret, body)
        request_headers.update(headers or {})
        return self.client.post(path, data=body, headers=request_headers)


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def api(client):
    return SignedClient(client)


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(ext_id="BR001", name="Main Branch", address="123 Main Street", phone="+1-555-0101")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    branch = Branch(ext_id="BR002", name="North Branch")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(ext_id="P-100", name="Milk 1L", barcode="4600000000011", price=Decimal("1.99"), unit="pcs")
    db_session.add(product)
    db_session.commit()
    return product


def sale_payload(receipt_id: str = "CHK-001", branch_id: str = "BR001", product_ids=("P-1", "P-2", "P-3")) -> dict:
    return {
        "receipt_id": receipt_id,
        "total_amount": 30.0,
        "sold_at": "2025-11-17T10:00:00Z",
        "branch_id": branch_id,
        "cashier_id": "CASH-7",
        "items": [{"product_id": pid, "amount": 10.0} for pid in product_ids],
    }


def create_sale(**kwargs) -> dict:
    """Record a sale through the service layer (needs an app context)."""
    data = PROMO_CODE_GENERATE.normalize(sale_payload(**kwargs))
    return generate_promo_codes(data, generator=PromoCodeGenerator(random.Random(7)))


@pytest.fixture(scope='function')
def sale(db_session, branch):
    """Sale CHK-001 at BR001 with three lines P-1, P-2, P-3."""
    return create_sale()
