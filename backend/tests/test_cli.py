"""Flask CLI: branch registry and dead-letter inspection."""

import json

from pos_events.models import Branch, EventFailure
from pos_events.services.event_pipeline import EVENT_HANDLERS

CREATED_URL = "/api/v1/pos/events/product-catalog/created"
PAYLOAD = {"products": [{"id": "P-1", "name": "Tea", "barcode": "T-1", "price": 2, "unit": "pcs"}]}


def _explode(payload, *, process_id, sequence_id=None):
    raise RuntimeError("database unavailable")


def test_branches_create_and_update(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["branches", "create", "--ext-id", "BR009", "--name", "Harbor"])
    assert result.exit_code == 0, result.output
    assert "Created branch BR009" in result.output

    result = runner.invoke(args=["branches", "create", "--ext-id", "BR009", "--name", "Harbor 2", "--inactive"])
    assert result.exit_code == 0, result.output
    assert "Updated branch BR009" in result.output

    db_session.expire_all()
    branch = db_session.query(Branch).filter_by(ext_id="BR009").one()
    assert branch.name == "Harbor 2"
    assert branch.is_active is False


def test_branches_list(app, branch):
    result = app.test_cli_runner().invoke(args=["branches", "list"])

    assert result.exit_code == 0
    assert "BR001" in result.output
    assert "active" in result.output


def test_failures_and_replay(app, api, db_session, monkeypatch):
    original = EVENT_HANDLERS["product_catalog.created"]
    monkeypatch.setitem(EVENT_HANDLERS, "product_catalog.created", _explode)
    process_id = api.post(CREATED_URL, PAYLOAD).json["result"]["process_id"]
    runner = app.test_cli_runner()

    result = runner.invoke(args=["events", "failures"])
    assert process_id in result.output
    assert "database unavailable" in result.output

    result = runner.invoke(args=["events", "replay", process_id])
    assert result.exit_code != 0

    monkeypatch.setitem(EVENT_HANDLERS, "product_catalog.created", original)
    result = runner.invoke(args=["events", "replay", process_id])
    assert result.exit_code == 0, result.output
    assert f"Replayed {process_id}" in result.output

    assert "No failed events" in runner.invoke(args=["events", "failures"]).output
    assert process_id in runner.invoke(args=["events", "failures", "--all"]).output
    db_session.expire_all()
    assert db_session.query(EventFailure).one().status == "replayed"


def test_failures_as_json(app, api, db_session, monkeypatch):
    monkeypatch.setitem(EVENT_HANDLERS, "product_catalog.created", _explode)
    process_id = api.post(CREATED_URL, PAYLOAD, headers={"X-Sequence-Id": "12"}).json["result"]["process_id"]

    result = app.test_cli_runner().invoke(args=["events", "failures", "--json"])

    assert result.exit_code == 0, result.output
    rows = json.loads(result.output)
    assert len(rows) == 1
    assert rows[0]["process_id"] == process_id
    assert rows[0]["payload"] == PAYLOAD
    assert rows[0]["sequence_id"] == 12
    assert rows[0]["status"] == "failed"
    assert rows[0]["replayed_at"] is None
    assert rows[0]["created_at"].endswith("Z")
