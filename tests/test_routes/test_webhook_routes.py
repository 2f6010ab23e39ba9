import base64
import hashlib
import hmac
import json

import pytest

from stocksync import create_app
from stocksync.models import StoreKey
from stocksync.routes import webhooks

from conftest import PRIMARY_LOCATION

SECRETS = {StoreKey.PRIMARY: "primary-secret", StoreKey.SECONDARY: "secondary-secret"}


def _sign(secret: str, body: bytes) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


@pytest.fixture(autouse=True)
def inline_workers(monkeypatch):
    monkeypatch.setattr(webhooks, "run_in_background", lambda fn: fn())
    webhooks._SEEN_IDS.clear()


@pytest.fixture
def client(engine):
    app = create_app(engine=engine, WEBHOOK_SECRETS=SECRETS, BASE_URL="https://sync.example")
    return app.test_client()


def _post(client, store="primary", payload=None, secret="primary-secret", webhook_id=None):
    body = json.dumps(payload if payload is not None else {
        "inventory_item_id": 111, "location_id": PRIMARY_LOCATION, "available": 5}).encode()
    headers = {"X-Shopify-Hmac-Sha256": _sign(secret, body), "Content-Type": "application/json"}
    if webhook_id:
        headers["X-Shopify-Webhook-Id"] = webhook_id
    return client.post(f"/webhooks/{store}/inventory", data=body, headers=headers)


def test_signed_event_reaches_engine(client, engine, timers, secondary_store):
    resp = _post(client)

    assert resp.status_code == 200
    assert len(timers.live) == 1
    timers.fire_all()
    assert secondary_store.writes == [("set", 911, 2002, 5)]


def test_unsigned_ping_is_answered(client, timers):
    resp = client.post("/webhooks/primary/inventory", json={"inventory_item_id": 111})

    assert resp.status_code == 200
    assert resp.data == b"pong"
    assert timers.timers == []


def test_bad_signature_is_rejected(client, timers):
    resp = _post(client, secret="wrong")

    assert resp.status_code == 401
    assert timers.timers == []


def test_bad_signature_silent_mode(engine, timers):
    app = create_app(engine=engine, WEBHOOK_SECRETS=SECRETS, WEBHOOK_REJECT_MODE="silent")
    resp = _post(app.test_client(), secret="wrong")

    assert resp.status_code == 200
    assert resp.data == b"ignored"
    assert timers.timers == []


def test_each_store_checks_its_own_secret(client):
    assert _post(client, store="secondary", secret="primary-secret").status_code == 401


def test_duplicate_delivery_is_dropped(client, mocker, engine):
    spy = mocker.spy(engine, "handle_inventory_event")

    _post(client, webhook_id="abc")
    _post(client, webhook_id="abc")

    assert spy.call_count == 1


def test_malformed_payload_is_ignored(client, engine, mocker):
    spy = mocker.spy(engine, "handle_inventory_event")

    resp = _post(client, payload={"inventory_item_id": 111, "available": None})

    assert resp.status_code == 200
    assert resp.data == b"ignored"
    assert spy.call_count == 0


def test_unknown_store_is_404(client):
    assert _post(client, store="tertiary").status_code == 404


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}


def test_register_webhooks(client, primary_store):
    resp = client.get("/register_webhooks/primary")

    assert resp.status_code == 200
    assert primary_store.calls[-1] == (
        "webhook", "inventory_levels/update", "https://sync.example/webhooks/primary/inventory")


def test_register_webhooks_requires_base_url(engine):
    app = create_app(engine=engine, WEBHOOK_SECRETS=SECRETS, BASE_URL=None)

    assert app.test_client().get("/register_webhooks/primary").status_code == 500
