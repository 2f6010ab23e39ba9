# stocksync/routes/webhooks.py
import json
import threading
import time
from flask import Blueprint, request, current_app, abort

from ..models import StoreKey, InventoryEvent
from ..utils.security import verify_webhook_hmac
from ..utils.logger import info, warn, error

bp = Blueprint("webhooks", __name__)

# In-memory idempotency (best-effort)
_SEEN_IDS: dict[str, float] = {}
_SEEN_LOCK = threading.Lock()
_SEEN_TTL = 60 * 10  # 10 minutes


def _seen(webhook_id: str) -> bool:
    now = time.time()
    with _SEEN_LOCK:
        # GC old ids
        for k, ts in list(_SEEN_IDS.items()):
            if now - ts > _SEEN_TTL:
                _SEEN_IDS.pop(k, None)
        if not webhook_id:
            return False
        if webhook_id in _SEEN_IDS:
            return True
        _SEEN_IDS[webhook_id] = now
        return False


def run_in_background(fn):
    threading.Thread(target=fn, daemon=True).start()


@bp.post("/<store>/inventory")
def inventory(store: str):
    try:
        key = StoreKey(store)
    except ValueError:
        abort(404)

    # Shopify pings/tests arrive unsigned
    if not request.headers.get("X-Shopify-Hmac-Sha256"):
        return "pong", 200

    secret = current_app.config["WEBHOOK_SECRETS"].get(key)
    raw = verify_webhook_hmac(secret, current_app.config.get("WEBHOOK_REJECT_MODE", "unauthorized"))
    if raw is None:
        return "ignored", 200

    webhook_id = request.headers.get("X-Shopify-Webhook-Id", "")
    if _seen(webhook_id):
        return "OK", 200

    try:
        event = InventoryEvent.from_webhook(key, json.loads(raw.decode("utf-8")))
    except (ValueError, KeyError, TypeError) as e:
        warn(f"[{key.value}] /inventory webhook ignored, bad payload: {e}")
        return "ignored", 200

    engine = current_app.extensions["sync_engine"]
    info(f"[{key.value}] /inventory webhook received. item={event.inventory_item_id} "
         f"location={event.location_id} available={event.available}")

    # Respond 200 immediately; do work async
    def worker():
        try:
            engine.handle_inventory_event(event)
        except Exception as e:
            error(f"[{key.value}] inventory worker item={event.inventory_item_id}: {e}")

    run_in_background(worker)
    return "OK", 200
