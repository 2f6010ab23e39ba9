# stocksync/routes/register.py
from flask import Blueprint, current_app

from ..exceptions import StoreApiError
from ..models import StoreKey

bp = Blueprint("register", __name__)

TOPIC = "inventory_levels/update"


@bp.get("/<store>")
def register(store: str):
    try:
        key = StoreKey(store)
    except ValueError:
        return f"Unknown store {store}", 404

    base_url = current_app.config.get("BASE_URL")
    if not base_url:
        return "Missing BASE_URL in env.", 500

    adapter = current_app.extensions["sync_engine"].adapters[key]
    address = f"{base_url.rstrip('/')}/webhooks/{key.value}/inventory"
    try:
        return adapter.ensure_webhook(TOPIC, address), 200
    except StoreApiError as e:
        return f"FAIL {TOPIC} {e}", 500
