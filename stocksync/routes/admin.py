# stocksync/routes/admin.py
from flask import Blueprint, request, current_app, jsonify

from ..exceptions import StoreApiError, ProductNotFoundError, NotEnrolledError
from ..models import StoreKey
from ..utils.logger import info, error

bp = Blueprint("admin", __name__)

MAX_LOG_LIMIT = 500


def _engine():
    return current_app.extensions["sync_engine"]


def _limit() -> int:
    try:
        return max(1, min(int(request.args.get("limit", 50)), MAX_LOG_LIMIT))
    except ValueError:
        return 50


def _store_arg(body: dict, field: str):
    value = (body.get(field) or "").strip().lower()
    try:
        return StoreKey(value)
    except ValueError:
        return None


@bp.post("/sync/manual")
def manual_sync():
    body = request.get_json(silent=True) or {}
    identifier = str(body.get("identifier") or "").strip()
    source = _store_arg(body, "source_store")
    if not identifier or source is None:
        return jsonify({"error": "identifier and source_store (primary|secondary) are required"}), 400

    info(f"[manual] sync {identifier} from {source.value}")
    try:
        outcome = _engine().manual_sync(identifier, source)
    except (ProductNotFoundError, NotEnrolledError) as e:
        return jsonify({"error": str(e)}), 404
    except StoreApiError as e:
        error(f"[manual] {identifier}: {e}")
        return jsonify({"error": str(e)}), 502
    return jsonify({"success": True, "outcome": outcome}), 200


@bp.post("/cache/clear")
def clear_cache():
    body = request.get_json(silent=True) or {}
    identifier = str(body.get("identifier") or "").strip()
    store = _store_arg(body, "store")
    if not identifier or store is None:
        return jsonify({"error": "identifier and store (primary|secondary) are required"}), 400
    _engine().clear_cache(identifier, store)
    return jsonify({"success": True, "message": "Cache cleared"}), 200


@bp.post("/cache/refresh")
def refresh_cache():
    body = request.get_json(silent=True) or {}
    store = _store_arg(body, "store")
    if store is None:
        return jsonify({"error": "store (primary|secondary) is required"}), 400
    _engine().refresh_catalog(store)
    return jsonify({"success": True, "message": "Products cache cleared"}), 200


@bp.get("/status")
def status():
    return jsonify(_engine().stats()), 200


@bp.get("/logs")
def logs():
    return jsonify(_engine().recent_logs(_limit())), 200


@bp.get("/errors")
def errors():
    return jsonify(_engine().recent_errors(_limit())), 200
