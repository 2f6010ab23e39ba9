import sys
import atexit
import logging
from flask import Flask
from dotenv import load_dotenv


def build_engine():
    """Wire the engine from environment config (stores, Redis, TTLs)."""
    from . import config
    from .clients.shopify import ShopifyStore
    from .clients.state import StateStore
    from .models import StoreKey, StoreIdentity
    from .services.sync import SyncEngine

    stores, adapters = {}, {}
    for key, cfg in ((StoreKey.PRIMARY, config.PRIMARY), (StoreKey.SECONDARY, config.SECONDARY)):
        stores[key] = StoreIdentity(
            key=key,
            name=cfg["name"],
            location_id=int(cfg["location_id"]) if cfg.get("location_id") else None,
            location_name=cfg["location_name"],
        )
        adapters[key] = ShopifyStore(cfg["domain"], cfg["token"], cfg["name"])

    return SyncEngine(
        stores, adapters, StateStore.from_url(config.REDIS_URL),
        tag=config.SYNC_TAG,
        debounce_ms=config.DEBOUNCE_DELAY_MS,
        lock_ttl=config.LOCK_TTL,
        catalog_ttl=config.CATALOG_CACHE_TTL,
        inventory_ttl=config.INVENTORY_CACHE_TTL,
        log_ttl=config.LOG_TTL,
    )


def create_app(engine=None, **overrides):
    load_dotenv()
    from . import config
    from .models import StoreKey

    app = Flask(__name__)
    app.config.update(
        BASE_URL=config.BASE_URL,
        WEBHOOK_REJECT_MODE=config.WEBHOOK_REJECT_MODE,
        WEBHOOK_SECRETS={
            StoreKey.PRIMARY: config.PRIMARY["secret"],
            StoreKey.SECONDARY: config.SECONDARY["secret"],
        },
    )
    app.config.update(overrides)

    # =========================================================
    # Configure logging so logs show up under gunicorn
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_error.handlers
    app.logger.setLevel(logging.INFO)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.addHandler(sh)

    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # =========================================================
    # Sync engine
    # =========================================================
    if engine is None:
        engine = build_engine()
        atexit.register(engine.shutdown)
    app.extensions["sync_engine"] = engine

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.register import bp as register_bp
    from .routes.webhooks import bp as webhooks_bp
    from .routes.admin import bp as admin_bp

    app.register_blueprint(register_bp, url_prefix="/register_webhooks")
    app.register_blueprint(webhooks_bp, url_prefix="/webhooks")
    app.register_blueprint(admin_bp)

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True}, 200

    return app
