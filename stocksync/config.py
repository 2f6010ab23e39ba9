import os

API_VERSION = os.getenv("API_VERSION", "2024-10")
BASE_URL = os.getenv("BASE_URL")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

SYNC_TAG = os.getenv("SYNC_TAG", "sync-stock")
SYNC_LOCATION_NAME = os.getenv("SYNC_LOCATION_NAME", "Ensovo")

DEBOUNCE_DELAY_MS = int(os.getenv("DEBOUNCE_DELAY_MS", "2000"))
# echo-locks must outlive webhook delivery but not mask real edits
LOCK_TTL = min(max(int(os.getenv("LOCK_TTL", "30")), 20), 30)
CATALOG_CACHE_TTL = int(os.getenv("CATALOG_CACHE_TTL", "1800"))
INVENTORY_CACHE_TTL = int(os.getenv("INVENTORY_CACHE_TTL", str(24 * 3600)))
LOG_TTL = int(os.getenv("LOG_TTL", str(7 * 86400)))

# "unauthorized" -> 401 on bad HMAC, "silent" -> 200 so Shopify stops retrying
WEBHOOK_REJECT_MODE = os.getenv("WEBHOOK_REJECT_MODE", "unauthorized").lower()

PRIMARY = {
    "domain": os.getenv("PRIMARY_STORE_DOMAIN"),
    "token": os.getenv("PRIMARY_ACCESS_TOKEN"),
    "secret": os.getenv("PRIMARY_API_SECRET"),
    "location_id": os.getenv("PRIMARY_LOCATION_ID"),
    "location_name": os.getenv("PRIMARY_LOCATION_NAME", SYNC_LOCATION_NAME),
    "name": os.getenv("PRIMARY_STORE_NAME", "Primary"),
}

SECONDARY = {
    "domain": os.getenv("SECONDARY_STORE_DOMAIN"),
    "token": os.getenv("SECONDARY_ACCESS_TOKEN"),
    "secret": os.getenv("SECONDARY_API_SECRET"),
    "location_id": os.getenv("SECONDARY_LOCATION_ID"),
    "location_name": os.getenv("SECONDARY_LOCATION_NAME", SYNC_LOCATION_NAME),
    "name": os.getenv("SECONDARY_STORE_NAME", "Secondary"),
}
