# stocksync/services/cache.py
import json
from typing import Optional, Tuple, List, Dict

from ..clients.state import StateStore
from ..models import StoreKey, ProductRecord, VariantRecord
from ..utils.logger import debug, info, warn

Match = Tuple[ProductRecord, VariantRecord]


# =========================================================
# Product lookup cache (tagged catalog snapshot per store)
# =========================================================

class ProductLookupCache:
    """
    Per-store snapshot of the tagged catalog, kept in the state store.

    A miss loads the whole tagged catalog from the store adapter and stores it
    wholesale; hits only search the snapshot. Membership can be up to `ttl`
    seconds stale. Adapter errors propagate and leave the cache untouched.
    """

    def __init__(self, state: StateStore, adapters: Dict[StoreKey, object], tag: str, ttl: int = 1800):
        self.state = state
        self.adapters = adapters
        self.tag = tag
        self.ttl = ttl

    def _key(self, store: StoreKey) -> str:
        return f"products:{store.value}:{self.tag}"

    def catalog(self, store: StoreKey) -> List[ProductRecord]:
        key = self._key(store)
        raw = self.state.get(key)
        if raw:
            try:
                debug(f"[cache] hit {key}")
                return [ProductRecord.from_dict(p) for p in json.loads(raw)]
            except (ValueError, KeyError, TypeError) as e:
                warn(f"[cache] corrupt catalog snapshot {key}, reloading: {e}")

        info(f"[cache] miss {key}, loading tagged catalog from {store.value}")
        products = self.adapters[store].get_tagged_catalog(self.tag)
        self.state.set_with_ttl(key, json.dumps([p.to_dict() for p in products]), self.ttl)
        return products

    def lookup_by_inventory_item(self, store: StoreKey, inventory_item_id: int) -> Optional[Match]:
        for product in self.catalog(store):
            for variant in product.variants:
                if variant.inventory_item_id == int(inventory_item_id):
                    return product, variant
        return None

    def lookup_by_identifier(self, store: StoreKey, cross_store_id: str) -> Optional[Match]:
        for product in self.catalog(store):
            for variant in product.variants:
                if variant.cross_store_id and variant.cross_store_id == str(cross_store_id):
                    return product, variant
        return None

    def invalidate(self, store: StoreKey):
        self.state.delete(self._key(store))


# =========================================================
# Inventory snapshot cache (last known quantity)
# =========================================================

class InventorySnapshotCache:

    def __init__(self, state: StateStore, ttl: int = 24 * 3600):
        self.state = state
        self.ttl = ttl

    @staticmethod
    def _key(store: StoreKey, cross_store_id: str) -> str:
        return f"inventory:{store.value}:{cross_store_id}"

    def get(self, store: StoreKey, cross_store_id: str) -> Optional[int]:
        raw = self.state.get(self._key(store, cross_store_id))
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            warn(f"[cache] bad inventory snapshot {store.value}:{cross_store_id}={raw!r}, ignoring")
            return None

    def put(self, store: StoreKey, cross_store_id: str, value: int):
        self.state.set_with_ttl(self._key(store, cross_store_id), str(int(value)), self.ttl)

    def invalidate(self, store: StoreKey, cross_store_id: str):
        self.state.delete(self._key(store, cross_store_id))
