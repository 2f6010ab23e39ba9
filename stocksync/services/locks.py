# stocksync/services/locks.py
from ..clients.state import StateStore
from ..models import StoreKey

DEFAULT_LOCK_TTL = 30


class EchoLockManager:
    """
    Mute flags for inventory items we are about to write.

    Shopify cannot tell us whether an inventory_levels/update came from a
    person or from our own write, so the flag is set on the target right before
    writing and any event for that (store, item) is ignored until it expires.
    """

    def __init__(self, state: StateStore, ttl: int = DEFAULT_LOCK_TTL):
        self.state = state
        self.ttl = ttl

    @staticmethod
    def _key(store: StoreKey, inventory_item_id: int) -> str:
        return f"sync:lock:{store.value}:{int(inventory_item_id)}"

    def acquire(self, store: StoreKey, inventory_item_id: int, ttl_seconds: int = None):
        self.state.set_with_ttl(self._key(store, inventory_item_id), "1", ttl_seconds or self.ttl)

    def is_locked(self, store: StoreKey, inventory_item_id: int) -> bool:
        return self.state.get(self._key(store, inventory_item_id)) is not None

