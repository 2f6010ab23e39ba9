# stocksync/services/sync.py
import threading
import traceback
from typing import Dict, Optional, Tuple

from ..clients.state import StateStore
from ..exceptions import StoreApiError, ProductNotFoundError, NotEnrolledError
from ..models import (
    StoreKey, StoreIdentity, VariantRecord, ProductRecord,
    InventoryEvent, SyncLogEntry, ErrorLogEntry,
)
from ..utils.logger import debug, info, warn, error
from .cache import ProductLookupCache, InventorySnapshotCache
from .debounce import Debouncer, DEFAULT_DELAY_MS
from .locks import EchoLockManager, DEFAULT_LOCK_TTL
from .sync_log import SyncLog, DEFAULT_LOG_TTL

# =========================================================
# Event dispositions
# =========================================================

SKIP_LOCATION = "skip:location"
SKIP_ECHO = "skip:echo"
SKIP_NOT_TAGGED = "skip:not_tagged"
SKIP_NO_IDENTIFIER = "skip:no_identifier"
SCHEDULED = "scheduled"
FAILED = "failed"

NOOP = "noop"
FULL = "full"
DELTA = "delta"
NOT_ENROLLED = "not_enrolled"


class SyncEngine:
    """
    Two-store inventory reconciler.

    Owns the debounce table and holds the two store adapters and the shared
    state client. Webhook events go through handle_inventory_event(), which
    filters them and arms a debounce timer per (store, barcode). The source
    snapshot is read when the window opens; when the timer fires the latest
    value is diffed against that read, and the engine either copies the
    absolute value (no snapshot yet) or applies the signed delta to the other
    store.
    """

    def __init__(self, stores: Dict[StoreKey, StoreIdentity], adapters: Dict[StoreKey, object],
                 state: StateStore, *, tag: str,
                 debounce_ms: int = DEFAULT_DELAY_MS,
                 lock_ttl: int = DEFAULT_LOCK_TTL,
                 catalog_ttl: int = 1800,
                 inventory_ttl: int = 24 * 3600,
                 log_ttl: int = DEFAULT_LOG_TTL,
                 timer_factory=threading.Timer):
        if set(stores) != set(StoreKey) or set(adapters) != set(StoreKey):
            raise ValueError("SyncEngine needs exactly one identity and adapter per StoreKey")
        self.stores = stores
        self.adapters = adapters
        self.state = state
        self.tag = tag

        self.catalog = ProductLookupCache(state, adapters, tag, ttl=catalog_ttl)
        self.snapshots = InventorySnapshotCache(state, ttl=inventory_ttl)
        self.locks = EchoLockManager(state, ttl=lock_ttl)
        self.debouncer = Debouncer(debounce_ms, timer_factory=timer_factory)
        self.log = SyncLog(state, ttl=log_ttl)

        self._locations: Dict[StoreKey, int] = {
            k: int(s.location_id) for k, s in stores.items() if s.location_id
        }
        self._locations_lock = threading.Lock()

    # =========================================================
    # Helpers
    # =========================================================

    def _route(self, src: StoreKey) -> str:
        return f"[{self.stores[src].name} ➝ {self.stores[src.other()].name}]"

    def location_id(self, store: StoreKey) -> int:
        """Sync location of a store; looked up by name once when no id is configured."""
        with self._locations_lock:
            if store in self._locations:
                return self._locations[store]
        identity = self.stores[store]
        loc = self.adapters[store].get_location_id(identity.location_name)
        info(f"[{identity.name}] sync location '{identity.location_name}' -> {loc}")
        with self._locations_lock:
            self._locations[store] = loc
        return loc

    def _resolve(self, store: StoreKey, cross_store_id: str) -> Optional[Tuple[ProductRecord, VariantRecord]]:
        # the counterpart product does not have to carry the sync tag
        return (self.catalog.lookup_by_identifier(store, cross_store_id)
                or self.adapters[store].resolve_by_cross_store_id(cross_store_id))

    # =========================================================
    # Inbound path
    # =========================================================

    def handle_inventory_event(self, event: InventoryEvent) -> str:
        src = event.source
        route = self._route(src)
        item = event.inventory_item_id
        try:
            expected = self.location_id(src)
            if event.location_id != expected:
                debug(f"{route} skip item {item}: location {event.location_id} is not sync location {expected}")
                return SKIP_LOCATION

            if self.locks.is_locked(src, item):
                debug(f"{route} skip item {item}: echo of our own write")
                return SKIP_ECHO

            match = self.catalog.lookup_by_inventory_item(src, item)
            if not match or not match[0].has_tag(self.tag):
                debug(f"{route} skip item {item}: not in '{self.tag}' catalog")
                return SKIP_NOT_TAGGED

            product, variant = match
            if not variant.cross_store_id:
                debug(f"{route} skip item {item}: '{product.title}' variant has no barcode")
                return SKIP_NO_IDENTIFIER

            ean = variant.cross_store_id
            observed = self.snapshots.get(src, ean)
        except Exception as e:
            self._record_failure(e, event, "filter")
            return FAILED

        # only the read taken when the window opens counts
        baseline = self.debouncer.schedule(
            (src, ean), lambda previous: self._settle(event, ean, previous), seed=observed)
        debug(f"{route} item {item} ({ean}) available={event.available} (was {baseline}), debouncing")
        return SCHEDULED

    def _settle(self, event: InventoryEvent, cross_store_id: str, previous: Optional[int]):
        try:
            self._reconcile_from(event.source, cross_store_id, event.available, previous)
        except Exception as e:
            self._record_failure(e, event, "reconcile", cross_store_id)

    def _record_failure(self, exc: Exception, event: InventoryEvent, stage: str, identifier: str = None):
        error(f"{self._route(event.source)} {stage} failed for item {event.inventory_item_id}: {exc}")
        context = {
            "source_store": event.source.value,
            "stage": stage,
            "event": event.to_dict(),
            "stack": traceback.format_exc(),
        }
        if identifier:
            context["identifier"] = identifier
        if isinstance(exc, StoreApiError):
            context["status_code"] = exc.status_code
        try:
            self.log.record_error(ErrorLogEntry(message=str(exc), context=context))
        except Exception as log_exc:
            error(f"[errors] could not record error entry: {log_exc}")

    # =========================================================
    # Reconciliation
    # =========================================================

    def reconcile(self, src: StoreKey, cross_store_id: str, available: int) -> str:
        """Reconcile against the source snapshot as it stands now."""
        return self._reconcile_from(src, cross_store_id, available, self.snapshots.get(src, cross_store_id))

    def _reconcile_from(self, src: StoreKey, cross_store_id: str, available: int,
                        previous: Optional[int]) -> str:
        if previous is None:
            info(f"{self._route(src)} {cross_store_id}: no previous value, full sync")
            return self._sync_full(src, cross_store_id, available)

        delta = available - previous
        if delta == 0:
            debug(f"{self._route(src)} {cross_store_id}: no change (delta = 0)")
            return NOOP
        debug(f"{self._route(src)} {cross_store_id}: {available} - {previous} = {delta}")
        return self._sync_delta(src, cross_store_id, delta, available)

    def _counterpart(self, src: StoreKey, cross_store_id: str, available: int, kind: str,
                     value: int, strict: bool) -> Optional[VariantRecord]:
        dst = src.other()
        match = self._resolve(dst, cross_store_id)
        if match:
            return match[1]
        if strict:
            raise NotEnrolledError(f"Product with barcode {cross_store_id} not found in {self.stores[dst].name}")
        warn(f"{self._route(src)} barcode {cross_store_id} not enrolled in {self.stores[dst].name}, skipping")
        self.snapshots.put(src, cross_store_id, available)
        self.log.record_sync(
            SyncLogEntry(src.value, dst.value, cross_store_id, value, kind, outcome=NOT_ENROLLED),
            count=False,
        )
        return None

    def _sync_full(self, src: StoreKey, cross_store_id: str, available: int, strict: bool = False) -> str:
        dst = src.other()
        target = self._counterpart(src, cross_store_id, available, FULL, available, strict)
        if target is None:
            return NOT_ENROLLED

        location = self.location_id(dst)
        self.locks.acquire(dst, target.inventory_item_id)
        self.adapters[dst].set_inventory_level(target.inventory_item_id, location, available)

        self.snapshots.put(src, cross_store_id, available)
        self.snapshots.put(dst, cross_store_id, available)
        self.log.record_sync(SyncLogEntry(src.value, dst.value, cross_store_id, available, FULL))
        info(f"{self._route(src)} {cross_store_id}: set to {available}")
        return FULL

    def _sync_delta(self, src: StoreKey, cross_store_id: str, delta: int, available: int) -> str:
        dst = src.other()
        target = self._counterpart(src, cross_store_id, available, DELTA, delta, strict=False)
        if target is None:
            return NOT_ENROLLED

        location = self.location_id(dst)
        self.locks.acquire(dst, target.inventory_item_id)
        self.adapters[dst].adjust_inventory_level(target.inventory_item_id, location, delta)

        # the other direction may have moved our own snapshot since the window opened
        own = self.snapshots.get(src, cross_store_id)
        prior = self.snapshots.get(dst, cross_store_id)
        predicted = prior + delta if prior is not None else available
        self.snapshots.put(src, cross_store_id, own + delta if own is not None else available)
        self.snapshots.put(dst, cross_store_id, predicted)
        self.log.record_sync(SyncLogEntry(src.value, dst.value, cross_store_id, delta, DELTA))
        info(f"{self._route(src)} {cross_store_id}: {delta:+d} ({prior if prior is not None else '?'} → {predicted})")
        return DELTA

    # =========================================================
    # Operator surface
    # =========================================================

    def manual_sync(self, cross_store_id: str, source) -> str:
        """Full sync of the live source level. Errors propagate to the caller."""
        src = StoreKey(source)
        match = self._resolve(src, cross_store_id)
        if not match:
            raise ProductNotFoundError(f"Product with barcode {cross_store_id} not found in {self.stores[src].name}")
        _, variant = match
        available = self.adapters[src].get_inventory_level(variant.inventory_item_id, self.location_id(src))
        info(f"{self._route(src)} manual sync {cross_store_id}: {available}")
        return self._sync_full(src, cross_store_id, available, strict=True)

    def clear_cache(self, cross_store_id: str, store):
        store = StoreKey(store)
        self.snapshots.invalidate(store, cross_store_id)
        self.catalog.invalidate(store)
        info(f"[cache] cleared {cross_store_id} in {self.stores[store].name}")

    def refresh_catalog(self, store):
        store = StoreKey(store)
        self.catalog.invalidate(store)
        info(f"[cache] products cache cleared for {self.stores[store].name}, reloads on next event")

    def stats(self) -> dict:
        return self.log.stats()

    def recent_logs(self, limit: int = 50):
        return self.log.recent_syncs(limit)

    def recent_errors(self, limit: int = 50):
        return self.log.recent_errors(limit)

    def shutdown(self):
        self.debouncer.cancel_all()
