# tests/conftest.py
import pytest

from stocksync.clients.state import StateStore
from stocksync.models import StoreKey, StoreIdentity, InventoryEvent
from stocksync.services.sync import SyncEngine

from mocks.fake_redis import FakeRedis
from mocks.mock_store import MockStore, product, variant
from mocks.timers import ManualTimerFactory

TAG = "sync-stock"
PRIMARY_LOCATION = 1001
SECONDARY_LOCATION = 2002


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def state(fake_redis):
    return StateStore(fake_redis)


@pytest.fixture
def timers():
    return ManualTimerFactory()


@pytest.fixture
def primary_store():
    return MockStore("Primary", [
        product(1, "Olive Oil 1L", [TAG, "grocery"], [variant(11, 111, "3760001", "OIL-1L")]),
        product(2, "Untagged Soap", ["soap"], [variant(21, 222, "3760002")]),
        product(3, "Tagged, no barcode", [TAG], [variant(31, 333, None)]),
        product(4, "Only In Primary", [TAG], [variant(41, 444, "3760004")]),
    ], locations={"Ensovo": PRIMARY_LOCATION, "Warehouse": 1009})


@pytest.fixture
def secondary_store():
    return MockStore("Secondary", [
        product(9, "Olive Oil 1L", [TAG], [variant(91, 911, "3760001", "OIL-1L")]),
        # counterparts do not need the sync tag
        product(8, "Soap", [], [variant(81, 822, "3760002")]),
    ], locations={"Ensovo": SECONDARY_LOCATION})


@pytest.fixture
def stores():
    return {
        StoreKey.PRIMARY: StoreIdentity(StoreKey.PRIMARY, "Primary", location_id=PRIMARY_LOCATION),
        # resolved by name through the adapter
        StoreKey.SECONDARY: StoreIdentity(StoreKey.SECONDARY, "Secondary", location_name="Ensovo"),
    }


@pytest.fixture
def engine(stores, primary_store, secondary_store, state, timers):
    eng = SyncEngine(
        stores,
        {StoreKey.PRIMARY: primary_store, StoreKey.SECONDARY: secondary_store},
        state,
        tag=TAG,
        debounce_ms=2000,
        lock_ttl=30,
        catalog_ttl=1800,
        timer_factory=timers,
    )
    yield eng
    eng.shutdown()


@pytest.fixture
def make_event():
    def _make(source=StoreKey.PRIMARY, item=111, location=PRIMARY_LOCATION, available=5):
        return InventoryEvent(source=source, inventory_item_id=item, location_id=location, available=available)
    return _make
