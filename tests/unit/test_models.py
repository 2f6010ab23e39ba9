import pytest

from stocksync.models import StoreKey, ProductRecord, InventoryEvent, parse_tags


def test_other_is_symmetric():
    assert StoreKey.PRIMARY.other() is StoreKey.SECONDARY
    assert StoreKey.SECONDARY.other() is StoreKey.PRIMARY
    assert StoreKey("primary") is StoreKey.PRIMARY


def test_parse_tags_handles_rest_and_graphql_shapes():
    assert parse_tags("sync-stock, Oil ,") == frozenset({"sync-stock", "Oil"})
    assert parse_tags(["a", " b "]) == frozenset({"a", "b"})
    assert parse_tags(None) == frozenset()


def test_product_from_shopify_and_back():
    raw = {
        "id": 1, "title": "Oil", "tags": "sync-stock",
        "variants": [
            {"id": 11, "inventory_item_id": 111, "barcode": " 3760001 ", "sku": "OIL"},
            {"id": 12, "inventory_item_id": 112, "barcode": "", "sku": ""},
            {"id": 13},  # no inventory item: not syncable
        ],
    }
    product = ProductRecord.from_dict(raw)

    assert product.has_tag("sync-stock")
    assert [v.cross_store_id for v in product.variants] == ["3760001", None]
    assert product.variants[1].sku is None
    assert ProductRecord.from_dict(product.to_dict()) == product


def test_event_from_webhook():
    event = InventoryEvent.from_webhook(StoreKey.SECONDARY, {
        "inventory_item_id": 911, "location_id": "2002", "available": 4, "updated_at": "x"})

    assert event == InventoryEvent(StoreKey.SECONDARY, 911, 2002, 4)
    assert event.to_dict()["source_store"] == "secondary"


@pytest.mark.parametrize("payload", [
    {"location_id": 1, "available": 1},
    {"inventory_item_id": 1, "location_id": 1, "available": None},
    {"inventory_item_id": "abc", "location_id": 1, "available": 1},
])
def test_event_from_malformed_webhook(payload):
    with pytest.raises((KeyError, TypeError, ValueError)):
        InventoryEvent.from_webhook(StoreKey.PRIMARY, payload)
