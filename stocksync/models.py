# stocksync/models.py
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple


class StoreKey(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"

    def other(self) -> "StoreKey":
        return StoreKey.SECONDARY if self is StoreKey.PRIMARY else StoreKey.PRIMARY


@dataclass(frozen=True)
class StoreIdentity:
    key: StoreKey
    name: str
    location_id: Optional[int] = None
    location_name: Optional[str] = None


def parse_tags(raw) -> frozenset:
    """Shopify REST returns tags as one comma-separated string."""
    if not raw:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(t.strip() for t in raw if t and t.strip())


@dataclass(frozen=True)
class VariantRecord:
    variant_id: int
    inventory_item_id: int
    sku: Optional[str] = None
    cross_store_id: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "VariantRecord":
        barcode = d.get("cross_store_id", d.get("barcode"))
        return cls(
            variant_id=int(d.get("variant_id", d.get("id"))),
            inventory_item_id=int(d["inventory_item_id"]),
            sku=d.get("sku") or None,
            cross_store_id=(str(barcode).strip() or None) if barcode else None,
        )


@dataclass(frozen=True)
class ProductRecord:
    product_id: int
    title: str
    tags: frozenset = field(default_factory=frozenset)
    variants: Tuple[VariantRecord, ...] = ()

    @classmethod
    def from_dict(cls, d: dict) -> "ProductRecord":
        return cls(
            product_id=int(d.get("product_id", d.get("id"))),
            title=d.get("title") or "",
            tags=parse_tags(d.get("tags")),
            variants=tuple(
                VariantRecord.from_dict(v)
                for v in (d.get("variants") or [])
                if v.get("inventory_item_id") is not None
            ),
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "tags": sorted(self.tags),
            "variants": [asdict(v) for v in self.variants],
        }

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(frozen=True)
class InventoryEvent:
    source: StoreKey
    inventory_item_id: int
    location_id: int
    available: int

    @classmethod
    def from_webhook(cls, source: StoreKey, payload: dict) -> "InventoryEvent":
        """Raises KeyError/TypeError/ValueError on a malformed payload."""
        return cls(
            source=source,
            inventory_item_id=int(payload["inventory_item_id"]),
            location_id=int(payload["location_id"]),
            available=int(payload["available"]),
        )

    def to_dict(self) -> dict:
        return {
            "source_store": self.source.value,
            "inventory_item_id": self.inventory_item_id,
            "location_id": self.location_id,
            "available": self.available,
        }


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SyncLogEntry:
    source_store: str
    target_store: str
    identifier: str
    value: int
    kind: str                  # "delta" | "full"
    outcome: str = "applied"   # "applied" | "not_enrolled"
    timestamp: str = field(default_factory=utcnow_iso)


@dataclass
class ErrorLogEntry:
    message: str
    context: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=utcnow_iso)
