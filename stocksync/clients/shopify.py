# stocksync/clients/shopify.py
from typing import Optional, Tuple, List

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import API_VERSION
from ..exceptions import StoreApiError, LocationNotFoundError
from ..models import ProductRecord, VariantRecord, parse_tags
from ..utils.logger import debug, info

PAGE_LIMIT = 250
CATALOG_FIELDS = "id,title,tags,variants"


def admin_base(domain: str) -> str:
    return f"https://{domain}/admin/api/{API_VERSION}"


def rest_headers(token: str) -> dict:
    return {"Content-Type": "application/json", "X-Shopify-Access-Token": token}


def _gid_to_id(gid: str) -> int:
    return int(str(gid).split("/")[-1])


# =========================================================
# GraphQL queries
# =========================================================

FIND_BY_BARCODE = """
query($q:String!) {
  productVariants(first: 10, query: $q) {
    edges {
      node {
        id
        sku
        barcode
        inventoryItem { id }
        product { id title tags }
      }
    }
  }
}
"""


class TransientApiError(StoreApiError):
    """Throttled or temporarily unavailable; retried by the adapter only."""
    pass


_READ_RETRY_STATUSES = (429, 502, 503, 504)
# a 5xx on a write may still have been applied, so only throttling is retried
_WRITE_RETRY_STATUSES = (429,)

_with_retry = retry(
    reraise=True,
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
    retry=retry_if_exception_type(TransientApiError),
)


class ShopifyStore:
    """
    Store adapter for one Shopify shop.

    Every failure (HTTP status, timeout, connection error, malformed body)
    surfaces as StoreApiError carrying the underlying cause. Throttled calls
    are retried here with exponential backoff; callers never retry.
    """

    def __init__(self, domain: str, token: str, name: str, timeout: int = 25,
                 session: Optional[requests.Session] = None):
        self.domain = domain
        self.token = token
        self.name = name
        self.timeout = timeout
        self.session = session or requests.Session()

    def __repr__(self):
        return f"<ShopifyStore {self.name} {self.domain}>"

    # ---------------------------------------------------------
    # Transport
    # ---------------------------------------------------------

    @_with_retry
    def _request(self, method: str, url: str, *, json=None, params=None,
                 retry_statuses=_READ_RETRY_STATUSES) -> requests.Response:
        if not url.startswith("http"):
            url = f"{admin_base(self.domain)}{url}"
        try:
            r = self.session.request(method, url, headers=rest_headers(self.token),
                                     json=json, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreApiError(self.name, f"{method} {url} failed: {e}", cause=e) from e
        if r.status_code in retry_statuses:
            raise TransientApiError(self.name, f"{method} {url} -> {r.status_code}", r.status_code)
        if not 200 <= r.status_code < 300:
            raise StoreApiError(self.name, f"{method} {url} -> {r.status_code} {r.text}", r.status_code)
        return r

    def _json(self, r: requests.Response) -> dict:
        try:
            return r.json()
        except ValueError as e:
            raise StoreApiError(self.name, f"invalid JSON from {r.url}", r.status_code, cause=e) from e

    def graphql(self, query: str, variables=None) -> dict:
        r = self._request("POST", "/graphql.json",
                          json={"query": query, "variables": variables or {}})
        body = self._json(r)
        if body.get("errors"):
            raise StoreApiError(self.name, f"GraphQL errors: {body['errors']}", r.status_code)
        return body.get("data") or {}

    # ---------------------------------------------------------
    # Catalog
    # ---------------------------------------------------------

    def get_tagged_catalog(self, tag: str) -> List[ProductRecord]:
        """Walk every products.json page (Link header cursor) and keep tagged ones."""
        products: List[ProductRecord] = []
        url = "/products.json"
        params = {"limit": PAGE_LIMIT, "fields": CATALOG_FIELDS}
        pages = 0
        while url:
            r = self._request("GET", url, params=params)
            pages += 1
            for p in self._json(r).get("products", []) or []:
                if tag in parse_tags(p.get("tags")):
                    products.append(ProductRecord.from_dict(p))
            url = (r.links or {}).get("next", {}).get("url")
            # the next URL carries page_info and must not be combined with filters
            params = None
        info(f"[{self.name}] loaded {len(products)} products tagged '{tag}' ({pages} pages)")
        return products

    def resolve_by_cross_store_id(self, cross_store_id: str) -> Optional[Tuple[ProductRecord, VariantRecord]]:
        data = self.graphql(FIND_BY_BARCODE, {"q": f'barcode:"{cross_store_id}"'})
        edges = (data.get("productVariants") or {}).get("edges") or []
        for edge in edges:
            node = edge["node"]
            # the search index is fuzzy; only an exact barcode is a match
            if (node.get("barcode") or "").strip() != str(cross_store_id):
                continue
            variant = VariantRecord(
                variant_id=_gid_to_id(node["id"]),
                inventory_item_id=_gid_to_id(node["inventoryItem"]["id"]),
                sku=node.get("sku") or None,
                cross_store_id=str(cross_store_id),
            )
            prod = node.get("product") or {}
            product = ProductRecord(
                product_id=_gid_to_id(prod["id"]),
                title=prod.get("title") or "",
                tags=parse_tags(prod.get("tags")),
                variants=(variant,),
            )
            return product, variant
        debug(f"[{self.name}] no variant with barcode {cross_store_id}")
        return None

    # ---------------------------------------------------------
    # Locations & inventory
    # ---------------------------------------------------------

    def get_location_id(self, location_name: str) -> int:
        r = self._request("GET", "/locations.json")
        for loc in self._json(r).get("locations", []) or []:
            if loc.get("name") == location_name:
                return int(loc["id"])
        raise LocationNotFoundError(self.name, f'location "{location_name}" not found')

    def get_inventory_level(self, inventory_item_id: int, location_id: int) -> int:
        r = self._request("GET", "/inventory_levels.json",
                          params={"inventory_item_ids": inventory_item_id, "location_ids": location_id})
        levels = self._json(r).get("inventory_levels", []) or []
        if not levels:
            raise StoreApiError(self.name, f"no inventory level for item {inventory_item_id} at {location_id}")
        return int(levels[0].get("available") or 0)

    def set_inventory_level(self, inventory_item_id: int, location_id: int, available: int):
        payload = {"location_id": int(location_id), "inventory_item_id": int(inventory_item_id),
                   "available": int(available)}
        self._request("POST", "/inventory_levels/set.json", json=payload,
                      retry_statuses=_WRITE_RETRY_STATUSES)

    def adjust_inventory_level(self, inventory_item_id: int, location_id: int, delta: int):
        payload = {"location_id": int(location_id), "inventory_item_id": int(inventory_item_id),
                   "available_adjustment": int(delta)}
        self._request("POST", "/inventory_levels/adjust.json", json=payload,
                      retry_statuses=_WRITE_RETRY_STATUSES)

    # ---------------------------------------------------------
    # Webhooks
    # ---------------------------------------------------------

    def ensure_webhook(self, topic: str, address: str) -> str:
        """Create or repoint the subscription for topic. Returns OK/UPDATED/CREATED."""
        r = self._request("GET", "/webhooks.json")
        found = [w for w in (self._json(r).get("webhooks") or []) if w.get("topic") == topic]

        if any(w.get("address") == address for w in found):
            return f"OK {topic}"

        if found:
            # repoint instead of creating a duplicate when the URL changes
            wid = found[0].get("id")
            self._request("PUT", f"/webhooks/{wid}.json",
                          json={"webhook": {"id": wid, "address": address, "format": "json"}},
                          retry_statuses=_WRITE_RETRY_STATUSES)
            return f"UPDATED {topic}"

        self._request("POST", "/webhooks.json",
                      json={"webhook": {"topic": topic, "address": address, "format": "json"}},
                      retry_statuses=_WRITE_RETRY_STATUSES)
        return f"CREATED {topic}"
