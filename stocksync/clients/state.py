# stocksync/clients/state.py
import re
from typing import Optional, List

import redis

from ..utils.logger import info, warn


def normalize_redis_url(url: str) -> str:
    """Accept the `redis-cli --tls -u redis://...` snippet some hosts hand out."""
    if url and url.startswith("redis-cli"):
        m = re.search(r"rediss?://[^\s]+", url)
        if not m:
            raise ValueError(f"Could not parse Redis URL from CLI format: {url}")
        found = m.group(0)
        if "--tls" in url and found.startswith("redis://"):
            found = found.replace("redis://", "rediss://", 1)
        return found
    return url


class StateStore:
    """
    TTL key/value substrate shared by every engine instance.

    All writes are plain SET with expiry (last writer wins); nothing here is
    transactional across keys.
    """

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "StateStore":
        url = normalize_redis_url(url)
        client = redis.Redis.from_url(url, decode_responses=True)
        info(f"[state] redis client configured ({url.split('@')[-1]})")
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set_with_ttl(self, key: str, value, ttl_seconds: int):
        self.client.set(key, value, ex=int(ttl_seconds))

    def delete(self, key: str):
        self.client.delete(key)

    def increment_counter(self, key: str) -> int:
        return int(self.client.incr(key))

    def get_int(self, key: str) -> int:
        raw = self.get(key)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            warn(f"[state] non-integer value under {key}: {raw!r}")
            return 0

    def list_keys_by_prefix(self, prefix: str) -> List[str]:
        # linear SCAN is fine at log volumes; KEYS would block the server
        return list(self.client.scan_iter(match=f"{prefix}*", count=500))

    def ping(self) -> bool:
        return bool(self.client.ping())
