# stocksync/services/sync_log.py
import json
import secrets
import time
from dataclasses import asdict
from typing import List

from ..clients.state import StateStore
from ..models import SyncLogEntry, ErrorLogEntry, utcnow_iso

SYNC_LOG_PREFIX = "sync:log:"
ERROR_LOG_PREFIX = "error:log:"
SYNC_COUNTER = "sync:count:total"
ERROR_COUNTER = "error:count:total"

DEFAULT_LOG_TTL = 7 * 86400


class SyncLog:
    """Append-only sync/error records with a fixed retention, plus totals."""

    def __init__(self, state: StateStore, ttl: int = DEFAULT_LOG_TTL):
        self.state = state
        self.ttl = ttl

    @staticmethod
    def _entry_key(prefix: str) -> str:
        # zero-padded epoch millis keeps lexical order == time order
        return f"{prefix}{int(time.time() * 1000):013d}:{secrets.token_hex(4)}"

    def record_sync(self, entry: SyncLogEntry, count: bool = True):
        self.state.set_with_ttl(self._entry_key(SYNC_LOG_PREFIX), json.dumps(asdict(entry)), self.ttl)
        if count:
            self.state.increment_counter(SYNC_COUNTER)

    def record_error(self, entry: ErrorLogEntry):
        self.state.set_with_ttl(self._entry_key(ERROR_LOG_PREFIX), json.dumps(asdict(entry), default=str), self.ttl)
        self.state.increment_counter(ERROR_COUNTER)

    def _recent(self, prefix: str, limit: int) -> List[dict]:
        keys = sorted(self.state.list_keys_by_prefix(prefix), reverse=True)
        out = []
        for key in keys:
            if len(out) >= limit:
                break
            raw = self.state.get(key)
            if raw:  # may have expired since the scan
                out.append(json.loads(raw))
        return out

    def recent_syncs(self, limit: int = 50) -> List[dict]:
        return self._recent(SYNC_LOG_PREFIX, limit)

    def recent_errors(self, limit: int = 50) -> List[dict]:
        return self._recent(ERROR_LOG_PREFIX, limit)

    def stats(self) -> dict:
        return {
            "total_syncs": self.state.get_int(SYNC_COUNTER),
            "total_errors": self.state.get_int(ERROR_COUNTER),
            "timestamp": utcnow_iso(),
        }
