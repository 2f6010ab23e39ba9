# stocksync/services/debounce.py
import threading
from typing import Any, Callable, Dict, Hashable, Tuple

from ..utils.logger import debug, error

DEFAULT_DELAY_MS = 2000


class Debouncer:
    """
    Per-key trailing-edge debounce.

    schedule() replaces whatever is pending for the key, so only the last
    action registered before the window closes runs. The seed given by the
    call that opens the window is kept across resets and handed to that
    action. Timers live in this process only; other instances keep their
    own table.
    """

    def __init__(self, delay_ms: int = DEFAULT_DELAY_MS, timer_factory=threading.Timer):
        self.delay = delay_ms / 1000.0
        self._timer_factory = timer_factory
        self._pending: Dict[Hashable, Tuple[object, Any]] = {}
        self._lock = threading.Lock()

    def schedule(self, key: Hashable, action: Callable[[Any], None], seed: Any = None) -> Any:
        """Arm or re-arm the timer for key; returns the seed the window carries."""
        entry = None

        def fire():
            with self._lock:
                # superseded between expiry and acquiring the lock
                if self._pending.get(key) is not entry:
                    return
                del self._pending[key]
            try:
                action(entry[1])
            except Exception as e:
                error(f"[debounce] action for {key} raised: {e}")

        timer = self._timer_factory(self.delay, fire)
        timer.daemon = True
        with self._lock:
            previous = self._pending.get(key)
            if previous is not None:
                previous[0].cancel()
                seed = previous[1]
                debug(f"[debounce] reset {key}")
            entry = (timer, seed)
            self._pending[key] = entry
        timer.start()
        return seed

    def cancel(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def cancel_all(self):
        with self._lock:
            timers = [t for t, _ in self._pending.values()]
            self._pending.clear()
        for t in timers:
            t.cancel()
