import threading

from stocksync.models import StoreKey
from stocksync.services.debounce import Debouncer
from stocksync.services.locks import EchoLockManager

P, S = StoreKey.PRIMARY, StoreKey.SECONDARY


# ---------------------------------------------------------------------------
# Echo locks
# ---------------------------------------------------------------------------

def test_lock_expires_after_ttl(state, fake_redis):
    locks = EchoLockManager(state, ttl=25)
    locks.acquire(S, 911)

    assert locks.is_locked(S, 911)
    fake_redis.advance(24)
    assert locks.is_locked(S, 911)
    fake_redis.advance(1)
    assert not locks.is_locked(S, 911)


def test_acquire_is_idempotent_and_refreshes(state, fake_redis):
    locks = EchoLockManager(state, ttl=30)
    locks.acquire(P, 1)
    fake_redis.advance(20)
    locks.acquire(P, 1)
    fake_redis.advance(20)

    assert locks.is_locked(P, 1)
    assert fake_redis.get("sync:lock:primary:1") == "1"


def test_explicit_ttl_overrides_default(state, fake_redis):
    locks = EchoLockManager(state, ttl=30)
    locks.acquire(P, 1, ttl_seconds=20)

    assert fake_redis.ttl("sync:lock:primary:1") == 20


def test_locks_are_per_store_and_item(state):
    locks = EchoLockManager(state)
    locks.acquire(P, 1)

    assert not locks.is_locked(S, 1)
    assert not locks.is_locked(P, 2)


# ---------------------------------------------------------------------------
# Debounce
# ---------------------------------------------------------------------------

def test_only_last_action_runs(timers):
    debouncer = Debouncer(2000, timer_factory=timers)
    ran = []

    debouncer.schedule("k", lambda _: ran.append(1))
    debouncer.schedule("k", lambda _: ran.append(2))
    debouncer.schedule("k", lambda _: ran.append(3))
    timers.fire_all()

    assert ran == [3]
    assert not debouncer.pending("k")


def test_superseded_timer_firing_late_is_ignored(timers):
    debouncer = Debouncer(2000, timer_factory=timers)
    ran = []
    debouncer.schedule("k", lambda _: ran.append("old"))
    stale = timers.timers[0]
    debouncer.schedule("k", lambda _: ran.append("new"))

    # expiry raced with the reschedule; the stale callback must not run
    stale.function()

    assert ran == []
    assert debouncer.pending("k")


def test_keys_are_independent(timers):
    debouncer = Debouncer(2000, timer_factory=timers)
    ran = []
    debouncer.schedule(("primary", "a"), lambda _: ran.append("a"))
    debouncer.schedule(("primary", "b"), lambda _: ran.append("b"))
    timers.fire_all()

    assert sorted(ran) == ["a", "b"]


def test_cancel(timers):
    debouncer = Debouncer(2000, timer_factory=timers)
    debouncer.schedule("k", lambda _: None)

    assert debouncer.cancel("k") is True
    assert debouncer.cancel("k") is False
    assert timers.timers[0].cancelled


def test_action_exception_does_not_escape(timers):
    debouncer = Debouncer(2000, timer_factory=timers)

    def boom(_):
        raise RuntimeError("boom")

    debouncer.schedule("k", boom)
    timers.fire_all()

    assert not debouncer.pending("k")


def test_real_timer_fires_after_quiet_window():
    debouncer = Debouncer(delay_ms=20)
    done = threading.Event()
    values = []

    def record(v):
        values.append(v)
        done.set()

    debouncer.schedule("k", lambda _: record(1))
    debouncer.schedule("k", lambda _: record(2))

    assert done.wait(2.0)
    assert values == [2]


def test_window_keeps_the_seed_it_opened_with(timers):
    debouncer = Debouncer(2000, timer_factory=timers)
    seen = []

    assert debouncer.schedule("k", seen.append, seed=10) == 10
    assert debouncer.schedule("k", seen.append, seed=5) == 10
    timers.fire_all()

    # a fresh window takes the new seed
    debouncer.schedule("k", seen.append, seed=3)
    timers.fire_all()

    assert seen == [10, 3]
