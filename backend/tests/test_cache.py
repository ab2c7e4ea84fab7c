"""Keyed cache: per-user scoping, word invalidation and expiry."""

from uuid import uuid4

from core.cache import KeyedCache, word_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_returns_what_was_set():
    cache = KeyedCache()
    user = uuid4()
    cache.set(user, "stats", {"total": 3})

    assert cache.get(user, "stats") == {"total": 3}
    assert cache.get(uuid4(), "stats") is None


def test_invalidate_word_drops_word_and_aggregates_only():
    cache = KeyedCache()
    user, other = uuid4(), uuid4()
    w1, w2 = uuid4(), uuid4()

    cache.set(user, word_key(w1), "w1")
    cache.set(user, word_key(w2), "w2")
    cache.set(user, "stats", "stats")
    cache.set(user, ("words", None, None, None, False, "next_review", 0, 50), "page")
    cache.set(other, word_key(w1), "other-w1")
    cache.set(other, "stats", "other-stats")

    removed = cache.invalidate_word(user, w1)

    assert removed == 3
    assert cache.get(user, word_key(w1)) is None
    assert cache.get(user, "stats") is None
    assert cache.get(user, word_key(w2)) == "w2"
    assert cache.get(other, word_key(w1)) == "other-w1"
    assert cache.get(other, "stats") == "other-stats"


def test_invalidate_user():
    cache = KeyedCache()
    user, other = uuid4(), uuid4()
    cache.set(user, "a", 1)
    cache.set(user, word_key(uuid4()), 2)
    cache.set(other, "a", 3)

    assert cache.invalidate_user(user) == 2
    assert len(cache) == 1
    assert cache.invalidate_user(user) == 0


def test_entries_expire():
    clock = FakeClock()
    cache = KeyedCache(ttl_seconds=10, clock=clock)
    user = uuid4()
    cache.set(user, "stats", 1)
    cache.set(user, "pinned", 2, ttl_seconds=0)

    clock.now += 9
    assert cache.get(user, "stats") == 1

    clock.now += 2
    assert cache.get(user, "stats") is None
    assert cache.get(user, "pinned") == 2


def test_purge_expired():
    clock = FakeClock()
    cache = KeyedCache(ttl_seconds=5, clock=clock)
    user = uuid4()
    cache.set(user, "a", 1)
    cache.set(user, "b", 2, ttl_seconds=60)

    clock.now += 10
    assert cache.purge_expired() == 1
    assert len(cache) == 1


def test_clear():
    cache = KeyedCache()
    cache.set(uuid4(), "a", 1)
    cache.clear()
    assert len(cache) == 0


def test_full_cache_purges_expired_entries_first():
    clock = FakeClock()
    cache = KeyedCache(ttl_seconds=5, max_entries=3, clock=clock)
    user = uuid4()
    cache.set(user, ("words", "a"), 1)
    cache.set(user, ("words", "b"), 2)
    cache.set(user, "stats", 3, ttl_seconds=60)

    clock.now += 6
    cache.set(user, ("words", "c"), 4)

    assert len(cache) == 2
    assert cache.get(user, "stats") == 3
    assert cache.get(user, ("words", "c")) == 4


def test_full_cache_evicts_oldest_live_entry():
    cache = KeyedCache(max_entries=2)
    user, other = uuid4(), uuid4()
    cache.set(user, ("words", "a"), 1)
    cache.set(other, ("words", "b"), 2)

    cache.set(user, ("words", "c"), 3)

    assert len(cache) == 2
    assert cache.get(user, ("words", "a")) is None
    assert cache.get(other, ("words", "b")) == 2
    # Overwriting an existing key never evicts
    cache.set(user, ("words", "c"), 4)
    assert cache.get(other, ("words", "b")) == 2
