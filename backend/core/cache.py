"""In-process TTL cache scoped per user.

Entries live under ``(user_id, key)``. A per-user key index lets a write
to one word invalidate exactly the entries it affects: the word itself
and the user's aggregate views (lists, stats, due queue). Entries of
other users are never touched.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable

from core.config import settings
from core.logging import cache_logger

log = cache_logger()

WORD_KEY = "word"


def word_key(word_id) -> tuple[str, str]:
    return (WORD_KEY, str(word_id))


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float | None


class KeyedCache:
    """TTL cache with explicit (user_id, word_id) invalidation."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[tuple[str, Hashable], _Entry] = {}
        self._by_user: dict[str, set[Hashable]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, user_id, key: Hashable) -> Any | None:
        full_key = (str(user_id), key)
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            self._drop(full_key)
            return None
        return entry.value

    def set(self, user_id, key: Hashable, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = self._clock() + ttl if ttl > 0 else None
        uid = str(user_id)
        if (uid, key) not in self._entries and len(self._entries) >= self.max_entries:
            self._make_room()
        self._entries[(uid, key)] = _Entry(value, expires_at)
        self._by_user.setdefault(uid, set()).add(key)

    def invalidate_word(self, user_id, word_id) -> int:
        """Drop one word's entry plus the user's aggregate entries."""
        uid = str(user_id)
        target = word_key(word_id)
        keys = self._by_user.get(uid, set())
        doomed = [k for k in keys if k == target or not _is_word_key(k)]
        for key in doomed:
            self._drop((uid, key))
        log.debug("cache_invalidated", user_id=uid, word_id=str(word_id), removed=len(doomed))
        return len(doomed)

    def invalidate_user(self, user_id) -> int:
        uid = str(user_id)
        keys = list(self._by_user.get(uid, ()))
        for key in keys:
            self._drop((uid, key))
        return len(keys)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [
            full_key for full_key, entry in self._entries.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for full_key in expired:
            self._drop(full_key)
        return len(expired)

    def _make_room(self) -> None:
        """Purge expired entries, evicting the oldest if the cache is still full."""
        if self.purge_expired():
            return
        oldest = next(iter(self._entries))
        self._drop(oldest)
        log.debug("cache_evicted", user_id=oldest[0])

    def clear(self) -> None:
        self._entries.clear()
        self._by_user.clear()

    def _drop(self, full_key: tuple[str, Hashable]) -> None:
        self._entries.pop(full_key, None)
        uid, key = full_key
        keys = self._by_user.get(uid)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._by_user[uid]


def _is_word_key(key: Hashable) -> bool:
    return isinstance(key, tuple) and len(key) == 2 and key[0] == WORD_KEY


vocabulary_cache = KeyedCache(
    ttl_seconds=settings.CACHE_TTL_SECONDS,
    max_entries=settings.CACHE_MAX_ENTRIES,
)


def get_cache() -> KeyedCache:
    """Dependency returning the process-wide vocabulary cache."""
    return vocabulary_cache
