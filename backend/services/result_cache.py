"""Read-through cache for bulk preference reads.

Two query shapes are cached: the list of all preference names, and the
records for a given set of names. Values stored here are immutable
(tuples of frozen snapshots), so every reader sees a complete past result.

Invalidation is driven by ``PreferenceStore`` when the set of names
changes. Field updates on existing records do not invalidate; readers
that need fresh state use the uncached ``find_by_name``.
"""

import json
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Protocol

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Generic fetch-or-compute store keyed by an opaque string."""

    def fetch(self, key: str, compute: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""

    def delete(self, key: str) -> None:
        """Drop ``key`` if present."""

    def clear(self) -> None:
        """Drop every entry."""


class InMemoryCacheBackend:
    """Thread-safe in-process cache backend.

    Concurrent misses on the same key are collapsed: one thread computes
    while the others wait for its result. A value computed across a
    ``delete``/``clear`` of its key is returned to its caller but not
    stored, so an invalidation is never undone by a slow reader.

    Per-key locks and in-flight markers only exist while a key is being
    fetched, so the bookkeeping never outgrows the stored entries.

    Args:
        ttl_seconds: Entry lifetime. ``0`` keeps entries until deleted.
        timer: Monotonic time source, injectable for tests.
    """

    def __init__(self, ttl_seconds: int = 0, timer: Callable[[], float] = time.monotonic):
        self._ttl_seconds = ttl_seconds
        self._timer = timer
        self._entries: dict[str, tuple[float | None, Any]] = {}
        self._pending: dict[str, object] = {}
        self._lock = threading.Lock()
        # key -> [lock, number of threads holding or waiting for it]
        self._key_locks: dict[str, list] = {}

    @contextmanager
    def _key_lock(self, key: str):
        with self._lock:
            slot = self._key_locks.get(key)
            if slot is None:
                slot = self._key_locks[key] = [threading.Lock(), 0]
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._key_locks[key]

    def _lookup(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if expires_at is not None and self._timer() >= expires_at:
                del self._entries[key]
                return False, None
            return True, value

    def fetch(self, key: str, compute: Callable[[], Any]) -> Any:
        hit, value = self._lookup(key)
        if hit:
            logger.debug("Cache hit: %s", key)
            return value

        with self._key_lock(key):
            # Another thread may have filled the key while we waited
            hit, value = self._lookup(key)
            if hit:
                logger.debug("Cache hit after wait: %s", key)
                return value

            # delete/clear drop the marker; a missing marker means "don't store"
            marker = object()
            with self._lock:
                self._pending[key] = marker
            logger.debug("Cache miss: %s", key)
            try:
                value = compute()
                with self._lock:
                    if self._pending.get(key) is marker:
                        expires_at = (
                            self._timer() + self._ttl_seconds if self._ttl_seconds else None
                        )
                        self._entries[key] = (expires_at, value)
                    else:
                        logger.debug("Discarding result invalidated during compute: %s", key)
            finally:
                with self._lock:
                    if self._pending.get(key) is marker:
                        del self._pending[key]
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._pending.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._pending.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullCacheBackend:
    """Backend that never stores; every fetch computes."""

    def fetch(self, key: str, compute: Callable[[], Any]) -> Any:
        return compute()

    def delete(self, key: str) -> None:
        pass

    def clear(self) -> None:
        pass


class ResultCache:
    """Preference query cache over a :class:`CacheBackend`."""

    KEY_PREFIX = "preference"
    ALL_NAMES_KEY = f"{KEY_PREFIX}:all_names"
    BY_NAMES_PREFIX = f"{KEY_PREFIX}:by_names:"

    def __init__(self, backend: CacheBackend | None = None):
        self.backend = backend if backend is not None else InMemoryCacheBackend()
        self._issued_keys: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def names_key(cls, names: Iterable[str]) -> str:
        """Cache key for a set of names.

        The names are deduplicated, sorted and JSON-encoded, so two keys are
        equal exactly when the name sets are equal.
        """
        encoded = json.dumps(sorted(set(names)), ensure_ascii=False, separators=(",", ":"))
        return f"{cls.BY_NAMES_PREFIX}{encoded}"

    def fetch(self, key: str, compute: Callable[[], Any]) -> Any:
        with self._lock:
            self._issued_keys.add(key)
        return self.backend.fetch(key, compute)

    def all_names(self, compute: Callable[[], tuple[str, ...]]) -> tuple[str, ...]:
        return self.fetch(self.ALL_NAMES_KEY, compute)

    def by_names(self, names: Iterable[str], compute: Callable[[], tuple]) -> tuple:
        return self.fetch(self.names_key(names), compute)

    def invalidate_name_sets(self) -> None:
        """Drop every cached result that depends on which names exist."""
        with self._lock:
            keys = {self.ALL_NAMES_KEY} | {
                key for key in self._issued_keys if key.startswith(self.BY_NAMES_PREFIX)
            }
            self._issued_keys -= keys
        for key in keys:
            self.backend.delete(key)
        logger.debug("Invalidated %d preference cache keys", len(keys))

    def clear(self) -> None:
        with self._lock:
            self._issued_keys.clear()
        self.backend.clear()
