import threading
from typing import Any, Hashable, Optional

from cachetools import LRUCache

import logging

logger = logging.getLogger(__name__)


class EntityCache:
    """
    Process-local read-through cache for entity snapshots.

    Features:
    - Bounded LRU storage (oldest entries evicted past ``maxsize``)
    - No TTL: entries live until evicted or explicitly invalidated
    - Safe for concurrent access from the event loop and worker threads
    - Versioned keys, so a slow load cannot overwrite a newer write

    The lock only guards the mapping itself. Loads from the store happen in
    the caller, outside the lock. A loader takes ``version(key)`` before it
    reads the store and stores its result with ``put_if_unchanged``.
    """

    def __init__(self, maxsize: int = 10_000, namespace: str = ""):
        self.namespace = namespace
        self._data: LRUCache = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

        # Logical clock of writes. _stamps holds the clock value of the last
        # put/invalidate per key; any key without a stamp is at _floor.
        self._clock = 0
        self._floor = 0
        self._stamps: dict = {}

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "invalidations": 0,
            "stale_loads": 0,
        }

    def _key(self, key: Hashable) -> Hashable:
        """Build namespaced cache key."""
        return f"{self.namespace}:{key}" if self.namespace else key

    def _touch(self, cache_key: Hashable) -> None:
        # caller holds the lock
        self._clock += 1
        self._stamps[cache_key] = self._clock
        if len(self._stamps) > self._data.maxsize:
            # forgetting stamps raises the floor, so in-flight loads are rejected
            self._stamps.clear()
            self._floor = self._clock

    def _version(self, cache_key: Hashable) -> int:
        return self._stamps.get(cache_key, self._floor)

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value or None. Never touches the store."""
        with self._lock:
            value = self._data.get(self._key(key))
            if value is None:
                self.stats["misses"] += 1
            else:
                self.stats["hits"] += 1

        logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {key}")
        return value

    def version(self, key: Hashable) -> int:
        """Token for ``put_if_unchanged``. Changes on every put or invalidate."""
        with self._lock:
            return self._version(self._key(key))

    def put(self, key: Hashable, value: Any) -> None:
        """Unconditionally overwrite the entry for ``key``."""
        with self._lock:
            cache_key = self._key(key)
            self._data[cache_key] = value
            self._touch(cache_key)
            self.stats["writes"] += 1

    def put_if_unchanged(self, key: Hashable, value: Any, version: int) -> bool:
        """
        Store ``value`` only if nothing wrote or invalidated ``key`` since
        ``version`` was taken. Returns whether the value was stored.
        """
        with self._lock:
            cache_key = self._key(key)
            if self._version(cache_key) != version:
                self.stats["stale_loads"] += 1
                stored = False
            else:
                self._data[cache_key] = value
                self._touch(cache_key)
                self.stats["writes"] += 1
                stored = True

        if not stored:
            logger.debug(f"Cache load discarded, key changed meanwhile: {key}")
        return stored

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            cache_key = self._key(key)
            self._data.pop(cache_key, None)
            self._touch(cache_key)
            self.stats["invalidations"] += 1

    def invalidate_all(self) -> None:
        with self._lock:
            self._data.clear()
            self._stamps.clear()
            self._clock += 1
            self._floor = self._clock
            self.stats["invalidations"] += 1
        logger.info(f"Cache cleared ({self.namespace or 'default'})")

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return self._key(key) in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            total = self.stats["hits"] + self.stats["misses"]
            return {
                **self.stats,
                "size": len(self._data),
                "maxsize": self._data.maxsize,
                "hit_rate": self.stats["hits"] / total if total > 0 else 0,
            }
