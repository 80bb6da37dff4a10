# app/utils/cache.py
"""Tiny per-process TTL cache with explicit invalidation and metrics."""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable


class TTLCache:
    """Tiny per-process TTL cache with explicit invalidation.

    Entries are expired lazily: a read that finds a stale entry drops it and
    reports a miss. There is no background sweep.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: int = 30,
        maxsize: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the TTL cache.
        Args:
            enabled: Whether the cache is enabled
            ttl_seconds: Time-to-live for cache entries in seconds
            maxsize: Maximum number of entries in the cache
            clock: Monotonic time source (seconds)
        """
        self.enabled = enabled and ttl_seconds > 0 and maxsize > 0
        self.ttl = max(1, ttl_seconds) if self.enabled else 0
        self.maxsize = max(1, maxsize) if self.enabled else 0
        self._clock = clock
        self._store: OrderedDict[Any, tuple[float, Any]] = OrderedDict()
        self._lock = Lock()

        # Metrics tracking
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: Any) -> Any:
        """Get a cache entry by key; None when missing or expired."""
        if not self.enabled:
            return None

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry:
                expires_at, value = entry
                if expires_at > now:
                    self._hits += 1
                    self._store.move_to_end(key)
                    return value
                self._store.pop(key, None)
                self._expirations += 1
            self._misses += 1
        return None

    def set(self, key: Any, value: Any) -> None:
        """Set a cache entry with the given key and value."""
        if not self.enabled:
            return
        with self._lock:
            self._put_locked(key, value)

    def _put_locked(self, key: Any, value: Any) -> None:
        # Caller holds self._lock
        if value is None:
            self._store.pop(key, None)
            return
        expires_at = self._clock() + self.ttl
        self._store[key] = (expires_at, value)
        self._store.move_to_end(key)
        if len(self._store) > self.maxsize:
            self._store.popitem(last=False)
            self._evictions += 1

    def invalidate_where(self, predicate: Callable[[Any], bool]) -> int:
        """Invalidate every entry whose key satisfies ``predicate``.

        Returns:
            Number of entries removed
        """
        if not self.enabled:
            return 0
        with self._lock:
            doomed = [key for key in self._store if predicate(key)]
            for key in doomed:
                del self._store[key]
        return len(doomed)

    def keys(self) -> list[Any]:
        """Snapshot of the keys currently held (expired entries included)."""
        with self._lock:
            return list(self._store.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics for monitoring.

        Returns:
            Dictionary with cache metrics including:
            - enabled: Whether cache is enabled
            - size: Current number of entries
            - maxsize: Maximum capacity
            - ttl_seconds: Time-to-live for entries
            - hits / misses: Lookup outcomes
            - hit_rate: Cache hit rate percentage (0-100)
            - evictions: Number of evictions due to size limit
            - expirations: Entries dropped on read because their TTL passed
            - utilization: Cache utilization percentage (0-100)
        """
        with self._lock:
            size = len(self._store)
            hits = self._hits
            misses = self._misses
            evictions = self._evictions
            expirations = self._expirations

        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0.0
        utilization = (size / self.maxsize * 100) if self.maxsize > 0 else 0.0

        return {
            "enabled": self.enabled,
            "size": size,
            "maxsize": self.maxsize,
            "ttl_seconds": self.ttl,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hit_rate, 2),
            "evictions": evictions,
            "expirations": expirations,
            "utilization": round(utilization, 2),
        }


class RecommendationCache(TTLCache):
    """TTL cache for generated recommendation sets, keyed by ``(plant_id, options_digest)``.

    Owned by the service container and injected into the recommendation
    engine; every read and write goes through the inherited lock, so the
    engine may be called from scheduler workers and request threads alike.

    Each plant carries a generation number that ``clear_plant`` bumps. A set
    computed before a clear is written with ``set_if_generation`` and is
    dropped if the plant's generation moved in the meantime.
    """

    DEFAULT_TTL_SECONDS = 3600

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        maxsize: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(enabled=enabled, ttl_seconds=ttl_seconds, maxsize=maxsize, clock=clock)
        self._generations: dict[int, int] = {}

    @staticmethod
    def make_key(plant_id: int, options_digest: str) -> tuple[int, str]:
        return (int(plant_id), options_digest)

    def generation(self, plant_id: int) -> int:
        with self._lock:
            return self._generations.get(int(plant_id), 0)

    def set_if_generation(self, key: tuple[int, str], generation: int, value: Any) -> bool:
        """Store ``value`` only if the plant has not been cleared since ``generation`` was read.

        Returns:
            True when the entry was written
        """
        if not self.enabled:
            return False
        with self._lock:
            if self._generations.get(key[0], 0) != generation:
                return False
            self._put_locked(key, value)
            return True

    def clear_plant(self, plant_id: int) -> int:
        """Drop every cached entry generated for ``plant_id`` and invalidate in-flight writes."""
        target = int(plant_id)
        with self._lock:
            self._generations[target] = self._generations.get(target, 0) + 1
        return self.invalidate_where(lambda key: isinstance(key, tuple) and key[0] == target)


class CacheRegistry:
    """
    Registry for tracking TTLCache instances across services.

    Provides centralized monitoring of all caches in the application.
    """

    def __init__(self) -> None:
        """Initialize the cache registry."""
        self._caches: dict[str, TTLCache] = {}
        self._registry_lock = Lock()

    def register(self, name: str, cache: TTLCache) -> None:
        """
        Register a cache for monitoring.

        Args:
            name: Unique identifier for the cache (e.g., "recommendations.results")
            cache: TTLCache instance to register
        """
        with self._registry_lock:
            if name in self._caches:
                raise ValueError(f"Cache '{name}' is already registered")
            self._caches[name] = cache

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        """Get statistics for all registered caches."""
        with self._registry_lock:
            return {name: cache.get_stats() for name, cache in self._caches.items()}
