"""
Read-through, fail-open-to-stale cache for single upstream resources.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from app.upstream.errors import UpstreamError

from .core import CacheEntry, CacheLookup, CacheSource, Freshness
from .store import CacheStore, InMemoryCacheStore

logger = logging.getLogger("cache.tiered")

# A loader returns (payload, content_type) or raises UpstreamError
Loader = Callable[[], Tuple[bytes, str]]


class TieredResourceCache:
    """
    Tiered freshness cache wrapping one family of upstream resources.

    Per key:
    - Fresh entry: served immediately, upstream never contacted
    - Otherwise the loader runs; success replaces the entry wholesale
    - Loader failure with an entry younger than ``stale_ttl``: entry served as STALE
    - Loader failure with no entry, or one past ``stale_ttl``: the error propagates

    Loaders are responsible for classifying payloads: a challenge page must
    raise rather than return, so it can never be written as an entry.
    """

    def __init__(
        self,
        name: str,
        fresh_ttl: float,
        stale_ttl: float,
        store: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            name: Label used in logs and stats
            fresh_ttl: Seconds an entry is served without contacting upstream
            stale_ttl: Seconds (from fetch) an entry may back a failed refresh
            store: Backend store (defaults to an in-process dict)
            clock: Time source in epoch seconds
        """
        if stale_ttl and stale_ttl <= fresh_ttl:
            raise ValueError("stale_ttl must exceed fresh_ttl")
        self.name = name
        self.fresh_ttl = fresh_ttl
        self.stale_ttl = stale_ttl
        self._store = store if store is not None else InMemoryCacheStore()
        self._clock = clock

        self._stats_lock = threading.Lock()
        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "failures": 0,
        }

    def _count(self, stat: str) -> None:
        with self._stats_lock:
            self._stats[stat] += 1

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry for ``key`` without any freshness check."""
        return self._store.get(key)

    def has_servable(self, key: str) -> bool:
        """True if ``key`` holds an entry that could still back a failed refresh."""
        entry: Optional[CacheEntry] = self._store.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str, loader: Loader) -> CacheLookup:
        """
        Get a payload from cache or upstream.

        Args:
            key: Logical resource key (e.g. the upstream path)
            loader: Fetches and validates a fresh payload

        Returns:
            CacheLookup tagged HIT, MISS or STALE

        Raises:
            UpstreamError: If the loader fails and no servable entry exists
        """
        now = self._clock()
        entry: Optional[CacheEntry] = self._store.get(key)

        if entry is not None and entry.is_fresh(now):
            logger.debug(
                f"CACHE HIT (fresh): {self.name}:{key} [age={entry.age_seconds(now):.1f}s]"
            )
            self._count("hits_fresh")
            return CacheLookup(entry, CacheSource.HIT)

        if entry is None:
            logger.info(f"CACHE MISS: {self.name}:{key}")
        else:
            logger.info(
                f"CACHE EXPIRED: {self.name}:{key} [age={entry.age_seconds(now):.1f}s]"
            )

        try:
            payload, content_type = loader()
        except UpstreamError as e:
            return self._fall_back(key, e)

        fresh = CacheEntry(
            key=key,
            payload=payload,
            content_type=content_type,
            fetched_at=self._clock(),
            ttl_seconds=self.fresh_ttl,
            stale_ttl_seconds=self.stale_ttl,
        )
        self._store.set(key, fresh)
        self._count("misses")
        return CacheLookup(fresh, CacheSource.MISS)

    def _fall_back(self, key: str, error: UpstreamError) -> CacheLookup:
        # Re-read: a concurrent request may have stored a fresher entry meanwhile
        now = self._clock()
        entry: Optional[CacheEntry] = self._store.get(key)

        state = entry.freshness(now) if entry is not None else Freshness.EXPIRED

        if state is Freshness.FRESH:
            self._count("hits_fresh")
            return CacheLookup(entry, CacheSource.HIT)

        if state is Freshness.STALE_SERVABLE:
            logger.warning(
                f"CACHE STALE: {self.name}:{key} serving age="
                f"{entry.age_seconds(now):.1f}s after {error.reason}: {error}"
            )
            self._count("hits_stale")
            return CacheLookup(entry, CacheSource.STALE)

        logger.error(f"CACHE FAILED: {self.name}:{key} no fallback after {error.reason}: {error}")
        self._count("failures")
        raise error

    def invalidate(self, key: str) -> bool:
        """Drop the entry for ``key``. Returns True if one existed."""
        removed = self._store.invalidate(key)
        if removed:
            logger.info(f"Invalidated cache: {self.name}:{key}")
        return removed

    def clear(self) -> int:
        return self._store.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self._stats)
        total_hits = stats["hits_fresh"] + stats["hits_stale"]
        total = total_hits + stats["misses"] + stats["failures"]
        stats["entries"] = len(self._store.keys())
        stats["hit_rate_percent"] = round(total_hits / total * 100, 1) if total else 0
        stats["fresh_ttl"] = self.fresh_ttl
        stats["stale_ttl"] = self.stale_ttl
        return stats
