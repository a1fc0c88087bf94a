"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum


class DataCategory(Enum):
    """Categories of upstream data with different caching behaviors."""
    CAMERA_MANIFEST = "camera_manifest"   # 10 min fresh, 60 min stale
    CAMERA_NAMES = "camera_names"         # 5 min fresh, fan-out aggregate
    RWIS_MANIFEST = "rwis_manifest"       # 10 min fresh, 60 min stale
    SNAPSHOT = "snapshot"                 # 12 hours, then last-known-good
    MEDIA_URL = "media_url"               # 60 seconds, no stale tier


class CacheSource(Enum):
    """How a response was satisfied. Values double as X-Cache/X-Snapshot headers."""
    HIT = "HIT"                   # Fresh entry, upstream not contacted
    MISS = "MISS"                 # Fetched from upstream just now
    STALE = "STALE"               # Upstream failed, older data served
    PLACEHOLDER = "PLACEHOLDER"   # Nothing has ever been obtained for this key


class Freshness(Enum):
    FRESH = "fresh"
    STALE_SERVABLE = "stale_servable"
    EXPIRED = "expired"


@dataclass
class CacheEntry:
    """
    One cached upstream payload.

    ``stale_ttl_seconds`` is measured from ``fetched_at``, not from the end of
    the fresh window, and is always larger than ``ttl_seconds``.
    """
    key: str
    payload: bytes
    content_type: str
    fetched_at: float
    ttl_seconds: float
    stale_ttl_seconds: float = 0

    def age_seconds(self, now: float) -> float:
        """Seconds since data was fetched."""
        return now - self.fetched_at

    def is_fresh(self, now: float) -> bool:
        return self.age_seconds(now) < self.ttl_seconds

    def is_servable_stale(self, now: float) -> bool:
        """Past its TTL but still young enough to serve when upstream fails."""
        age = self.age_seconds(now)
        return self.ttl_seconds <= age < self.stale_ttl_seconds

    def is_expired(self, now: float) -> bool:
        return self.age_seconds(now) >= max(self.ttl_seconds, self.stale_ttl_seconds)

    def freshness(self, now: float) -> Freshness:
        if self.is_fresh(now):
            return Freshness.FRESH
        elif self.is_servable_stale(now):
            return Freshness.STALE_SERVABLE
        else:
            return Freshness.EXPIRED


@dataclass
class CacheLookup:
    """An entry plus how it was obtained."""
    entry: CacheEntry
    source: CacheSource

    @property
    def payload(self) -> bytes:
        return self.entry.payload

    @property
    def content_type(self) -> str:
        return self.entry.content_type
