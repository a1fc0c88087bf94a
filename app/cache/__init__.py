"""
Caching module with tiered freshness, swappable stores, and fail-open-to-stale reads.
"""
from .core import CacheEntry, CacheLookup, CacheSource, DataCategory, Freshness
from .store import CacheStore, InMemoryCacheStore
from .ttl_policies import build_ttl_config, get_ttl_for_category
from .tiered import TieredResourceCache

__all__ = [
    # Core types
    "CacheEntry",
    "CacheLookup",
    "CacheSource",
    "DataCategory",
    "Freshness",
    # Stores
    "CacheStore",
    "InMemoryCacheStore",
    # TTL policies
    "build_ttl_config",
    "get_ttl_for_category",
    # Tiered cache
    "TieredResourceCache",
]
