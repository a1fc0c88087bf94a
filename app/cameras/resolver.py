"""
Resolves opaque camera position ids to time-limited image URLs.

The ATMS API rotates image URLs about once a minute and an expired one
reliably 404s, so a resolved URL is either fresh or useless: failures are
propagated instead of falling back to an older URL.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from app.cache import CacheStore, InMemoryCacheStore
from app.upstream import ResolutionFailure, UpstreamFetcher

logger = logging.getLogger("cameras.resolver")

LAST_IMAGES_PATH = "/atms/public/camera/lastFiveImages/{position_id}"
CAMERAS_PAGE_PATH = "/atms/public/cameras"


@dataclass(frozen=True)
class ResolvedMediaURL:
    source_id: str
    url: str
    resolved_at: float


def extract_latest_image_url(document: Any) -> str:
    """
    Pull the newest public image URL out of a lastFiveImages response.

    Raises:
        ResolutionFailure: If the response carries no usable URL
    """
    data = document.get("data") if isinstance(document, dict) else None
    images = data.get("lastFivePolledImages") if isinstance(data, dict) else None
    if not isinstance(images, list) or not images:
        raise ResolutionFailure("No images in metadata response")

    latest = images[0]
    url = latest.get("publicSharePath") if isinstance(latest, dict) else None
    if not isinstance(url, str) or not url.strip():
        raise ResolutionFailure("No publicSharePath in metadata response")
    return url.strip()


class MediaUrlResolver:
    """
    Short-TTL cache from position id to its current image URL.

    Usage:
        resolver = MediaUrlResolver(fetcher, "https://app.mdt.mt.gov", ttl=60)
        url = resolver.resolve("1234")
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        base_url: str,
        ttl: float = 60,
        timeout: float = 8.0,
        store: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._ttl = ttl
        self._timeout = timeout
        self._store = store if store is not None else InMemoryCacheStore()
        self._clock = clock

        self._stats_lock = threading.Lock()
        self._stats = {"hits": 0, "resolutions": 0, "failures": 0}

    def _count(self, stat: str) -> None:
        with self._stats_lock:
            self._stats[stat] += 1

    def cached(self, position_id: str) -> Optional[ResolvedMediaURL]:
        """Return the cached resolution if it is still within TTL."""
        entry: Optional[ResolvedMediaURL] = self._store.get(position_id)
        if entry is not None and self._clock() - entry.resolved_at < self._ttl:
            return entry
        return None

    def resolve(self, position_id: str) -> str:
        """
        Get the current image URL for a position id.

        Raises:
            ResolutionFailure: If the metadata has no usable URL
            UpstreamError: If the metadata call itself fails
        """
        entry = self.cached(position_id)
        if entry is not None:
            self._count("hits")
            return entry.url

        metadata_url = self._base_url + LAST_IMAGES_PATH.format(position_id=position_id)
        try:
            document = self._fetcher.fetch_json(
                metadata_url,
                timeout=self._timeout,
                referer=self._base_url + CAMERAS_PAGE_PATH,
            )
            url = extract_latest_image_url(document)
        except Exception:
            self._count("failures")
            raise

        self._store.set(
            position_id,
            ResolvedMediaURL(source_id=position_id, url=url, resolved_at=self._clock()),
        )
        self._count("resolutions")
        logger.debug(f"Resolved position {position_id} -> {url}")
        return url

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["entries"] = len(self._store.keys())
        stats["ttl"] = self._ttl
        return stats
