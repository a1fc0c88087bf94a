"""
Camera snapshot pipeline that always yields a renderable image.

Degrades through three tiers: a fresh fetch (or fresh cache hit), the
last image that ever loaded for the camera, and finally a flat gray
placeholder. It never produces an error for a well-formed request.
"""
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from app.cache import CacheEntry, CacheSource, CacheStore, InMemoryCacheStore
from app.upstream import (
    ACCEPT_IMAGE,
    ChallengePage,
    UnexpectedStatus,
    UpstreamError,
    UpstreamFetcher,
    is_safe_url,
    preview,
)

from .placeholder import PLACEHOLDER_CONTENT_TYPE, PLACEHOLDER_PNG
from .resolver import MediaUrlResolver

logger = logging.getLogger("cameras.snapshot")

DEFAULT_IMAGE_CONTENT_TYPE = "image/jpeg"

_POSITION_ID = re.compile(r"[0-9]+")


class InvalidSnapshotRequest(ValueError):
    """Missing, malformed or unsafe snapshot parameters."""


def is_position_id(value: Optional[str]) -> bool:
    """ASCII digits only; shared by every route that takes a camera id."""
    return bool(value) and _POSITION_ID.fullmatch(value) is not None


@dataclass(frozen=True)
class LastKnownGoodImage:
    key: str
    body: bytes
    content_type: str


@dataclass(frozen=True)
class SnapshotRequest:
    """A validated request for exactly one camera image."""
    position_id: Optional[str] = None
    url: Optional[str] = None

    @property
    def key(self) -> str:
        if self.position_id is not None:
            return f"mdt:{self.position_id}"
        return f"url:{self.url}"


@dataclass(frozen=True)
class SnapshotResult:
    body: bytes
    content_type: str
    source: CacheSource


def parse_snapshot_request(
    position_id: Optional[str],
    url: Optional[str],
    blocked_hosts: Iterable[str] = (),
) -> SnapshotRequest:
    """
    Validate query parameters before anything is fetched.

    A position id takes precedence when both are supplied, but a supplied
    URL must still pass the SSRF guard.

    Raises:
        InvalidSnapshotRequest: If neither parameter is usable, or either is unsafe
    """
    if not position_id and not url:
        raise InvalidSnapshotRequest("Missing id or url parameter")
    if url and not is_safe_url(url, blocked_hosts):
        raise InvalidSnapshotRequest("Invalid or disallowed URL")
    if position_id:
        if not is_position_id(position_id):
            raise InvalidSnapshotRequest("Invalid id")
        return SnapshotRequest(position_id=position_id)
    return SnapshotRequest(url=url)


class SnapshotPipeline:
    """
    Composes the resolver, fetcher, image cache and last-known-good store.

    The image cache holds CacheEntry objects with a long fresh TTL; the
    last-known-good store is only written on success and never expires.
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        resolver: MediaUrlResolver,
        fresh_ttl: float = 43200,
        timeout: float = 15.0,
        max_redirects: int = 5,
        image_store: Optional[CacheStore] = None,
        last_good_store: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._fetcher = fetcher
        self._resolver = resolver
        self._fresh_ttl = fresh_ttl
        self._timeout = timeout
        self._max_redirects = max_redirects
        self._images = image_store if image_store is not None else InMemoryCacheStore()
        self._last_good = last_good_store if last_good_store is not None else InMemoryCacheStore()
        self._clock = clock

        self._stats_lock = threading.Lock()
        self._stats = {source.value.lower(): 0 for source in CacheSource}

    def _record(self, result: SnapshotResult) -> SnapshotResult:
        with self._stats_lock:
            self._stats[result.source.value.lower()] += 1
        return result

    def get(self, request: SnapshotRequest) -> SnapshotResult:
        """
        Get an image for a validated request. Never raises.

        Returns:
            SnapshotResult tagged HIT, MISS, STALE or PLACEHOLDER
        """
        key = request.key
        cached: Optional[CacheEntry] = self._images.get(key)
        if cached is not None and cached.is_fresh(self._clock()):
            return self._record(SnapshotResult(cached.payload, cached.content_type, CacheSource.HIT))

        try:
            body, content_type = self._fetch(request)
        except UpstreamError as e:
            logger.warning(f"Snapshot {key} failed ({e.reason}): {e}")
            return self._record(self._fall_back(key))
        except Exception:
            logger.exception(f"Snapshot {key} failed unexpectedly")
            return self._record(self._fall_back(key))

        self._images.set(key, CacheEntry(
            key=key,
            payload=body,
            content_type=content_type,
            fetched_at=self._clock(),
            ttl_seconds=self._fresh_ttl,
        ))
        self._last_good.set(key, LastKnownGoodImage(key, body, content_type))
        return self._record(SnapshotResult(body, content_type, CacheSource.MISS))

    def _fetch(self, request: SnapshotRequest) -> Tuple[bytes, str]:
        if request.position_id is not None:
            target = self._resolver.resolve(request.position_id)
        else:
            target = request.url

        # SSRF guard runs inside, on the target and on every redirect hop
        result = self._fetcher.fetch_following_redirects(
            target, ACCEPT_IMAGE, self._timeout, max_redirects=self._max_redirects
        )
        if not result.ok:
            raise UnexpectedStatus(result.status, url=target)
        if not result.body:
            raise UpstreamError("Empty image body", url=target)

        content_type = result.content_type or DEFAULT_IMAGE_CONTENT_TYPE
        if content_type.lower().startswith("text/html"):
            raise ChallengePage(preview(result.body), url=target)
        return result.body, content_type

    def _fall_back(self, key: str) -> SnapshotResult:
        last_good: Optional[LastKnownGoodImage] = self._last_good.get(key)
        if last_good is not None:
            return SnapshotResult(last_good.body, last_good.content_type, CacheSource.STALE)
        return SnapshotResult(PLACEHOLDER_PNG, PLACEHOLDER_CONTENT_TYPE, CacheSource.PLACEHOLDER)

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["cached_images"] = len(self._images.keys())
        stats["last_known_good"] = len(self._last_good.keys())
        return stats
