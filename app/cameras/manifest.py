"""
Camera manifest proxy: upstream JSON paths behind a tiered cache.
"""
import json
import logging
import re
import time
from typing import Any, Callable, Optional, Tuple

from app.cache import CacheLookup, TieredResourceCache
from app.upstream import (
    ACCEPT_JSON,
    ChallengePage,
    EmptyResult,
    UnexpectedStatus,
    UpstreamFetcher,
    Verdict,
    classify,
    preview,
)

logger = logging.getLogger("cameras.manifest")

CAMERA_MANIFEST_PATH = "/map/mapIcons/Cameras"

# Fields under which list-style payloads carry their items
ITEM_LIST_FIELDS = ("item2", "data", "cameras", "items")

_UNSAFE_PATH = re.compile(r"[\s\\]|[\x00-\x1f\x7f]")


class InvalidUpstreamPath(ValueError):
    """Caller-supplied path could escape the configured upstream host."""


def normalize_upstream_path(path: Optional[str]) -> str:
    """
    Validate a caller-supplied upstream path.

    Only host-relative paths are accepted; anything that could be read as an
    absolute or protocol-relative URL is refused.

    Raises:
        InvalidUpstreamPath: If the path is missing or unsafe
    """
    if not path:
        raise InvalidUpstreamPath("Missing upstream path")
    if not path.startswith("/") or path.startswith("//"):
        raise InvalidUpstreamPath("Upstream path must start with a single '/'")
    if _UNSAFE_PATH.search(path):
        raise InvalidUpstreamPath("Upstream path contains illegal characters")
    if "@" in path.split("?", 1)[0]:
        raise InvalidUpstreamPath("Upstream path contains illegal characters")
    return path


def count_items(document: Any) -> Optional[int]:
    """
    Count items in a list-style payload.

    Returns:
        Item count, or None if the payload has no recognizable item list
    """
    if isinstance(document, list):
        return len(document)
    if isinstance(document, dict):
        for field in ITEM_LIST_FIELDS:
            value = document.get(field)
            if isinstance(value, list):
                return len(value)
    return None


class ManifestService:
    """
    Serves upstream JSON paths through a read-through, fail-open-to-stale cache.

    A zero-item camera manifest is treated as a transient upstream glitch: it
    is retried with doubling backoff, and if it stays empty the previous good
    manifest (if any) is served instead. With nothing to fall back to, the
    empty body is served as-is. Other paths are never retried.
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        base_url: str,
        cache: TieredResourceCache,
        timeout: float = 10.0,
        empty_retries: int = 3,
        retry_backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._cache = cache
        self._timeout = timeout
        self._empty_retries = max(0, empty_retries)
        self._retry_backoff = retry_backoff
        self._sleep = sleep

    @property
    def cache(self) -> TieredResourceCache:
        return self._cache

    def get(self, path: str) -> CacheLookup:
        """
        Get the payload for an upstream path.

        Args:
            path: Host-relative upstream path, query string included

        Returns:
            CacheLookup tagged HIT, MISS or STALE

        Raises:
            InvalidUpstreamPath: If the path is unsafe
            UpstreamError: If upstream fails and nothing servable is cached
        """
        path = normalize_upstream_path(path)
        return self._cache.get(path, lambda: self._load(path))

    def _load(self, path: str) -> Tuple[bytes, str]:
        url = f"{self._base_url}{path}"
        # Only the camera manifest is known to blip empty; other lists may be legitimately empty
        retry_empty = path.split("?", 1)[0] == CAMERA_MANIFEST_PATH
        attempt = 0

        while True:
            body, content_type, document = self._fetch_once(url)
            items = count_items(document)
            if items != 0 or not retry_empty:
                return body, content_type or "application/json"

            if attempt >= self._empty_retries:
                if self._cache.has_servable(path):
                    raise EmptyResult(
                        f"Zero items after {attempt + 1} attempts", url=url
                    )
                logger.warning(f"Manifest {path} still empty after {attempt + 1} attempts")
                return body, content_type or "application/json"
            delay = self._retry_backoff * (2 ** attempt)
            attempt += 1
            logger.info(
                f"Empty manifest from {path}, retry {attempt}/{self._empty_retries} in {delay:.2f}s"
            )
            self._sleep(delay)

    def _fetch_once(self, url: str) -> Tuple[bytes, str, Any]:
        result = self._fetcher.fetch(url, ACCEPT_JSON, self._timeout)
        if not result.ok:
            raise UnexpectedStatus(result.status, url=url)

        if classify(result.body, result.content_type) is Verdict.CHALLENGE_PAGE:
            snippet = preview(result.body)
            logger.warning(f"Challenge page from {url}: {snippet!r}")
            raise ChallengePage(snippet, url=url)

        try:
            document = json.loads(result.body)
        except ValueError as e:
            raise ChallengePage(preview(result.body), url=url) from e
        return result.body, result.content_type, document
