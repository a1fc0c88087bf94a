"""
Process-wide service instances, built lazily from settings.

Each running process owns its own caches; nothing here is shared between
instances.
"""
import threading
from typing import Optional

from app.cache import DataCategory, TieredResourceCache, get_ttl_for_category
from app.upstream import UpstreamFetcher
from config.settings import settings

from .manifest import ManifestService
from .names import NameAggregator, build_candidates
from .resolver import MediaUrlResolver
from .rwis import RwisManifestService
from .snapshot import SnapshotPipeline

_lock = threading.Lock()

_fetcher: Optional[UpstreamFetcher] = None
_manifest_service: Optional[ManifestService] = None
_name_aggregator: Optional[NameAggregator] = None
_media_resolver: Optional[MediaUrlResolver] = None
_snapshot_pipeline: Optional[SnapshotPipeline] = None
_rwis_service: Optional[RwisManifestService] = None


def _tiered(name: str, category: DataCategory) -> TieredResourceCache:
    fresh_ttl, stale_ttl = get_ttl_for_category(category, settings)
    return TieredResourceCache(name, fresh_ttl=fresh_ttl, stale_ttl=stale_ttl)


def get_fetcher() -> UpstreamFetcher:
    """Get or create the shared upstream fetcher."""
    global _fetcher
    with _lock:
        if _fetcher is None:
            _fetcher = UpstreamFetcher(blocked_hosts=settings.ssrf_blocked_hosts)
        return _fetcher


def get_manifest_service() -> ManifestService:
    global _manifest_service
    fetcher = get_fetcher()
    with _lock:
        if _manifest_service is None:
            _manifest_service = ManifestService(
                fetcher,
                settings.udot_base_url,
                _tiered("manifest", DataCategory.CAMERA_MANIFEST),
                timeout=settings.manifest_timeout_seconds,
                empty_retries=settings.manifest_empty_retries,
                retry_backoff=settings.manifest_retry_backoff_seconds,
            )
        return _manifest_service


def get_name_aggregator() -> NameAggregator:
    global _name_aggregator
    fetcher = get_fetcher()
    with _lock:
        if _name_aggregator is None:
            _name_aggregator = NameAggregator(
                fetcher,
                settings.udot_base_url,
                _tiered("camnames", DataCategory.CAMERA_NAMES),
                candidates=build_candidates(settings.names_list_count),
                timeout=settings.names_timeout_seconds,
                max_workers=settings.names_max_workers,
            )
        return _name_aggregator


def get_media_resolver() -> MediaUrlResolver:
    global _media_resolver
    fetcher = get_fetcher()
    with _lock:
        if _media_resolver is None:
            fresh_ttl, _ = get_ttl_for_category(DataCategory.MEDIA_URL, settings)
            _media_resolver = MediaUrlResolver(
                fetcher,
                settings.mdt_atms_base_url,
                ttl=fresh_ttl,
                timeout=settings.resolve_timeout_seconds,
            )
        return _media_resolver


def get_snapshot_pipeline() -> SnapshotPipeline:
    global _snapshot_pipeline
    fetcher = get_fetcher()
    resolver = get_media_resolver()
    with _lock:
        if _snapshot_pipeline is None:
            fresh_ttl, _ = get_ttl_for_category(DataCategory.SNAPSHOT, settings)
            _snapshot_pipeline = SnapshotPipeline(
                fetcher,
                resolver,
                fresh_ttl=fresh_ttl,
                timeout=settings.image_timeout_seconds,
                max_redirects=settings.max_redirects,
            )
        return _snapshot_pipeline


def get_rwis_service() -> RwisManifestService:
    global _rwis_service
    fetcher = get_fetcher()
    with _lock:
        if _rwis_service is None:
            _rwis_service = RwisManifestService(
                fetcher,
                settings.mdt_rwis_xml_url,
                _tiered("rwis", DataCategory.RWIS_MANIFEST),
                timeout=settings.manifest_timeout_seconds,
            )
        return _rwis_service


def reset_services() -> None:
    """Drop every instance so the next access rebuilds it (used by tests)."""
    global _fetcher, _manifest_service, _name_aggregator
    global _media_resolver, _snapshot_pipeline, _rwis_service
    with _lock:
        _fetcher = None
        _manifest_service = None
        _name_aggregator = None
        _media_resolver = None
        _snapshot_pipeline = None
        _rwis_service = None
