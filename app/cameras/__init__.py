"""
Camera data services: manifest proxy, name aggregation, media URL resolution,
snapshot pipeline and the RWIS manifest.
"""
from .manifest import (
    CAMERA_MANIFEST_PATH,
    InvalidUpstreamPath,
    ManifestService,
    count_items,
    normalize_upstream_path,
)
from .names import (
    AggregationReport,
    CandidateEndpoint,
    MergedNameRecord,
    NameAggregator,
    build_candidates,
    merge_records,
    parse_shape,
    records_from_shape,
)
from .placeholder import PLACEHOLDER_PNG, TRANSPARENT_GIF, make_placeholder_png
from .resolver import MediaUrlResolver, ResolvedMediaURL
from .rwis import GeoBounds, RwisManifestService, parse_markers
from .snapshot import (
    InvalidSnapshotRequest,
    LastKnownGoodImage,
    SnapshotPipeline,
    SnapshotRequest,
    SnapshotResult,
    is_position_id,
    parse_snapshot_request,
)
from .services import (
    get_fetcher,
    get_manifest_service,
    get_media_resolver,
    get_name_aggregator,
    get_rwis_service,
    get_snapshot_pipeline,
    reset_services,
)

__all__ = [
    # Manifest
    "CAMERA_MANIFEST_PATH",
    "InvalidUpstreamPath",
    "ManifestService",
    "count_items",
    "normalize_upstream_path",
    # Names
    "AggregationReport",
    "CandidateEndpoint",
    "MergedNameRecord",
    "NameAggregator",
    "build_candidates",
    "merge_records",
    "parse_shape",
    "records_from_shape",
    # Placeholders
    "PLACEHOLDER_PNG",
    "TRANSPARENT_GIF",
    "make_placeholder_png",
    # Resolver
    "MediaUrlResolver",
    "ResolvedMediaURL",
    # RWIS
    "GeoBounds",
    "RwisManifestService",
    "parse_markers",
    # Snapshot
    "InvalidSnapshotRequest",
    "LastKnownGoodImage",
    "SnapshotPipeline",
    "SnapshotRequest",
    "SnapshotResult",
    "is_position_id",
    "parse_snapshot_request",
    # Services
    "get_fetcher",
    "get_manifest_service",
    "get_media_resolver",
    "get_name_aggregator",
    "get_rwis_service",
    "get_snapshot_pipeline",
    "reset_services",
]
