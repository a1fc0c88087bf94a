"""
Traffic Camera Proxy - Main FastAPI Application
Re-serves transportation-department camera data with tiered caching
"""
import logging
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from app.cache import CacheLookup, CacheSource
from app.cameras import (
    CAMERA_MANIFEST_PATH,
    InvalidSnapshotRequest,
    InvalidUpstreamPath,
    TRANSPARENT_GIF,
    get_fetcher,
    get_manifest_service,
    get_media_resolver,
    get_name_aggregator,
    get_rwis_service,
    get_snapshot_pipeline,
    is_position_id,
    parse_snapshot_request,
)
from app.cameras.placeholder import TRANSPARENT_GIF_CONTENT_TYPE
from app.schemas import (
    CacheStats,
    DiagnosticsReport,
    ErrorBody,
    HealthStatus,
    UpstreamUnavailable,
    VersionInfo,
)
from app.upstream import (
    ACCEPT_JSON,
    ChallengePage,
    UpstreamError,
    classify,
    is_safe_url,
    preview,
)
from config.settings import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v1.0.0"
APP_NAME = "Traffic Camera Proxy"

app = FastAPI(
    title=APP_NAME,
    description="Resilient proxy and cache for traffic camera manifests and snapshots",
    version=APP_VERSION,
)

# Cache-Control policies
JSON_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
STALE_JSON_CACHE_CONTROL = "public, s-maxage=60"
NAMES_CACHE_CONTROL = "public, max-age=300"
IMAGE_CACHE_CONTROL = "public, max-age=43200, stale-while-revalidate=86400"
REDIRECT_CACHE_CONTROL = "public, max-age=30"
NO_STORE = "no-store"


@app.middleware("http")
async def cross_origin_headers(request: Request, call_next):
    """Permissive CORS on every response; preflights answered directly."""
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    response.headers.setdefault("Cache-Control", NO_STORE)
    return response


def _error(status_code: int, body: ErrorBody) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={"Cache-Control": NO_STORE},
    )


def _json_lookup_response(lookup: CacheLookup) -> Response:
    cache_control = (
        STALE_JSON_CACHE_CONTROL if lookup.source is CacheSource.STALE else JSON_CACHE_CONTROL
    )
    return Response(
        content=lookup.payload,
        media_type=lookup.content_type or "application/json",
        headers={"Cache-Control": cache_control, "X-Cache": lookup.source.value},
    )


@app.get("/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint."""
    return HealthStatus(status="ok", mode="proxy")


@app.get("/version", response_model=VersionInfo)
def version_info():
    """Version information endpoint."""
    return VersionInfo(
        name=APP_NAME,
        version=APP_VERSION,
        full=f"{APP_NAME} {APP_VERSION}",
    )


@app.get("/cache/stats", response_model=CacheStats)
def cache_stats():
    """Get cache statistics."""
    return CacheStats(
        manifest=get_manifest_service().cache.get_stats(),
        camnames=get_name_aggregator().cache.get_stats(),
        rwis=get_rwis_service().cache.get_stats(),
        resolver=get_media_resolver().get_stats(),
        snapshots=get_snapshot_pipeline().get_stats(),
    )


# =============================================================================
# Manifest proxy
# =============================================================================

def _serve_manifest(path: Optional[str]) -> Response:
    try:
        lookup = get_manifest_service().get(path)
    except InvalidUpstreamPath as e:
        return _error(400, ErrorBody(error=str(e)))
    except UpstreamError as e:
        snippet = None
        if isinstance(e, ChallengePage) and settings.expose_challenge_preview:
            snippet = e.preview
        return _error(503, UpstreamUnavailable(error=f"Upstream unavailable: {e}", preview=snippet))
    return _json_lookup_response(lookup)


@app.get("/proxy")
def proxy_query(p: Optional[str] = Query(None, description="Upstream path, e.g. /map/mapIcons/Cameras")):
    """Proxy an upstream JSON path given as ?p=/path."""
    return _serve_manifest(p)


@app.get("/proxy/{upstream_path:path}")
def proxy_path(upstream_path: str, request: Request):
    """Proxy an upstream JSON path given in the URL, forwarding query params."""
    path = "/" + upstream_path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return _serve_manifest(path)


# =============================================================================
# Camera names
# =============================================================================

@app.get("/camnames")
def camera_names():
    """Merged {id: {location, roadway}} map. Always 200, possibly empty."""
    names, source = get_name_aggregator().get_names()
    return JSONResponse(
        content=names,
        headers={"Cache-Control": NAMES_CACHE_CONTROL, "X-Cache": source.value},
    )


# =============================================================================
# Images
# =============================================================================

@app.get("/snapshot")
def snapshot(
    position_id: Optional[str] = Query(None, alias="id", description="Numeric camera position id"),
    url: Optional[str] = Query(None, description="https image URL"),
):
    """Camera image that degrades to last-known-good, then a placeholder."""
    try:
        snapshot_request = parse_snapshot_request(position_id, url, settings.ssrf_blocked_hosts)
    except InvalidSnapshotRequest as e:
        return _error(400, ErrorBody(error=str(e)))

    result = get_snapshot_pipeline().get(snapshot_request)
    cache_control = (
        NO_STORE if result.source is CacheSource.PLACEHOLDER else IMAGE_CACHE_CONTROL
    )
    return Response(
        content=result.body,
        media_type=result.content_type,
        headers={"Cache-Control": cache_control, "X-Snapshot": result.source.value},
    )


@app.get("/image")
def image_redirect(
    position_id: Optional[str] = Query(None, alias="id", description="Numeric camera position id"),
):
    """Redirect to the camera's current dynamic image URL."""
    if not is_position_id(position_id):
        return _error(400, ErrorBody(error="Missing or invalid id parameter"))

    try:
        image_url = get_media_resolver().resolve(position_id)
    except UpstreamError as e:
        logger.warning(f"Image redirect id={position_id} failed ({e.reason}): {e}")
        image_url = None

    if image_url is None or not is_safe_url(image_url, settings.ssrf_blocked_hosts):
        return Response(
            content=TRANSPARENT_GIF,
            media_type=TRANSPARENT_GIF_CONTENT_TYPE,
            headers={"Cache-Control": NO_STORE},
        )

    return RedirectResponse(
        url=image_url,
        status_code=302,
        headers={"Cache-Control": REDIRECT_CACHE_CONTROL},
    )


# =============================================================================
# RWIS manifest and diagnostics
# =============================================================================

@app.get("/rwis")
def rwis_manifest():
    """RWIS station cameras as [{id, lat, lng, location}]."""
    try:
        lookup = get_rwis_service().get()
    except UpstreamError as e:
        return _error(502, ErrorBody(error=str(e)))
    return _json_lookup_response(lookup)


@app.get("/diagnostics", response_model=DiagnosticsReport, response_model_exclude_none=True)
def diagnostics():
    """Probe the camera manifest upstream directly, bypassing every cache."""
    target = f"{settings.udot_base_url.rstrip('/')}{CAMERA_MANIFEST_PATH}"
    try:
        result = get_fetcher().fetch(target, ACCEPT_JSON, settings.manifest_timeout_seconds)
    except UpstreamError as e:
        return DiagnosticsReport(target=target, error=str(e), reason=e.reason)

    return DiagnosticsReport(
        target=target,
        status=result.status,
        content_type=result.content_type,
        body_length=len(result.body),
        verdict=classify(result.body, result.content_type).value,
        body_preview=preview(result.body, 300),
    )
