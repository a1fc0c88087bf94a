"""
Tests for the manifest proxy service and its HTTP routes.
"""
import pytest
from fastapi.testclient import TestClient

from app.cache import CacheSource, TieredResourceCache
from app.cameras import InvalidUpstreamPath, ManifestService, count_items, normalize_upstream_path
from app.upstream import ChallengePage

from conftest import UDOT, FakeResponse

MANIFEST = b'{"item1": null, "item2": [{"itemId": 1, "location": [40.7, -111.9]}]}'
EMPTY_MANIFEST = b'{"item2": []}'
CHALLENGE = b"<html><head><title>Just a moment...</title></head></html>"
URL = f"{UDOT}/map/mapIcons/Cameras"


def _json(body):
    return FakeResponse(200, body, {"Content-Type": "application/json"})


# =============================================================================
# Path validation and item counting
# =============================================================================

@pytest.mark.parametrize("path", [
    "/map/mapIcons/Cameras",
    "/Camera/GetUserCameras?listId=3",
])
def test_host_relative_paths_are_accepted(path):
    assert normalize_upstream_path(path) == path


@pytest.mark.parametrize("path", [
    None,
    "",
    "map/mapIcons/Cameras",
    "//evil.example/x",
    "https://evil.example/x",
    "/\\evil.example",
    "/@evil.example",
    "/a b",
])
def test_unsafe_paths_are_refused(path):
    with pytest.raises(InvalidUpstreamPath):
        normalize_upstream_path(path)


def test_count_items_understands_list_shapes():
    assert count_items([1, 2]) == 2
    assert count_items({"item2": []}) == 0
    assert count_items({"data": [1]}) == 1
    assert count_items({"status": "ok"}) is None


# =============================================================================
# ManifestService
# =============================================================================

def test_valid_json_is_cached(manifest_service, session):
    session.add(URL, _json(MANIFEST))

    first = manifest_service.get("/map/mapIcons/Cameras")
    second = manifest_service.get("/map/mapIcons/Cameras")

    assert first.source is CacheSource.MISS
    assert second.source is CacheSource.HIT
    assert second.payload == MANIFEST
    assert len(session.calls_to(URL)) == 1


def test_challenge_page_without_cache_raises(manifest_service, session):
    session.add(URL, FakeResponse(200, CHALLENGE, {"Content-Type": "text/html"}))
    with pytest.raises(ChallengePage):
        manifest_service.get("/map/mapIcons/Cameras")


def test_challenge_page_with_cache_serves_stale(manifest_service, session, clock):
    session.add(URL, _json(MANIFEST), FakeResponse(200, CHALLENGE))
    manifest_service.get("/map/mapIcons/Cameras")
    clock.advance(20 * 60)

    lookup = manifest_service.get("/map/mapIcons/Cameras")

    assert lookup.source is CacheSource.STALE
    assert lookup.payload == MANIFEST


def test_empty_manifest_is_retried(manifest_service, session):
    session.add(URL, _json(EMPTY_MANIFEST), _json(MANIFEST))

    lookup = manifest_service.get("/map/mapIcons/Cameras")

    assert lookup.payload == MANIFEST
    assert len(session.calls_to(URL)) == 2


def test_persistently_empty_manifest_is_served_when_nothing_is_cached(manifest_service, session):
    session.add(URL, _json(EMPTY_MANIFEST))

    lookup = manifest_service.get("/map/mapIcons/Cameras")

    assert lookup.source is CacheSource.MISS
    assert lookup.payload == EMPTY_MANIFEST
    # One attempt plus two configured retries
    assert len(session.calls_to(URL)) == 3


def test_persistently_empty_manifest_falls_back_to_stale(manifest_service, session, clock):
    session.add(URL, _json(MANIFEST), _json(EMPTY_MANIFEST))
    manifest_service.get("/map/mapIcons/Cameras")
    clock.advance(20 * 60)

    lookup = manifest_service.get("/map/mapIcons/Cameras")

    assert lookup.source is CacheSource.STALE
    assert lookup.payload == MANIFEST
    assert len(session.calls_to(URL)) == 4


def test_empty_list_on_other_paths_is_not_retried(fetcher, session, clock):
    target = f"{UDOT}/Camera/GetUserCameras?listId=7"
    session.add(target, _json(b"[]"))
    sleeps = []
    cache = TieredResourceCache("manifest", fresh_ttl=600, stale_ttl=3600, clock=clock)
    service = ManifestService(fetcher, UDOT, cache, empty_retries=3, sleep=sleeps.append)

    lookup = service.get("/Camera/GetUserCameras?listId=7")

    assert lookup.source is CacheSource.MISS
    assert lookup.payload == b"[]"
    assert sleeps == []
    assert len(session.calls_to(target)) == 1


def test_non_list_payloads_are_not_retried(manifest_service, session):
    session.add(f"{UDOT}/status", _json(b'{"ok": true}'))
    manifest_service.get("/status")
    assert len(session.calls_to(f"{UDOT}/status")) == 1


# =============================================================================
# Routes
# =============================================================================

def test_proxy_route_miss_then_hit(wired_app, session):
    session.add(URL, _json(MANIFEST))
    client = TestClient(wired_app)

    first = client.get("/proxy", params={"p": "/map/mapIcons/Cameras"})
    second = client.get("/proxy", params={"p": "/map/mapIcons/Cameras"})

    assert first.status_code == 200
    assert first.headers["x-cache"] == "MISS"
    assert second.headers["x-cache"] == "HIT"
    assert second.content == MANIFEST
    assert "stale-while-revalidate" in second.headers["cache-control"]
    assert second.headers["access-control-allow-origin"] == "*"
    assert len(session.calls_to(URL)) == 1


def test_proxy_route_stale_header(wired_app, session, clock):
    session.add(URL, _json(MANIFEST), FakeResponse(200, CHALLENGE))
    client = TestClient(wired_app)
    client.get("/proxy", params={"p": "/map/mapIcons/Cameras"})
    clock.advance(20 * 60)

    response = client.get("/proxy", params={"p": "/map/mapIcons/Cameras"})

    assert response.status_code == 200
    assert response.headers["x-cache"] == "STALE"
    assert response.content == MANIFEST


def test_proxy_route_503_without_cache(wired_app, session):
    session.add(URL, FakeResponse(200, CHALLENGE))
    response = TestClient(wired_app).get("/proxy", params={"p": "/map/mapIcons/Cameras"})

    assert response.status_code == 503
    data = response.json()
    assert "error" in data
    assert "preview" in data
    # Raw challenge markup stays in the logs
    assert data["preview"] is None


def test_proxy_route_rejects_bad_path(wired_app, session):
    response = TestClient(wired_app).get("/proxy", params={"p": "//evil.example/"})
    assert response.status_code == 400
    assert session.calls == []


def test_path_style_proxy_forwards_query(wired_app, session):
    target = f"{UDOT}/Camera/GetUserCameras?listId=2"
    session.add(target, _json(b'[{"id": 1}]'))

    response = TestClient(wired_app).get("/proxy/Camera/GetUserCameras?listId=2")

    assert response.status_code == 200
    assert len(session.calls_to(target)) == 1


def test_empty_list_endpoint_is_200_through_route(wired_app, session):
    target = f"{UDOT}/Camera/GetUserCameras?listId=7"
    session.add(target, _json(b"[]"))

    response = TestClient(wired_app).get("/proxy", params={"p": "/Camera/GetUserCameras?listId=7"})

    assert response.status_code == 200
    assert response.json() == []
    assert len(session.calls_to(target)) == 1
