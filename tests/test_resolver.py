"""
Tests for media URL resolution and the /image redirect route.
"""
import pytest
from fastapi.testclient import TestClient

from app.cameras.placeholder import TRANSPARENT_GIF
from app.cameras.resolver import extract_latest_image_url
from app.upstream import ChallengePage, ResolutionFailure

from conftest import ATMS, FakeResponse

META_42 = f"{ATMS}/atms/public/camera/lastFiveImages/42"
IMAGE_URL = "https://cdn.example/cams/42/latest.jpg?sig=abc"


def _metadata(url=IMAGE_URL):
    body = (
        '{"data": {"lastFivePolledImages": ['
        f'{{"publicSharePath": "{url}"}}, {{"publicSharePath": "https://cdn.example/old.jpg"}}'
        "]}}"
    ).encode()
    return FakeResponse(200, body, {"Content-Type": "application/json"})


@pytest.mark.parametrize("document", [
    {},
    {"data": {}},
    {"data": {"lastFivePolledImages": []}},
    {"data": {"lastFivePolledImages": [{"publicSharePath": ""}]}},
    [],
])
def test_missing_image_path_is_a_resolution_failure(document):
    with pytest.raises(ResolutionFailure):
        extract_latest_image_url(document)


def test_newest_image_is_used(resolver, session):
    session.add(META_42, _metadata())
    assert resolver.resolve("42") == IMAGE_URL


def test_metadata_request_sends_cameras_page_referer(resolver, session):
    session.add(META_42, _metadata())
    resolver.resolve("42")
    assert session.calls[0]["headers"]["Referer"] == f"{ATMS}/atms/public/cameras"


def test_resolution_is_cached_within_ttl(resolver, session, clock):
    session.add(META_42, _metadata())
    resolver.resolve("42")
    clock.advance(59)
    resolver.resolve("42")
    assert len(session.calls_to(META_42)) == 1


def test_resolution_expires_after_ttl(resolver, session, clock):
    session.add(META_42, _metadata(), _metadata("https://cdn.example/new.jpg"))
    resolver.resolve("42")
    clock.advance(61)
    assert resolver.resolve("42") == "https://cdn.example/new.jpg"


def test_expired_url_is_never_served_on_failure(resolver, session, clock):
    session.add(META_42, _metadata(), FakeResponse(200, b"<html>denied</html>"))
    resolver.resolve("42")
    clock.advance(61)

    with pytest.raises(ChallengePage):
        resolver.resolve("42")
    assert resolver.get_stats()["failures"] == 1


# =============================================================================
# Route
# =============================================================================

def test_image_route_redirects_to_current_url(wired_app, session):
    session.add(META_42, _metadata())
    response = TestClient(wired_app).get("/image", params={"id": "42"}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == IMAGE_URL
    assert response.headers["cache-control"] == "public, max-age=30"


def test_image_route_returns_transparent_gif_on_failure(wired_app, session):
    session.add(META_42, FakeResponse(500, b""))
    response = TestClient(wired_app).get("/image", params={"id": "42"}, follow_redirects=False)

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/gif"
    assert response.content == TRANSPARENT_GIF
    assert response.headers["cache-control"] == "no-store"


def test_image_route_refuses_internal_targets(wired_app, session):
    session.add(META_42, _metadata("https://10.0.0.8/cam.jpg"))
    response = TestClient(wired_app).get("/image", params={"id": "42"}, follow_redirects=False)
    assert response.content == TRANSPARENT_GIF


@pytest.mark.parametrize("position_id", ["", "abc", "12a", "../1", "5\n", "\u0663"])
def test_image_route_rejects_bad_ids(wired_app, session, position_id):
    response = TestClient(wired_app).get("/image", params={"id": position_id})
    assert response.status_code == 400
    assert session.calls == []
