"""
Health, version and cross-origin header tests
"""
from fastapi.testclient import TestClient
from app.main import app
from app.cameras import get_manifest_service, reset_services

client = TestClient(app)


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status():
    """Test that /health returns status: ok"""
    response = client.get("/health")
    data = response.json()
    assert data["status"] == "ok"


def test_version_endpoint_reports_name():
    """Test that /version identifies the service"""
    data = client.get("/version").json()
    assert data["name"] == "Traffic Camera Proxy"
    assert data["version"].startswith("v")


def test_every_response_is_cross_origin():
    """Test that CORS and Cache-Control headers are always present"""
    response = client.get("/health")
    assert response.headers["access-control-allow-origin"] == "*"
    assert "cache-control" in response.headers


def test_preflight_returns_204():
    """Test that OPTIONS is answered without hitting a route"""
    response = client.options("/snapshot")
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert "GET" in response.headers["access-control-allow-methods"]


def test_bad_request_still_carries_cors():
    """Test that a 400 keeps the cross-origin header"""
    response = client.get("/snapshot")
    assert response.status_code == 400
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["cache-control"] == "no-store"


def test_services_are_rebuilt_after_reset():
    """Test that service singletons are shared until reset"""
    first = get_manifest_service()
    assert get_manifest_service() is first
    reset_services()
    assert get_manifest_service() is not first
