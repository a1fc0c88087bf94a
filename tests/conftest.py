"""
Shared fixtures: a fake requests session, a controllable clock, and
service instances wired to them.
"""
import threading

import pytest
import requests

from app import main
from app.cache import TieredResourceCache
from app.cameras import (
    ManifestService,
    MediaUrlResolver,
    NameAggregator,
    RwisManifestService,
    SnapshotPipeline,
    build_candidates,
)
from app.upstream import UpstreamFetcher

UDOT = "https://udot.example"
ATMS = "https://atms.example"
RWIS_URL = "https://ftp.example/rwis.xml"


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}


class FakeSession:
    """
    Stands in for requests.Session.

    Each URL maps to a queue of responses or exceptions; the last item
    repeats once the queue is drained. Unknown URLs raise ConnectionError.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self._lock = threading.Lock()

    def add(self, url, *items):
        self.routes[url] = list(items)
        return self

    def add_json(self, url, body, status=200):
        return self.add(url, FakeResponse(status, body, {"Content-Type": "application/json"}))

    def calls_to(self, url):
        return [c for c in self.calls if c["url"] == url]

    def get(self, url, headers=None, timeout=None, allow_redirects=True):
        with self._lock:
            self.calls.append({"url": url, "headers": headers, "timeout": timeout})
            queue = self.routes.get(url)
            if not queue:
                raise requests.ConnectionError(f"no route for {url}")
            item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher(session):
    return UpstreamFetcher(session=session)


@pytest.fixture
def manifest_service(fetcher, clock):
    cache = TieredResourceCache("manifest", fresh_ttl=600, stale_ttl=3600, clock=clock)
    return ManifestService(fetcher, UDOT, cache, empty_retries=2, retry_backoff=0.01, sleep=lambda s: None)


@pytest.fixture
def name_aggregator(fetcher, clock):
    cache = TieredResourceCache("camnames", fresh_ttl=300, stale_ttl=3600, clock=clock)
    return NameAggregator(fetcher, UDOT, cache, candidates=build_candidates(3), max_workers=4)


@pytest.fixture
def resolver(fetcher, clock):
    return MediaUrlResolver(fetcher, ATMS, ttl=60, clock=clock)


@pytest.fixture
def pipeline(fetcher, resolver, clock):
    return SnapshotPipeline(fetcher, resolver, fresh_ttl=43200, clock=clock)


@pytest.fixture
def rwis_service(fetcher, clock):
    cache = TieredResourceCache("rwis", fresh_ttl=600, stale_ttl=3600, clock=clock)
    return RwisManifestService(fetcher, RWIS_URL, cache)


@pytest.fixture
def wired_app(monkeypatch, fetcher, manifest_service, name_aggregator, resolver, pipeline, rwis_service):
    """Point every route at services backed by the fake session."""
    monkeypatch.setattr(main, "get_fetcher", lambda: fetcher)
    monkeypatch.setattr(main, "get_manifest_service", lambda: manifest_service)
    monkeypatch.setattr(main, "get_name_aggregator", lambda: name_aggregator)
    monkeypatch.setattr(main, "get_media_resolver", lambda: resolver)
    monkeypatch.setattr(main, "get_snapshot_pipeline", lambda: pipeline)
    monkeypatch.setattr(main, "get_rwis_service", lambda: rwis_service)
    monkeypatch.setattr(main.settings, "udot_base_url", UDOT)
    return main.app
