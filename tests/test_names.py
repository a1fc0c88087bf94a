"""
Tests for camera name aggregation and the /camnames route.
"""
import json

import pytest
import requests
from fastapi.testclient import TestClient

from app.cache import CacheSource
from app.cameras import MergedNameRecord, build_candidates, merge_records, parse_shape, records_from_shape
from app.cameras.names import IconManifest, RecordArray, UnrecognizedShape, WrappedRecordArray

from conftest import UDOT, FakeResponse

LIST_0 = f"{UDOT}/Camera/GetUserCameras?listId=0"
LIST_1 = f"{UDOT}/Camera/GetUserCameras?listId=1"
ICONS = f"{UDOT}/map/mapIcons/Cameras"


def _json(payload):
    return FakeResponse(200, json.dumps(payload).encode(), {"Content-Type": "application/json"})


# =============================================================================
# Shapes and merging
# =============================================================================

def test_parse_shape_recognizes_each_form():
    assert isinstance(parse_shape([{"id": 1}]), RecordArray)
    assert isinstance(parse_shape({"item2": []}), IconManifest)
    wrapped = parse_shape({"cameras": [{"id": 1}]})
    assert isinstance(wrapped, WrappedRecordArray)
    assert wrapped.field == "cameras"
    assert isinstance(parse_shape({"status": "ok"}), UnrecognizedShape)
    assert isinstance(parse_shape("text"), UnrecognizedShape)


def test_records_accept_alias_fields():
    shape = parse_shape({"data": [
        {"cameraId": 7, "title": "I-15 @ 600 N", "route": "I-15"},
        {"itemId": "8", "label": "US-89 @ Main"},
    ]})
    records = records_from_shape(shape)
    assert records == [
        MergedNameRecord(id="7", location="I-15 @ 600 N", roadway="I-15"),
        MergedNameRecord(id="8", location="US-89 @ Main"),
    ]


def test_records_without_id_or_location_are_dropped():
    shape = parse_shape([{"id": 1}, {"location": "nowhere"}, "junk", {"id": 2, "name": "ok"}])
    assert [r.id for r in records_from_shape(shape)] == ["2"]


def test_unrecognized_shape_contributes_nothing():
    assert records_from_shape(UnrecognizedShape("number")) == []


def test_first_writer_wins_on_conflicting_ids():
    high = [MergedNameRecord("1", "From list 0")]
    low = [MergedNameRecord("1", "From icons"), MergedNameRecord("2", "Only in icons")]

    merged = merge_records([high, low])

    assert merged["1"].location == "From list 0"
    assert merged["2"].location == "Only in icons"


def test_disjoint_sources_merge_in_any_order():
    a = [MergedNameRecord("1", "A")]
    b = [MergedNameRecord("2", "B")]
    assert merge_records([a, b]) == merge_records([b, a])


def test_candidates_put_numbered_lists_first_and_icons_last():
    candidates = build_candidates(20)
    assert candidates[0].path == "/Camera/GetUserCameras?listId=0"
    assert candidates[19].path == "/Camera/GetUserCameras?listId=19"
    assert candidates[-1].path == "/map/mapIcons/Cameras"
    assert [c.priority for c in candidates] == list(range(len(candidates)))


# =============================================================================
# NameAggregator
# =============================================================================

def test_partial_failure_still_merges(name_aggregator, session):
    session.add(LIST_0, _json([{"id": 1, "location": "Parleys Summit"}]))
    session.add(LIST_1, FakeResponse(200, b"<html>challenge</html>"))
    session.add(ICONS, _json({"item2": [{"itemId": 2, "location": "Point of the Mountain"}]}))

    report = name_aggregator.aggregate()

    assert set(report.names) == {"1", "2"}
    assert report.partial
    assert report.succeeded == 2


def test_priority_decides_conflicts_regardless_of_completion_order(name_aggregator, session):
    session.add(LIST_0, _json([{"id": 5, "location": "Preferred"}]))
    session.add(ICONS, _json({"item2": [{"itemId": 5, "location": "Fallback"}]}))

    names, source = name_aggregator.get_names()

    assert names["5"]["location"] == "Preferred"
    assert source is CacheSource.MISS


def test_every_branch_failing_yields_empty_map(name_aggregator, session):
    names, _ = name_aggregator.get_names()
    assert names == {}
    assert name_aggregator.last_report.succeeded == 0


def test_empty_map_is_cached_during_outage(name_aggregator, session):
    name_aggregator.get_names()
    calls = len(session.calls)
    assert calls > 0

    names, source = name_aggregator.get_names()

    assert names == {}
    assert source is CacheSource.HIT
    assert len(session.calls) == calls


def test_names_are_cached(name_aggregator, session):
    session.add(LIST_0, _json([{"id": 1, "location": "A"}]))
    name_aggregator.get_names()
    calls = len(session.calls)

    names, source = name_aggregator.get_names()

    assert source is CacheSource.HIT
    assert names == {"1": {"location": "A", "roadway": ""}}
    assert len(session.calls) == calls


def test_total_failure_keeps_previous_map(name_aggregator, session, clock):
    session.add(LIST_0, _json([{"id": 1, "location": "A"}]), requests.ConnectionError("reset"))
    name_aggregator.get_names()
    clock.advance(10 * 60)

    names, source = name_aggregator.get_names()

    assert source is CacheSource.STALE
    assert names["1"]["location"] == "A"


# =============================================================================
# Route
# =============================================================================

def test_camnames_route_is_always_200(wired_app, session):
    response = TestClient(wired_app).get("/camnames")
    assert response.status_code == 200
    assert response.json() == {}
    assert response.headers["cache-control"] == "public, max-age=300"


@pytest.mark.parametrize("payload", [
    [{"id": 9, "name": "SR-201"}],
    {"data": [{"id": 9, "name": "SR-201"}]},
])
def test_camnames_route_serves_merged_map(wired_app, session, payload):
    session.add(LIST_0, _json(payload))
    data = TestClient(wired_app).get("/camnames").json()
    assert data["9"]["location"] == "SR-201"
