"""
Camera name aggregation across undocumented upstream list endpoints.

Which endpoints carry names changes without notice, so every candidate is
queried in parallel and whatever succeeds is merged. A failing branch only
means that branch contributes nothing.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from app.cache import CacheSource, TieredResourceCache
from app.upstream import UpstreamError, UpstreamFetcher
from app.utils.helpers import first_present

logger = logging.getLogger("cameras.names")

ID_FIELDS = ("id", "cameraId", "itemId")
LOCATION_FIELDS = ("location", "name", "description", "title", "label")
ROADWAY_FIELDS = ("roadway", "road", "route")

# Object keys that wrap a record array on the list endpoints
WRAPPER_FIELDS = ("data", "cameras")

ALTERNATE_PATHS = (
    "/Camera/GetAllCameras",
    "/Camera/GetCameras",
    "/api/cameras",
    "/map/mapData/Cameras",
)
ICON_MANIFEST_PATH = "/map/mapIcons/Cameras"

NAMES_CACHE_KEY = "camnames"


@dataclass(frozen=True)
class MergedNameRecord:
    id: str
    location: str
    roadway: str = ""


@dataclass(frozen=True)
class CandidateEndpoint:
    """One speculative source. Lower priority numbers win merges."""
    priority: int
    path: str


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecordArray:
    """A bare JSON array of camera records."""
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class WrappedRecordArray:
    """An object holding the record array under ``field``."""
    field: str
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class IconManifest:
    """The coordinates manifest: records under ``item2`` keyed by ``itemId``."""
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class UnrecognizedShape:
    """Anything else. Always ignored."""
    description: str


ResponseShape = Union[RecordArray, WrappedRecordArray, IconManifest, UnrecognizedShape]


def parse_shape(document: Any) -> ResponseShape:
    """Identify which known upstream response shape ``document`` has."""
    if isinstance(document, list):
        return RecordArray(tuple(document))

    if isinstance(document, dict):
        if isinstance(document.get("item2"), list):
            return IconManifest(tuple(document["item2"]))
        for field in WRAPPER_FIELDS:
            if isinstance(document.get(field), list):
                return WrappedRecordArray(field, tuple(document[field]))
        return UnrecognizedShape(f"object with keys {sorted(document)[:5]}")

    return UnrecognizedShape(type(document).__name__)


def _record_from(item: Any) -> Optional[MergedNameRecord]:
    if not isinstance(item, dict):
        return None
    camera_id = first_present(item, ID_FIELDS)
    location = first_present(item, LOCATION_FIELDS)
    if not camera_id or not location:
        return None
    return MergedNameRecord(
        id=camera_id,
        location=location,
        roadway=first_present(item, ROADWAY_FIELDS),
    )


def records_from_shape(shape: ResponseShape) -> List[MergedNameRecord]:
    """
    Normalize any known shape into name records.

    Items missing an id or a location are dropped.
    """
    if isinstance(shape, (RecordArray, WrappedRecordArray, IconManifest)):
        items: Iterable[Any] = shape.items
    elif isinstance(shape, UnrecognizedShape):
        return []
    else:
        raise TypeError(f"Unhandled response shape: {shape!r}")

    records = []
    for item in items:
        record = _record_from(item)
        if record is not None:
            records.append(record)
    return records


def merge_records(
    sources: Sequence[Iterable[MergedNameRecord]],
) -> Dict[str, MergedNameRecord]:
    """
    Merge record lists in priority order. The first writer for an id wins.

    Args:
        sources: Record lists, highest priority first

    Returns:
        id -> record
    """
    merged: Dict[str, MergedNameRecord] = {}
    for records in sources:
        for record in records:
            if record.id not in merged:
                merged[record.id] = record
    return merged


def build_candidates(list_count: int = 20) -> List[CandidateEndpoint]:
    """Numbered list endpoints, then alternates, then the icon manifest."""
    paths = [f"/Camera/GetUserCameras?listId={i}" for i in range(list_count)]
    paths.extend(ALTERNATE_PATHS)
    paths.append(ICON_MANIFEST_PATH)
    return [CandidateEndpoint(priority=i, path=p) for i, p in enumerate(paths)]


@dataclass
class AggregationReport:
    """Outcome of one fan-out cycle."""
    names: Dict[str, MergedNameRecord]
    succeeded: int
    failed: int

    @property
    def partial(self) -> bool:
        return self.failed > 0 and self.succeeded > 0


class NameAggregator:
    """
    Fans out across candidate endpoints and caches the merged name map.

    Usage:
        aggregator = NameAggregator(fetcher, "https://www.udottraffic.utah.gov", cache)
        names, source = aggregator.get_names()
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        base_url: str,
        cache: TieredResourceCache,
        candidates: Optional[List[CandidateEndpoint]] = None,
        timeout: float = 8.0,
        max_workers: int = 12,
    ):
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._cache = cache
        self._candidates = candidates if candidates is not None else build_candidates()
        self._timeout = timeout
        self._max_workers = max(1, max_workers)
        self._last_report: Optional[AggregationReport] = None

    @property
    def cache(self) -> TieredResourceCache:
        return self._cache

    @property
    def last_report(self) -> Optional[AggregationReport]:
        return self._last_report

    def _fetch_branch(self, candidate: CandidateEndpoint) -> List[MergedNameRecord]:
        document = self._fetcher.fetch_json(
            f"{self._base_url}{candidate.path}", timeout=self._timeout
        )
        shape = parse_shape(document)
        if isinstance(shape, UnrecognizedShape):
            logger.debug(f"Ignoring {candidate.path}: {shape.description}")
        return records_from_shape(shape)

    def aggregate(self) -> AggregationReport:
        """
        Query every candidate concurrently and merge the results.

        Never raises: branch failures are logged and counted.
        """
        results: Dict[int, List[MergedNameRecord]] = {}
        failed = 0

        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, max(1, len(self._candidates))),
            thread_name_prefix="camnames",
        ) as executor:
            future_to_candidate = {
                executor.submit(self._fetch_branch, candidate): candidate
                for candidate in self._candidates
            }

            for future in as_completed(future_to_candidate):
                candidate = future_to_candidate[future]
                try:
                    results[candidate.priority] = future.result()
                except Exception as e:
                    failed += 1
                    logger.debug(f"Branch {candidate.path} failed: {type(e).__name__}: {e}")

        ordered = [results[p] for p in sorted(results)]
        names = merge_records(ordered)
        report = AggregationReport(names=names, succeeded=len(results), failed=failed)

        logger.info(
            f"Camera names aggregated: {len(names)} named from "
            f"{report.succeeded}/{len(self._candidates)} endpoints"
        )
        self._last_report = report
        return report

    def _load(self) -> Tuple[bytes, str]:
        report = self.aggregate()
        if not report.names and report.succeeded == 0:
            # A previous map beats an empty one; otherwise cache the empty map
            # so an outage does not re-run the fan-out on every request
            if self._cache.has_servable(NAMES_CACHE_KEY):
                raise UpstreamError("Every candidate endpoint failed")
            logger.warning("Every candidate endpoint failed, caching an empty name map")
        return serialize_names(report.names), "application/json"

    def get_names(self) -> Tuple[Dict[str, Dict[str, str]], CacheSource]:
        """
        Get the merged name map, ``{id: {location, roadway}}``.

        Always succeeds: with no data at all the map is empty.
        """
        try:
            lookup = self._cache.get(NAMES_CACHE_KEY, self._load)
        except UpstreamError:
            return {}, CacheSource.MISS
        return json.loads(lookup.payload), lookup.source


def serialize_names(names: Dict[str, MergedNameRecord]) -> bytes:
    payload = {
        camera_id: {k: v for k, v in asdict(record).items() if k != "id"}
        for camera_id, record in names.items()
    }
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")
