"""
RWIS weather-station camera manifest.

The state DOT publishes station markers as an XML feed on an FTP mirror. The
feed is converted to a compact JSON list and kept behind its own tiered cache.
"""
import json
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass
from typing import List, Tuple

from app.cache import CacheLookup, TieredResourceCache
from app.upstream import ACCEPT_XML, EmptyResult, UnexpectedStatus, UpstreamError, UpstreamFetcher
from app.utils.helpers import safe_float, safe_str

logger = logging.getLogger("cameras.rwis")

RWIS_CACHE_KEY = "rwis"

_MARKER_TAG = re.compile(rb"<marker\b[^>]*/>")


@dataclass(frozen=True)
class GeoBounds:
    north: float
    south: float
    west: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


# Montana with a little padding at each edge
MONTANA_BOUNDS = GeoBounds(north=49.1, south=44.2, west=-116.2, east=-103.9)


@dataclass(frozen=True)
class RwisCamera:
    id: str
    lat: float
    lng: float
    location: str


def _salvage_markers(xml_body: bytes) -> List[ET.Element]:
    """Parse each ``<marker .../>`` tag on its own, dropping the ones that fail."""
    elements = []
    skipped = 0
    for match in _MARKER_TAG.finditer(xml_body):
        try:
            elements.append(ET.fromstring(match.group(0)))
        except ET.ParseError:
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} malformed RWIS marker(s)")
    return elements


def parse_markers(xml_body: bytes, bounds: GeoBounds = MONTANA_BOUNDS) -> List[RwisCamera]:
    """
    Extract ``<marker lat lng id label/>`` elements inside ``bounds``.

    Markers missing an id or valid coordinates are skipped. If the document
    as a whole is not well-formed (e.g. an unescaped ``&`` in one label),
    markers are parsed one by one so a single bad marker only drops itself.

    Raises:
        UpstreamError: If no marker at all can be parsed from a malformed body
    """
    try:
        markers = list(ET.fromstring(xml_body).iter("marker"))
    except ET.ParseError as e:
        markers = _salvage_markers(xml_body)
        if not markers:
            raise UpstreamError(f"Unparseable RWIS XML: {e}") from e

    cameras = []
    for marker in markers:
        camera_id = safe_str(marker.get("id"))
        lat = safe_float(marker.get("lat"))
        lng = safe_float(marker.get("lng"))
        if not camera_id or lat is None or lng is None:
            continue
        if not bounds.contains(lat, lng):
            continue
        location = safe_str(marker.get("label")) or f"CAM-{camera_id}"
        cameras.append(RwisCamera(id=camera_id, lat=lat, lng=lng, location=location))
    return cameras


class RwisManifestService:
    """Fetches, filters and caches the RWIS marker feed."""

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        feed_url: str,
        cache: TieredResourceCache,
        timeout: float = 10.0,
        bounds: GeoBounds = MONTANA_BOUNDS,
    ):
        self._fetcher = fetcher
        self._feed_url = feed_url
        self._cache = cache
        self._timeout = timeout
        self._bounds = bounds

    @property
    def cache(self) -> TieredResourceCache:
        return self._cache

    def get(self) -> CacheLookup:
        """
        Get the camera list as JSON bytes.

        Raises:
            UpstreamError: If the feed fails and nothing servable is cached
        """
        return self._cache.get(RWIS_CACHE_KEY, self._load)

    def _load(self) -> Tuple[bytes, str]:
        result = self._fetcher.fetch(self._feed_url, ACCEPT_XML, self._timeout)
        if not result.ok:
            raise UnexpectedStatus(result.status, url=self._feed_url)

        cameras = parse_markers(result.body, self._bounds)
        if not cameras:
            raise EmptyResult("No cameras parsed from RWIS feed", url=self._feed_url)

        logger.info(f"RWIS manifest parsed: {len(cameras)} cameras")
        payload = json.dumps([asdict(c) for c in cameras], separators=(",", ":"))
        return payload.encode("utf-8"), "application/json"
