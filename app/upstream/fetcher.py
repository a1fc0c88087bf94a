"""
Outbound HTTP for every upstream the proxy talks to.

All requests carry a realistic browser header set: the transportation
department's bot detection scores requests on these, and a bare client
User-Agent gets a challenge page far more often.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlsplit

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from .classifier import Verdict, classify, preview
from .errors import (
    ChallengePage,
    FetchTimeout,
    MalformedRedirect,
    NetworkError,
    TooManyRedirects,
    UnexpectedStatus,
    UpstreamError,
)
from .ssrf import check_url

logger = logging.getLogger("upstream.fetcher")

REDIRECT_STATUSES = (301, 302, 307, 308)
DEFAULT_MAX_REDIRECTS = 5

ACCEPT_JSON = "application/json, text/plain, */*"
ACCEPT_XML = "text/xml,application/xml,*/*;q=0.8"
ACCEPT_IMAGE = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


def _origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def browser_headers(url: str, accept: str, referer: Optional[str] = None) -> dict:
    """
    Build the browser-mimicking header set for a request to ``url``.

    Referer and Origin default to the target's own origin, which is what a
    page on that site would send for its own XHR calls.
    """
    origin = _origin_of(url)
    is_image = accept.startswith("image/")
    return {
        "User-Agent": USER_AGENT,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.9",
        "Referer": referer or f"{origin}/",
        "Origin": origin,
        "sec-ch-ua": '"Not A(Brand";v="99", "Google Chrome";v="121", "Chromium";v="121"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "image" if is_image else "empty",
        "sec-fetch-mode": "no-cors" if is_image else "cors",
        "sec-fetch-site": "same-origin",
    }


@dataclass
class FetchResult:
    """One upstream response, fully read."""
    status: int
    content_type: str
    body: bytes
    url: str
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    redirects: int = 0

    @property
    def ok(self) -> bool:
        return self.status == 200


class UpstreamFetcher:
    """
    Issues single outbound requests with a hard per-call timeout.

    Usage:
        fetcher = UpstreamFetcher()
        result = fetcher.fetch(url, ACCEPT_JSON, timeout=10)
        data = fetcher.fetch_json(url, timeout=8)
        image = fetcher.fetch_following_redirects(url, ACCEPT_IMAGE, timeout=15)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        pool_size: int = 32,
        blocked_hosts: Iterable[str] = (),
    ):
        """
        Initialize the fetcher.

        Args:
            session: Optional pre-built session (tests pass a fake)
            pool_size: Connection pool size per host
            blocked_hosts: Extra hostnames the SSRF guard should refuse
        """
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=8, pool_maxsize=pool_size)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._session = session
        self._blocked_hosts = tuple(blocked_hosts)

    def fetch(
        self,
        url: str,
        accept: str,
        timeout: float,
        referer: Optional[str] = None,
    ) -> FetchResult:
        """
        Perform one GET without following redirects.

        Raises:
            FetchTimeout: If the upstream does not answer within ``timeout``
            NetworkError: On connection-level failure
        """
        try:
            response = self._session.get(
                url,
                headers=browser_headers(url, accept, referer),
                timeout=timeout,
                allow_redirects=False,
            )
        except requests.Timeout as e:
            raise FetchTimeout(f"Timed out after {timeout}s", url=url) from e
        except requests.RequestException as e:
            raise NetworkError(str(e) or type(e).__name__, url=url) from e

        headers = CaseInsensitiveDict(response.headers or {})
        return FetchResult(
            status=response.status_code,
            content_type=headers.get("Content-Type", ""),
            body=response.content or b"",
            url=url,
            headers=headers,
        )

    def fetch_following_redirects(
        self,
        url: str,
        accept: str,
        timeout: float,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        referer: Optional[str] = None,
    ) -> FetchResult:
        """
        GET ``url``, following 301/302/307/308 up to ``max_redirects`` hops.

        The SSRF guard runs on the initial URL and again on every redirect
        target, so an upstream 302 cannot bounce us onto an internal host.

        Returns:
            The first non-redirect response (any status)

        Raises:
            SSRFRejected: If any hop targets a disallowed URL
            TooManyRedirects: If more than ``max_redirects`` redirects occur
            MalformedRedirect: If a redirect has no Location header
            FetchTimeout, NetworkError: From the underlying fetch
        """
        current = url
        remaining = max_redirects

        while True:
            check_url(current, self._blocked_hosts)
            result = self.fetch(current, accept, timeout, referer=referer)
            result.redirects = max_redirects - remaining

            if result.status not in REDIRECT_STATUSES:
                return result

            if remaining <= 0:
                raise TooManyRedirects(
                    f"Exceeded {max_redirects} redirects", url=url
                )
            location = result.headers.get("Location")
            if not location:
                raise MalformedRedirect(
                    f"HTTP {result.status} without Location header", url=current
                )

            next_url = urljoin(current, location.strip())
            logger.debug(f"Redirect {result.status}: {current} -> {next_url}")
            current = next_url
            remaining -= 1

    def fetch_json(
        self,
        url: str,
        timeout: float,
        referer: Optional[str] = None,
    ) -> Any:
        """
        GET ``url`` and parse it as JSON after classifying the body.

        Raises:
            UnexpectedStatus: On any non-200 status
            ChallengePage: If the body is not structured data
            UpstreamError: If the body looked like JSON but did not parse
        """
        result = self.fetch(url, ACCEPT_JSON, timeout, referer=referer)
        if not result.ok:
            raise UnexpectedStatus(result.status, url=url)
        return parse_json_body(result)


def parse_json_body(result: FetchResult) -> Any:
    """Classify and decode a fetched body, raising on challenge pages."""
    if classify(result.body, result.content_type) is Verdict.CHALLENGE_PAGE:
        raise ChallengePage(preview(result.body), url=result.url)
    try:
        return json.loads(result.body)
    except ValueError as e:
        raise UpstreamError(f"Malformed JSON body: {e}", url=result.url) from e
