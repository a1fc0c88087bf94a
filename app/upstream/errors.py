"""
Failure taxonomy for outbound upstream calls.

Every failure the fetch layer can produce is an ``UpstreamError`` so callers
that degrade to cached data only need one except clause.
"""
from typing import Optional


class UpstreamError(Exception):
    """Base class for any failed attempt to obtain upstream data."""

    reason = "upstream_error"

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FetchTimeout(UpstreamError):
    reason = "timeout"


class NetworkError(UpstreamError):
    reason = "network_error"


class UnexpectedStatus(UpstreamError):
    """Upstream answered, but not with a usable status code."""

    reason = "unexpected_status"

    def __init__(self, status: int, url: Optional[str] = None):
        super().__init__(f"HTTP {status}", url=url)
        self.status = status


class ChallengePage(UpstreamError):
    """HTTP 200 whose body is an HTML/bot-challenge document instead of data."""

    reason = "challenge_page"

    def __init__(self, preview: str, url: Optional[str] = None):
        super().__init__("Upstream returned a non-JSON challenge page", url=url)
        self.preview = preview


class TooManyRedirects(UpstreamError):
    reason = "too_many_redirects"


class MalformedRedirect(UpstreamError):
    reason = "malformed_redirect"


class SSRFRejected(UpstreamError):
    """Target URL failed the SSRF guard. Never retried."""

    reason = "ssrf_rejected"


class ResolutionFailure(UpstreamError):
    """Metadata lookup returned no usable media URL."""

    reason = "resolution_failure"


class EmptyResult(UpstreamError):
    """Well-formed payload with zero items, after retries were exhausted."""

    reason = "empty_result"
