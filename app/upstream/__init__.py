"""
Upstream access layer: fetcher, content classifier, SSRF guard and error taxonomy.
"""
from .classifier import Verdict, classify, preview
from .errors import (
    UpstreamError,
    FetchTimeout,
    NetworkError,
    UnexpectedStatus,
    ChallengePage,
    TooManyRedirects,
    MalformedRedirect,
    SSRFRejected,
    ResolutionFailure,
    EmptyResult,
)
from .fetcher import (
    ACCEPT_IMAGE,
    ACCEPT_JSON,
    ACCEPT_XML,
    FetchResult,
    UpstreamFetcher,
    browser_headers,
    parse_json_body,
)
from .ssrf import check_url, is_safe_url

__all__ = [
    # Classifier
    "Verdict",
    "classify",
    "preview",
    # Errors
    "UpstreamError",
    "FetchTimeout",
    "NetworkError",
    "UnexpectedStatus",
    "ChallengePage",
    "TooManyRedirects",
    "MalformedRedirect",
    "SSRFRejected",
    "ResolutionFailure",
    "EmptyResult",
    # Fetcher
    "ACCEPT_IMAGE",
    "ACCEPT_JSON",
    "ACCEPT_XML",
    "FetchResult",
    "UpstreamFetcher",
    "browser_headers",
    "parse_json_body",
    # SSRF guard
    "check_url",
    "is_safe_url",
]
