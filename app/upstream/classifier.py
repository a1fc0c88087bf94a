"""
Content classification for upstream response bodies.

The upstream's bot-mitigation layer answers with HTTP 200 and an HTML page
instead of an error status, so the status code alone says nothing about
whether we got data. The body has to be inspected before it is parsed.
"""
from enum import Enum
from typing import Optional

PREVIEW_BYTES = 100

# Leading bytes that can sit in front of the first real character
_SKIP = b" \t\r\n\x0b\x0c"
_UTF8_BOM = b"\xef\xbb\xbf"


class Verdict(Enum):
    """Classification result for a response body."""
    VALID = "valid"
    CHALLENGE_PAGE = "challenge_page"


def _first_significant_byte(body: bytes) -> Optional[int]:
    if body.startswith(_UTF8_BOM):
        body = body[len(_UTF8_BOM):]
    stripped = body.lstrip(_SKIP)
    if not stripped:
        return None
    return stripped[0]


def classify(body: bytes, content_type: str = "") -> Verdict:
    """
    Decide whether a body is structured data or a challenge page.

    Only the first non-whitespace character matters: ``{`` or ``[`` means
    structured data. The declared content type is ignored on purpose, since
    challenge pages are routinely served as ``application/json``.

    Args:
        body: Raw response bytes
        content_type: Declared Content-Type (informational only)

    Returns:
        Verdict.VALID or Verdict.CHALLENGE_PAGE
    """
    first = _first_significant_byte(body or b"")
    if first in (ord("{"), ord("[")):
        return Verdict.VALID
    return Verdict.CHALLENGE_PAGE


def preview(body: bytes, limit: int = PREVIEW_BYTES) -> str:
    """First ``limit`` bytes of a body, decoded leniently for logs."""
    return (body or b"")[:limit].decode("utf-8", errors="replace")
