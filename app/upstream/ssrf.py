"""
SSRF guard for caller- and upstream-supplied URLs.

Applied before the fetcher dereferences any URL it did not construct itself,
and again on every redirect hop.
"""
import ipaddress
import logging
import socket
from typing import Iterable, Optional, Union
from urllib.parse import urlsplit

from .errors import SSRFRejected

logger = logging.getLogger("upstream.ssrf")

ALLOWED_SCHEMES = ("https",)

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
}

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _parse_ip(hostname: str) -> Optional[IPAddress]:
    """
    Parse a hostname as an IP literal, including legacy IPv4 forms.

    ``127.1`` and ``2130706433`` are both accepted by the system resolver as
    127.0.0.1, so they are normalized through inet_aton before checking.
    """
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass

    if hostname.replace(".", "").isdigit() or hostname.lower().startswith("0x"):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(hostname))
        except OSError:
            return None
    return None


def is_blocked_address(ip: IPAddress) -> bool:
    """True for loopback, private, link-local, unspecified and similar ranges."""
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        ip = ip.ipv4_mapped

    return any((
        ip.is_loopback,
        ip.is_private,
        ip.is_link_local,
        ip.is_unspecified,
        ip.is_multicast,
        ip.is_reserved,
    ))


def _is_blocked_hostname(hostname: str, extra_blocked: Iterable[str]) -> bool:
    host = hostname.rstrip(".").lower()
    blocked = BLOCKED_HOSTNAMES | {h.lower() for h in extra_blocked}
    if host in blocked:
        return True
    if host.endswith(".localhost"):
        return True

    ip = _parse_ip(host)
    return ip is not None and is_blocked_address(ip)


def rejection_reason(url: str, extra_blocked: Iterable[str] = ()) -> Optional[str]:
    """
    Explain why a URL is unsafe to fetch, or return None if it is safe.

    Args:
        url: Absolute URL to vet
        extra_blocked: Additional hostnames to refuse

    Returns:
        Human-readable reason, or None when the URL passes
    """
    if not url:
        return "empty URL"
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing .port validates it
        parts.port
    except ValueError:
        return "unparseable URL"

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return f"scheme '{parts.scheme}' not allowed"
    if not hostname:
        return "missing hostname"
    if _is_blocked_hostname(hostname, extra_blocked):
        return f"host '{hostname}' is internal"
    return None


def is_safe_url(url: str, extra_blocked: Iterable[str] = ()) -> bool:
    """True if ``url`` is https and does not point at an internal address."""
    return rejection_reason(url, extra_blocked) is None


def check_url(url: str, extra_blocked: Iterable[str] = ()) -> str:
    """
    Return ``url`` unchanged if it is safe.

    Raises:
        SSRFRejected: If the URL fails the guard
    """
    reason = rejection_reason(url, extra_blocked)
    if reason is not None:
        logger.warning(f"SSRF guard rejected {url!r}: {reason}")
        raise SSRFRejected(f"Disallowed URL: {reason}", url=url)
    return url
