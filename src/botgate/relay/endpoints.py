"""Downstream endpoint resolution.

Composes ``<base>/<path>`` for chatbot and status endpoints and refuses
destinations that are unset or point at a local/dev host. Both refusals
are configuration problems, not network problems: the caller skips the
network call and goes straight to fallback.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from urllib.parse import urlsplit

from botgate.domain.models import Category

CHATBOT_PATH = "/api/chatbot/{category}"
STATUS_PATH = "/api/whatsapp/status"


class EndpointConfigError(Exception):
    """Base URL is unset or not an absolute http(s) URL."""


class DeniedHostError(EndpointConfigError):
    """Destination host matches the local/dev denylist."""

    def __init__(self, host: str, pattern: str) -> None:
        self.host = host
        self.pattern = pattern
        super().__init__(f"host {host!r} matches denylisted pattern {pattern!r}")


def join_url(base: str, path: str) -> str:
    """Join base URL and path with exactly one separator.

    The base URL's own path is kept: ``https://h/functions/v1`` +
    ``/api/chatbot/quiz`` gives ``https://h/functions/v1/api/chatbot/quiz``.
    """
    if not path:
        return base
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def denied_pattern(host: str, denylist: Iterable[str]) -> str | None:
    """Denylist pattern that refuses ``host``, or None.

    DNS names match a pattern contained in them (case-insensitive). IP
    literals match a pattern only by address equality, and any non-empty
    denylist also refuses every loopback and unspecified address
    ("loopback" / "unspecified" is returned). An empty denylist refuses nothing.
    """
    patterns = [p.strip().lower() for p in denylist if p and p.strip()]
    if not patterns:
        return None

    host = host.lower()
    address = _ip_address(host)
    if address is None:
        for pattern in patterns:
            if pattern in host:
                return pattern
        return None

    for pattern in patterns:
        if _ip_address(pattern) == address:
            return pattern
    if address.is_loopback:
        return "loopback"
    if address.is_unspecified:
        return "unspecified"
    return None


def _ip_address(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(value.strip("[]"))
    except ValueError:
        return None


def resolve_destination(base_url: str, path: str, denylist: Iterable[str]) -> str:
    """Build the destination URL for ``path`` under ``base_url``.

    Raises:
        EndpointConfigError: If base_url is empty or malformed.
        DeniedHostError: If the host is denylisted.
    """
    base_url = (base_url or "").strip()
    if not base_url:
        raise EndpointConfigError("downstream endpoint is not configured")

    parts = urlsplit(base_url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise EndpointConfigError("downstream endpoint is not an absolute http(s) URL")

    pattern = denied_pattern(parts.hostname, denylist)
    if pattern is not None:
        raise DeniedHostError(parts.hostname, pattern)

    return join_url(base_url, path)


def chatbot_path(category: Category) -> str:
    return CHATBOT_PATH.format(category=category.value)
