"""
Redirect validation — keeps OAuth redirects on the host application's origin.

An origin is scheme + host + port.  Default ports are normalised away
(``https://app.test:443`` and ``https://app.test`` are the same origin) and
URLs without a network location (``about:blank``, ``data:…``) have the opaque
origin ``"null"``, which never matches anything.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import SplitResult, parse_qsl, urlsplit

from utils.errors import CrossOriginRedirectError, InvalidRedirectUriError
from utils.schemas import AuthRequest

logger = logging.getLogger(__name__)

OPAQUE_ORIGIN = "null"

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def _serialize_origin(parts: SplitResult) -> str:
    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        return OPAQUE_ORIGIN
    if ":" in host:  # IPv6 literal
        host = f"[{host}]"
    port = parts.port
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def origin_of(url: str) -> str:
    """
    Return the serialised origin of *url*.

    Raises
    ------
    ValueError – the URL cannot be parsed (bad port, malformed IPv6 host, …)
    """
    return _serialize_origin(urlsplit(url))


def is_same_origin(url: str, host_origin: str) -> bool:
    """True if *url* can be parsed and shares *host_origin*."""
    try:
        origin = origin_of(url)
        expected = origin_of(host_origin)
    except ValueError:
        return False
    return origin != OPAQUE_ORIGIN and origin == expected


def validate_redirect_uri(uri: str, host_origin: str) -> None:
    """
    Verify *uri* is an absolute URL on *host_origin*.

    Raises
    ------
    InvalidRedirectUriError  – not an absolute URL
    CrossOriginRedirectError – origin differs from the host's
    """
    if not uri or not uri.strip():
        raise InvalidRedirectUriError(uri)
    try:
        parts = urlsplit(uri.strip())
        if not parts.scheme:
            raise ValueError("missing scheme")
        actual = _serialize_origin(parts)
    except ValueError as exc:
        raise InvalidRedirectUriError(uri) from exc

    expected = origin_of(host_origin)
    if actual == OPAQUE_ORIGIN or actual != expected:
        raise CrossOriginRedirectError(expected=expected, actual=actual)


def embedded_redirect_uri(auth_url: str) -> Optional[str]:
    """Return the ``redirect_uri`` query parameter of *auth_url*, if any."""
    try:
        query = urlsplit(auth_url).query
    except ValueError:
        return None
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == "redirect_uri":
            return value or None
    return None


def validate_auth_request(request: AuthRequest, host_origin: str) -> None:
    """
    Validate every redirect URI an authorization may come back on.

    The explicit ``redirect_uri`` and the one embedded in ``auth_url``
    (providers echo it back) must each pass independently.
    """
    if request.redirect_uri:
        validate_redirect_uri(request.redirect_uri, host_origin)

    embedded = embedded_redirect_uri(request.auth_url)
    if embedded:
        validate_redirect_uri(embedded, host_origin)

    logger.debug("Redirect URIs validated against %s", host_origin)
