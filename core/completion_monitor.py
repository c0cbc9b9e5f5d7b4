"""
CompletionMonitor — one inspection of the auth window per poll tick.

Each tick maps the window's state to a single ``PollEvent``:

    closed                    → user gave up (or the window was force-closed)
    read_blocked              → location unreadable / still off-origin
    same_origin_no_params     → back on our origin, intermediate page
    same_origin_with_params   → back on our origin with an authorization result

Unreadable locations are the normal state while the provider's pages are
showing and are reported as ``read_blocked``, never raised.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

from connectors.base import WindowHandle
from utils.errors import CrossOriginReadError
from utils.schemas import PollEvent
from utils.validators import is_same_origin

logger = logging.getLogger(__name__)

_QUERY_MARKERS = ("code", "error")
_FRAGMENT_MARKERS = ("access_token", "code", "error")


def has_authorization_params(url: str) -> bool:
    """
    True if *url* carries an authorization result: a ``code`` or ``error``
    query parameter, or a fragment mentioning ``access_token``, ``code`` or
    ``error`` (hash-routed apps put a whole query string after ``#``).
    """
    parts = urlsplit(url)
    query_keys = {key for key, _ in parse_qsl(parts.query, keep_blank_values=True)}
    if any(marker in query_keys for marker in _QUERY_MARKERS):
        return True
    return any(marker in parts.fragment for marker in _FRAGMENT_MARKERS)


class CompletionMonitor:
    def __init__(self, host_origin: str):
        self.host_origin = host_origin

    async def inspect(self, window: WindowHandle) -> Tuple[PollEvent, Optional[str]]:
        """
        Inspect *window* once.

        Returns ``(event, url)``; *url* is set only for
        ``SAME_ORIGIN_WITH_PARAMS``.  Exceptions other than
        ``CrossOriginReadError`` propagate to the caller.
        """
        if await window.is_closed():
            return PollEvent.CLOSED, None

        try:
            location = await window.read_location()
        except CrossOriginReadError:
            return PollEvent.READ_BLOCKED, None

        if not is_same_origin(location, self.host_origin):
            # Readable but foreign (about:blank, provider page under automation)
            return PollEvent.READ_BLOCKED, None

        if not has_authorization_params(location):
            return PollEvent.SAME_ORIGIN_NO_PARAMS, None

        return PollEvent.SAME_ORIGIN_WITH_PARAMS, location
