"""
WindowSpawner / WindowHandle — the capability the completion controller needs
from whatever shows the provider's login pages.

Every backend (Playwright browser window, external browser + loopback
listener, scripted test fake, …) subclasses these and implements the
core methods.  The controller never touches a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from utils.schemas import WindowGeometry


class WindowHandle(ABC):
    """A live interactive window opened by a ``WindowSpawner``."""

    @abstractmethod
    async def is_closed(self) -> bool:
        """True once the window is gone (closed by the user or by ``close``)."""
        ...

    @abstractmethod
    async def read_location(self) -> str:
        """
        Return the window's current URL.

        Raises
        ------
        CrossOriginReadError
            The location is not readable right now (typically because the
            window is still on the provider's origin).  Callers treat this
            as "not yet", never as a failure.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the window.  Must be safe to call more than once."""
        ...


class WindowSpawner(ABC):
    """Opens interactive URL surfaces."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Unique slug: 'playwright', 'loopback', …"""
        ...

    # ── Spawning ────────────────────────────────────────────────────────

    @abstractmethod
    async def spawn(self, url: str, geometry: WindowGeometry) -> WindowHandle:
        """
        Open *url* in a new window placed and sized per *geometry*.

        Raises
        ------
        SpawnBlockedError
            The platform refused to open the window.
        """
        ...

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_available(self) -> bool:
        """
        Return True if this backend can run in the current environment
        (libraries installed, display present, …).
        """
        return True
