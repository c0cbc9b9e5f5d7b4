"""
WindowSpawnerRegistry — maps backend names to window spawner factories.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from config.settings import config
from connectors.base import WindowSpawner

logger = logging.getLogger(__name__)

SpawnerFactory = Callable[[], WindowSpawner]


def _playwright_factory() -> WindowSpawner:
    # Imported lazily so the loopback backend works without browsers installed.
    from connectors.playwright_window import PlaywrightWindowSpawner

    return PlaywrightWindowSpawner(headless=config.oauth_browser_headless)


def _loopback_factory() -> WindowSpawner:
    from connectors.loopback_window import LoopbackWindowSpawner

    return LoopbackWindowSpawner()


# ── Built-in backends (add new ones here) ────────────────────────────────

_BUILTIN_BACKENDS: Dict[str, SpawnerFactory] = {
    "playwright": _playwright_factory,
    "loopback": _loopback_factory,
}


class WindowSpawnerRegistry:
    """Singleton registry of window backends."""

    _instance: Optional["WindowSpawnerRegistry"] = None

    def __new__(cls) -> "WindowSpawnerRegistry":
        if cls._instance is None:
            inst = super().__new__(cls)
            inst._factories: Dict[str, SpawnerFactory] = dict(_BUILTIN_BACKENDS)
            cls._instance = inst
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton (tests)."""
        cls._instance = None

    def register(self, name: str, factory: SpawnerFactory) -> None:
        if name in self._factories:
            logger.warning("Window backend '%s' re-registered", name)
        self._factories[name] = factory

    def create(self, name: Optional[str] = None) -> WindowSpawner:
        """
        Build a spawner for backend *name* (default: ``config.oauth_window_backend``).

        Raises
        ------
        ValueError – unknown backend
        """
        name = name or config.oauth_window_backend
        factory = self._factories.get(name)
        if factory is None:
            raise ValueError(
                f"Unknown window backend '{name}'. Available: {', '.join(self.list_backends())}"
            )
        spawner = factory()
        if not spawner.is_available():
            logger.warning("Window backend '%s' reports it is not available", name)
        return spawner

    def list_backends(self) -> List[str]:
        return sorted(self._factories)
