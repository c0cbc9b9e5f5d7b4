"""
Shared fixtures — scripted window fakes standing in for a real browser.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from connectors.base import WindowHandle, WindowSpawner
from connectors.registry import WindowSpawnerRegistry
from core.completion_controller import CompletionController
from utils.errors import CrossOriginReadError, SpawnBlockedError
from utils.schemas import AuthRequest, HostWindow, WindowGeometry

HOST = "https://app.test"
PROVIDER_AUTH_URL = "https://provider.test/authorize?client_id=abc"

# Script item meaning "location not readable this tick".
BLOCKED = object()


class ScriptedWindow(WindowHandle):
    """
    Walks through *locations*, one per read.  The last item repeats forever.
    Items are URLs, ``BLOCKED``, or exceptions to raise.  An empty script is
    blocked forever.
    """

    def __init__(self, locations: Optional[list] = None, read_delay: float = 0.0):
        self.locations = list(locations or [])
        self.read_delay = read_delay
        self.closed = False
        self.close_calls = 0
        self.reads = 0

    def user_close(self) -> None:
        self.closed = True

    async def is_closed(self) -> bool:
        return self.closed

    async def read_location(self) -> str:
        self.reads += 1
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if not self.locations:
            raise CrossOriginReadError("still on provider")
        item = self.locations[0] if len(self.locations) == 1 else self.locations.pop(0)
        if item is BLOCKED:
            raise CrossOriginReadError("still on provider")
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class ScriptedSpawner(WindowSpawner):
    def __init__(
        self,
        window: Optional[ScriptedWindow] = None,
        blocked: bool = False,
        spawn_delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.window = window or ScriptedWindow()
        self.blocked = blocked
        self.spawn_delay = spawn_delay
        self.error = error
        self.spawn_calls: List[tuple] = []

    @property
    def backend_name(self) -> str:
        return "scripted"

    async def spawn(self, url: str, geometry: WindowGeometry) -> WindowHandle:
        self.spawn_calls.append((url, geometry))
        if self.spawn_delay:
            await asyncio.sleep(self.spawn_delay)
        if self.blocked:
            raise SpawnBlockedError("blocked by test")
        if self.error is not None:
            raise self.error
        return self.window


def make_controller(spawner: WindowSpawner, **kwargs) -> CompletionController:
    kwargs.setdefault("host_origin", HOST)
    kwargs.setdefault("host_window", HostWindow(x=0, y=0, width=1200, height=900))
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("max_poll_errors", 0)
    return CompletionController(spawner, **kwargs)


def make_request(**kwargs) -> AuthRequest:
    kwargs.setdefault("auth_url", PROVIDER_AUTH_URL)
    kwargs.setdefault("timeout_ms", 2000)
    return AuthRequest(**kwargs)


@pytest.fixture(autouse=True)
def _reset_registry():
    WindowSpawnerRegistry.reset()
    yield
    WindowSpawnerRegistry.reset()
