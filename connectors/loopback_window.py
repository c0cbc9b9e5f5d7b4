"""
Loopback window backend — opens the authorization page in the user's own
browser and serves the host origin locally to catch the redirect.

The "window" is the listener: every page navigation that reaches it becomes
the window's current location.  The landing page posts ``location.href`` back
so fragment-flow results (which browsers never send to servers) are seen
too.  Until the first navigation arrives the location is unreadable, just
like a popup still showing the provider's pages.

The external browser can't be observed closing, so only ``close()`` (the
controller, or a cancel) marks this window closed.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlsplit

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from config.settings import config
from connectors.base import WindowHandle, WindowSpawner
from utils.errors import CrossOriginReadError, SpawnBlockedError
from utils.schemas import WindowGeometry

logger = logging.getLogger(__name__)

LOCATION_REPORT_PATH = "/__oauth/location"

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}
_STARTUP_TIMEOUT = 5.0
_SHUTDOWN_TIMEOUT = 5.0


class LocationReport(BaseModel):
    href: str


class LoopbackWindow(WindowHandle):
    def __init__(self) -> None:
        self._location: Optional[str] = None
        self._closed = False
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None

    def record(self, url: str) -> None:
        """Remember *url* as the window's current location."""
        self._location = url

    def attach(self, server: uvicorn.Server, serve_task: asyncio.Task) -> None:
        self._server = server
        self._serve_task = serve_task

    async def wait_started(self) -> None:
        """Block until the listener accepts connections."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + _STARTUP_TIMEOUT
        while self._server is not None and not self._server.started:
            if self._serve_task is not None and self._serve_task.done():
                raise SpawnBlockedError("callback listener stopped during startup")
            if loop.time() > deadline:
                raise SpawnBlockedError("callback listener did not start")
            await asyncio.sleep(0.05)

    async def is_closed(self) -> bool:
        if self._closed:
            return True
        return self._serve_task is not None and self._serve_task.done()

    async def read_location(self) -> str:
        if self._location is None:
            raise CrossOriginReadError("no redirect has reached the listener yet")
        return self._location

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None and not self._serve_task.done():
            try:
                await asyncio.wait_for(self._serve_task, timeout=_SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Callback listener did not stop in time — cancelling")
                self._serve_task.cancel()
        logger.info("Loopback callback listener stopped")


def build_callback_app(window: LoopbackWindow) -> FastAPI:
    """FastAPI app that records navigations on the host origin into *window*."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.post(LOCATION_REPORT_PATH)
    async def report_location(report: LocationReport) -> dict:
        window.record(report.href)
        return {"status": "recorded"}

    @app.get("/{path:path}")
    async def capture(path: str, request: Request) -> HTMLResponse:
        # Only top-level navigations move the "window"; favicon and other
        # sub-resource fetches must not overwrite the location.
        dest = request.headers.get("sec-fetch-dest", "document")
        if dest == "document" and path != "favicon.ico":
            window.record(str(request.url))
            logger.debug("Listener navigation: /%s", path)
        return HTMLResponse(content=_landing_html(), status_code=200)

    return app


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


class LoopbackWindowSpawner(WindowSpawner):
    """
    Parameters
    ----------
    host_origin  : origin to listen on; must be ``http`` on a loopback host.
                   Defaults to ``config.app_origin``.
    open_browser : opens a URL, returns False if no browser could be used.
    """

    def __init__(
        self,
        host_origin: Optional[str] = None,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ):
        self._host_origin = host_origin
        self._open_browser = open_browser

    @property
    def backend_name(self) -> str:
        return "loopback"

    def listen_address(self) -> tuple[str, int]:
        """Host and port the listener binds, derived from the host origin."""
        origin = self._host_origin or config.app_origin
        parts = urlsplit(origin)
        if parts.scheme != "http" or parts.hostname not in _LOOPBACK_HOSTS:
            raise SpawnBlockedError(f"{origin} is not a loopback http origin")
        return parts.hostname, parts.port if parts.port is not None else 80

    async def spawn(self, url: str, geometry: WindowGeometry) -> WindowHandle:
        host, port = self.listen_address()
        try:
            sock = _bind_socket(host, port)
        except OSError as exc:
            raise SpawnBlockedError(f"cannot listen on {host}:{port}: {exc}") from exc

        window = LoopbackWindow()
        server = uvicorn.Server(uvicorn.Config(
            build_callback_app(window),
            log_level="warning",
            lifespan="off",
        ))
        window.attach(server, asyncio.create_task(server.serve(sockets=[sock])))
        try:
            await window.wait_started()
        except SpawnBlockedError:
            await window.close()
            raise

        logger.info("Callback listener on %s:%d; opening system browser", host, port)
        logger.debug("External browser ignores requested geometry %dx%d", geometry.width, geometry.height)
        opened = await asyncio.to_thread(self._open_browser, url)
        if not opened:
            await window.close()
            raise SpawnBlockedError("no web browser available")
        return window


# ── Landing page template ──────────────────────────────────────────────


def _landing_html() -> str:
    """
    Page shown once the provider redirects back.
    Reports the full location (fragment included) to the listener.
    """
    return f"""<!DOCTYPE html>
<html>
<head>
    <title>Authorization received</title>
    <style>
        body {{
            font-family: system-ui, sans-serif;
            background: #0b0d11; color: #e4e7ee;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        .card {{
            text-align: center; padding: 40px;
            background: #12151b; border: 1px solid #1f2330;
            border-radius: 12px; max-width: 400px;
        }}
        p {{ color: #a0a6b8; font-size: 0.85rem; }}
    </style>
</head>
<body>
    <div class="card">
        <h2>Authorization received</h2>
        <p>You can close this window and return to the application.</p>
    </div>
    <script>
        if (window.location.hash) {{
            fetch('{LOCATION_REPORT_PATH}', {{
                method: 'POST',
                headers: {{ 'Content-Type': 'application/json' }},
                body: JSON.stringify({{ href: window.location.href }}),
            }});
        }}
    </script>
</body>
</html>"""
