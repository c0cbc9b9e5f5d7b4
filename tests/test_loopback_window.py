"""
Tests for the external-browser + loopback listener backend.
"""

import pytest
from fastapi.testclient import TestClient

from connectors.loopback_window import (
    LOCATION_REPORT_PATH,
    LoopbackWindow,
    LoopbackWindowSpawner,
    build_callback_app,
)
from utils.errors import CrossOriginReadError, SpawnBlockedError
from utils.schemas import WindowGeometry


class TestCallbackApp:
    def setup_method(self):
        self.window = LoopbackWindow()
        self.client = TestClient(build_callback_app(self.window))

    @pytest.mark.asyncio
    async def test_unreadable_until_first_navigation(self):
        with pytest.raises(CrossOriginReadError):
            await self.window.read_location()

    @pytest.mark.asyncio
    async def test_navigation_becomes_location(self):
        resp = self.client.get("/cb?code=abc&state=xyz")

        assert resp.status_code == 200
        assert "Authorization received" in resp.text
        assert await self.window.read_location() == "http://testserver/cb?code=abc&state=xyz"

    @pytest.mark.asyncio
    async def test_subresource_requests_ignored(self):
        self.client.get("/cb?code=abc")
        self.client.get("/favicon.ico")
        self.client.get("/logo.png", headers={"Sec-Fetch-Dest": "image"})

        assert await self.window.read_location() == "http://testserver/cb?code=abc"

    @pytest.mark.asyncio
    async def test_fragment_reported_by_landing_page(self):
        self.client.get("/cb")
        resp = self.client.post(
            LOCATION_REPORT_PATH,
            json={"href": "http://testserver/cb#access_token=tok"},
        )

        assert resp.status_code == 200
        assert await self.window.read_location() == "http://testserver/cb#access_token=tok"


class TestLoopbackWindow:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        window = LoopbackWindow()
        assert not await window.is_closed()
        await window.close()
        await window.close()
        assert await window.is_closed()


class TestLoopbackSpawner:
    def test_listen_address(self):
        assert LoopbackWindowSpawner("http://localhost:8000").listen_address() == ("localhost", 8000)
        assert LoopbackWindowSpawner("http://127.0.0.1").listen_address() == ("127.0.0.1", 80)

    @pytest.mark.parametrize("origin", ["https://localhost:8000", "http://app.test:8000"])
    def test_non_loopback_origin_blocked(self, origin):
        with pytest.raises(SpawnBlockedError):
            LoopbackWindowSpawner(origin).listen_address()

    @pytest.mark.asyncio
    async def test_no_browser_available(self):
        opened = []

        def open_browser(url):
            opened.append(url)
            return False

        spawner = LoopbackWindowSpawner("http://127.0.0.1:0", open_browser=open_browser)
        with pytest.raises(SpawnBlockedError, match="no web browser available"):
            await spawner.spawn("https://provider.test/authorize", WindowGeometry(width=600, height=700))

        assert opened == ["https://provider.test/authorize"]
