"""
Playwright window backend — opens the authorization page in a headed Chromium
window positioned over the host window.

Under automation the page URL is always readable, even while the provider's
pages are showing; the completion monitor applies the same-origin check.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from connectors.base import WindowHandle, WindowSpawner
from utils.errors import CrossOriginReadError, SpawnBlockedError
from utils.schemas import WindowGeometry
from utils.validators import origin_of

logger = logging.getLogger(__name__)

_NAVIGATION_TIMEOUT_MS = 30000


def launch_args(geometry: WindowGeometry) -> List[str]:
    """Chromium flags that place and size the window."""
    return [
        f"--window-position={geometry.left},{geometry.top}",
        f"--window-size={geometry.width},{geometry.height}",
    ]


class PlaywrightWindow(WindowHandle):
    """A Chromium window owned by its own Playwright instance."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ):
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    async def is_closed(self) -> bool:
        return self._closed or self._page.is_closed() or not self._browser.is_connected()

    async def read_location(self) -> str:
        if await self.is_closed():
            raise CrossOriginReadError("window is closed")
        return self._page.url

    async def close(self) -> None:
        """Tear down page, context, browser and Playwright."""
        if self._closed:
            return
        self._closed = True
        try:
            if not self._page.is_closed():
                await self._page.close()
            await self._context.close()
            if self._browser.is_connected():
                await self._browser.close()
        except PlaywrightError as exc:
            # Browser already gone (user closed it)
            logger.debug("Playwright teardown: %s", exc)
        finally:
            await self._playwright.stop()
        logger.info("Playwright auth window closed")


class PlaywrightWindowSpawner(WindowSpawner):
    """Spawns auth windows with Playwright + Chromium."""

    def __init__(self, headless: bool = False):
        self.headless = headless

    @property
    def backend_name(self) -> str:
        return "playwright"

    async def spawn(self, url: str, geometry: WindowGeometry) -> WindowHandle:
        playwright: Optional[Playwright] = None
        browser: Optional[Browser] = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=launch_args(geometry),
            )
            context = await browser.new_context(
                viewport={"width": geometry.width, "height": geometry.height},
            )
            page = await context.new_page()
            await page.goto(url, wait_until="commit", timeout=_NAVIGATION_TIMEOUT_MS)
        except PlaywrightError as exc:
            logger.error("Playwright could not open %s: %s", origin_of(url), exc)
            try:
                if browser is not None:
                    await browser.close()
            except PlaywrightError as close_exc:
                logger.debug("Playwright teardown after failed spawn: %s", close_exc)
            finally:
                if playwright is not None:
                    await playwright.stop()
            raise SpawnBlockedError(str(exc)) from exc

        logger.info(
            "Playwright auth window opened on %s (%dx%d at %d,%d)",
            origin_of(url), geometry.width, geometry.height, geometry.left, geometry.top,
        )
        return PlaywrightWindow(playwright, browser, context, page)
