"""Posh Notifier — Headless Browser Session.

Thin lifecycle wrapper around Playwright's async Chromium driver:
  - start(): launch the browser once per run
  - page(): scoped page that is always closed, even on errors
  - close(): tear down browser and driver
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from posh_notifier.config import ScraperConfig
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class BrowserSession:
    """One headless Chromium instance shared by a single run.

    Attributes:
        config: Scraper configuration (headless flag, args, timeouts).
        pages_opened: Number of pages opened this session.
    """

    def __init__(self, config: ScraperConfig) -> None:
        self.config = config
        self.pages_opened: int = 0
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        """Launch Chromium. Calling it on a started session does nothing."""
        if self._browser is not None:
            return

        logger.info("Launching headless Chromium...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=list(self.config.browser_args),
        )

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open an isolated page, closing it on exit no matter what."""
        if self._browser is None:
            await self.start()

        page = await self._browser.new_page()
        self.pages_opened += 1
        page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
        page.set_default_timeout(self.config.navigation_timeout_ms)
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug("Page close failed: %s", e)

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver."""
        if self._browser is not None:
            try:
                await self._browser.close()
            finally:
                self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.debug("Browser closed (pages opened: %d)", self.pages_opened)

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
