"""Posh Notifier — Listing Discovery.

Drives the infinite-scroll search page until it stops growing and
harvests the listing permalinks it shows.

The scroll loop stops the first time the measured page height equals
the previous measurement, or after ``max_scrolls`` iterations for pages
that keep lazy-loading forever.
"""

from __future__ import annotations

from typing import Any, Optional

from selectolax.parser import HTMLParser

from posh_notifier.config import ScraperConfig
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_SCROLL_JS = "() => window.scrollBy(0, window.innerHeight)"
_HEIGHT_JS = "() => document.body.scrollHeight"


class DiscoveryError(Exception):
    """The search page could not be loaded. Fatal for the run."""


def _absolute_url(base_url: str, href: str) -> str:
    if href.startswith(("http://", "https://")):
        return href
    if not href.startswith("/"):
        href = "/" + href
    return base_url.rstrip("/") + href


def harvest_listing_urls(
    html: str,
    selector: str,
    base_url: str,
    limit: int = 0,
) -> list[str]:
    """Collect listing permalinks from a rendered search page.

    Args:
        html: Page HTML after scrolling finished.
        selector: CSS selector of listing anchors.
        base_url: Site origin prefixed onto relative hrefs.
        limit: Keep at most this many URLs (0 = no limit).

    Returns:
        Absolute URLs in DOM order, without duplicates.
    """
    tree = HTMLParser(html)
    seen: set[str] = set()
    urls: list[str] = []

    for node in tree.css(selector):
        href = (node.attributes.get("href") or "").strip()
        if not href:
            continue
        url = _absolute_url(base_url, href)
        if url in seen:
            continue
        seen.add(url)
        urls.append(url)
        if limit and len(urls) >= limit:
            break

    return urls


class ListingDiscovery:
    """Loads the search page and returns candidate listing URLs.

    Attributes:
        config: Scraper configuration with bounds and selectors.
        scrolls_performed: Scroll iterations in the last discover() call.
    """

    def __init__(self, config: ScraperConfig) -> None:
        self.config = config
        self.scrolls_performed: int = 0

    async def discover(self, session: Any, search_url: Optional[str] = None) -> list[str]:
        """Navigate, scroll to exhaustion and harvest listing URLs.

        Args:
            session: A started BrowserSession (anything with ``page()``).
            search_url: Override for the configured search URL.

        Returns:
            Deduplicated listing URLs in page order; empty if none found.

        Raises:
            DiscoveryError: If the search page fails to load.
        """
        url = search_url or self.config.search_url

        async with session.page() as page:
            logger.info("Navigating to search page: %s", url)
            try:
                await page.goto(
                    url,
                    wait_until=self.config.wait_until,
                    timeout=self.config.navigation_timeout_ms,
                )
            except Exception as e:
                raise DiscoveryError(f"Failed to load search page {url}: {e}") from e

            await page.wait_for_timeout(self.config.search_settle_ms)
            await self._scroll_until_stable(page)

            logger.info("Scraping listing links...")
            html = await page.content()

        urls = harvest_listing_urls(
            html,
            self.config.listing_selector,
            self.config.base_url,
            limit=self.config.max_listings,
        )
        logger.info("Found %d listing links", len(urls))
        return urls

    async def _scroll_until_stable(self, page: Any) -> None:
        previous_height = 0
        self.scrolls_performed = 0

        for i in range(self.config.max_scrolls):
            await page.evaluate(_SCROLL_JS)
            self.scrolls_performed += 1
            new_height = await page.evaluate(_HEIGHT_JS)

            if new_height == previous_height:
                logger.debug("Page height stable at %s after %d scrolls", new_height, i + 1)
                break

            previous_height = new_height
            logger.info("Scrolled %d times...", i + 1)
