"""Shared fakes for the browser, Telegram and the seen ledger."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable, Iterable, Optional

import pytest

from posh_notifier.config import AppConfig, build_config
from posh_notifier.notifier.telegram_bot import NotifyError

BASE_URL = "https://poshmark.com"
SEARCH_URL = "https://poshmark.com/search?query=dryvent"


def make_config(
    max_matches: int = 10,
    max_scrolls: int = 10,
    max_listings: int = 0,
    warmup_message: bool = True,
    terms: Optional[list[str]] = None,
) -> AppConfig:
    settings: dict[str, Any] = {
        "scraper": {
            "base_url": BASE_URL,
            "search_url": SEARCH_URL,
            "max_scrolls": max_scrolls,
            "max_listings": max_listings,
            "search_settle_ms": 0,
            "detail_settle_ms": 0,
        },
        "filter": {"max_matches": max_matches},
        "telegram": {
            "bot_token": "123:abc",
            "chat_id": "42",
            "header_text": "New deals:",
            "warmup_message": warmup_message,
        },
    }
    if terms is not None:
        settings["filter"]["disqualifying_terms"] = terms
    return build_config(settings)


def listing_html(
    title: Optional[str] = None,
    price: Optional[str] = None,
    size: Optional[str] = None,
) -> str:
    parts = []
    if title is not None:
        parts.append(f'<h1 class="listing__title-container"> {title} </h1>')
    if price is not None:
        parts.append(f'<div><p class="h1">{price}</p></div>')
    if size is not None:
        parts.append(f'<button class="size-selector__size-option">{size}</button>')
    return "<html><body>" + "".join(parts) + "</body></html>"


def search_html(hrefs: Iterable[str]) -> str:
    tiles = "".join(
        f'<div class="card"><a class="tile__covershot" href="{h}"><img/></a></div>'
        for h in hrefs
    )
    return f"<html><body><main>{tiles}</main></body></html>"


def listing_url(slug: str) -> str:
    return f"{BASE_URL}/listing/{slug}"


class FakeSite:
    """In-memory stand-in for the rendered web, shared by pages."""

    def __init__(
        self,
        pages: Optional[dict[str, str]] = None,
        heights: Iterable[int] = (1000, 1000),
        fail_urls: Iterable[str] = (),
        events: Optional[list] = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.heights = list(heights)
        self.fail_urls = set(fail_urls)
        self.events = events if events is not None else []
        self.visits: list[str] = []
        self.scrolls = 0
        self.height_checks = 0
        self.opened_pages = 0
        self.closed_pages = 0


class FakePage:
    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.url: Optional[str] = None

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.site.visits.append(url)
        self.site.events.append(("visit", url))
        if url in self.site.fail_urls:
            raise TimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = url

    async def wait_for_timeout(self, ms: int) -> None:
        return None

    async def evaluate(self, script: str) -> Any:
        if "scrollHeight" in script:
            self.site.height_checks += 1
            if len(self.site.heights) > 1:
                return self.site.heights.pop(0)
            return self.site.heights[0] if self.site.heights else 0
        self.site.scrolls += 1
        return None

    async def content(self) -> str:
        return self.site.pages.get(self.url, "<html><body></body></html>")

    async def close(self) -> None:
        self.site.closed_pages += 1


class FakeSession:
    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.started = 0
        self.closed = 0

    async def start(self) -> None:
        self.started += 1

    @asynccontextmanager
    async def page(self):
        page = FakePage(self.site)
        self.site.opened_pages += 1
        try:
            yield page
        finally:
            await page.close()

    async def close(self) -> None:
        self.closed += 1


class FakeNotifier:
    """Records sends; ``fail_when`` decides which commit-path sends fail."""

    def __init__(
        self,
        events: Optional[list] = None,
        fail_when: Callable[[str], bool] = lambda text: False,
    ) -> None:
        self.events = events if events is not None else []
        self.fail_when = fail_when
        self.sent: list[str] = []
        self.headers: list[str] = []

    async def send(self, text: str) -> str:
        if self.fail_when(text):
            self.events.append(("send_failed", text))
            raise NotifyError("Bad Request: chat not found")
        self.sent.append(text)
        self.events.append(("send", text))
        return str(len(self.sent))

    async def send_best_effort(self, text: str) -> Optional[str]:
        self.headers.append(text)
        return None


class MemoryStore:
    def __init__(self, seen: Iterable[str] = (), events: Optional[list] = None) -> None:
        self.seen = set(seen)
        self.events = events if events is not None else []
        self.has_calls: list[str] = []

    async def ensure_schema(self) -> None:
        return None

    async def has(self, url: str) -> bool:
        self.has_calls.append(url)
        return url in self.seen

    async def add(self, url: str, title: str = "", telegram_message_id: Optional[str] = None) -> None:
        self.events.append(("add", url))
        self.seen.add(url)


@pytest.fixture
def events() -> list:
    return []
