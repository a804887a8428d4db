from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.error import NetworkError

from posh_notifier.database.models import ListingOutcome
from posh_notifier.notifier.formatters import WARMUP_TEXT
from posh_notifier.notifier.telegram_bot import TelegramNotifier
from posh_notifier.scraper.discovery import DiscoveryError
from posh_notifier.scraper.pipeline import ListingPipeline

from conftest import (
    SEARCH_URL,
    FakeNotifier,
    FakeSession,
    FakeSite,
    MemoryStore,
    listing_html,
    listing_url,
    make_config,
    search_html,
)

A = listing_url("A")
B = listing_url("B")

JACKET_A = listing_html("Women's DryVent Jacket", "$30", "M")
JACKET_B_FLAW = listing_html("DryVent Jacket - flaw", "$20", "S")


def _site(listings: dict[str, str], **kwargs) -> FakeSite:
    hrefs = [url.replace("https://poshmark.com", "") for url in listings]
    pages = {SEARCH_URL: search_html(hrefs), **listings}
    return FakeSite(pages=pages, **kwargs)


def _run(site: FakeSite, store, notifier, config=None):
    session = FakeSession(site)
    pipeline = ListingPipeline(
        config or make_config(),
        store,
        notifier,
        session_factory=lambda: session,
    )
    state = asyncio.run(pipeline.run())
    return state, session


def test_notifies_clean_listing_and_skips_flawed(events):
    site = _site({A: JACKET_A, B: JACKET_B_FLAW}, events=events)
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events)

    state, _ = _run(site, store, notifier)

    assert notifier.sent == [
        "🧥 Women's DryVent Jacket\n💰 30\n📏 Size: M\n🔗 https://poshmark.com/listing/A"
    ]
    assert store.seen == {A}
    assert state.match_count == 1
    assert state.outcomes[ListingOutcome.NOTIFIED_COMMITTED] == 1
    assert state.outcomes[ListingOutcome.SKIPPED_FILTERED] == 1


def test_failed_send_is_not_committed(events, caplog):
    site = _site({A: JACKET_A, B: JACKET_B_FLAW}, events=events)
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events, fail_when=lambda text: True)

    state, _ = _run(site, store, notifier)

    assert store.seen == set()
    assert state.match_count == 0
    assert state.outcomes[ListingOutcome.NOTIFIED_FAILED_NOT_COMMITTED] == 1
    assert "NOT marking as seen" in caplog.text


def test_seen_url_is_never_visited(events):
    site = _site({A: JACKET_A}, events=events)
    store = MemoryStore(seen={A}, events=events)
    notifier = FakeNotifier(events=events)

    state, _ = _run(site, store, notifier)

    assert A not in site.visits
    assert notifier.sent == []
    assert notifier.headers == []
    assert state.outcomes[ListingOutcome.SKIPPED_SEEN] == 1


def test_second_run_sends_nothing_new(events):
    listings = {listing_url(s): listing_html(f"DryVent {s}", "$25", "L") for s in "ABC"}
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events)

    _run(_site(listings, events=events), store, notifier)
    assert len(notifier.sent) == 3

    site = _site(listings, events=events)
    state, _ = _run(site, store, notifier)

    assert len(notifier.sent) == 3
    assert state.outcomes[ListingOutcome.SKIPPED_SEEN] == 3
    assert site.visits == [SEARCH_URL]


def test_commit_happens_only_after_successful_send(events):
    listings = {listing_url(s): listing_html(f"DryVent {s}", "$25", "L") for s in "ABCD"}
    site = _site(listings, events=events)
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events, fail_when=lambda text: "DryVent B" in text)

    _run(site, store, notifier)

    assert store.seen == {listing_url(s) for s in "ACD"}
    for i, (kind, value) in enumerate(events):
        if kind == "add":
            assert events[i - 1][0] == "send"
            assert value in events[i - 1][1]


class _LockedForA(MemoryStore):
    async def add(self, url, title="", telegram_message_id=None):
        if url == A:
            raise RuntimeError("database is locked")
        await super().add(url, title, telegram_message_id)


def test_ledger_write_failure_does_not_stop_the_run(events, caplog):
    site = _site({A: JACKET_A, B: listing_html("DryVent B", "$10", "S")}, events=events)
    store = _LockedForA(events=events)
    notifier = FakeNotifier(events=events)

    state, session = _run(site, store, notifier)

    assert len(notifier.sent) == 2
    assert store.seen == {B}
    assert state.match_count == 1
    assert state.outcomes[ListingOutcome.NOTIFIED_FAILED_NOT_COMMITTED] == 1
    assert state.outcomes[ListingOutcome.NOTIFIED_COMMITTED] == 1
    assert "database is locked" in caplog.text
    assert session.closed == 1


def test_quota_is_never_exceeded(events):
    listings = {listing_url(s): listing_html(f"DryVent {s}", "$25", "L") for s in "ABCDE"}
    site = _site(listings, events=events)
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events)

    state, _ = _run(site, store, notifier, config=make_config(max_matches=2))

    assert state.match_count == 2
    assert len(notifier.sent) == 2
    assert store.seen == {listing_url("A"), listing_url("B")}
    # Nothing past the quota is visited
    assert site.visits == [SEARCH_URL, listing_url("A"), listing_url("B")]


def test_incomplete_listing_never_reaches_notifier(events):
    site = _site(
        {
            A: listing_html("DryVent", "$30", None),
            B: listing_html(None, "$30", "M"),
        },
        events=events,
    )
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events)

    state, _ = _run(site, store, notifier)

    assert notifier.sent == []
    assert notifier.headers == []
    assert store.seen == set()
    assert state.outcomes[ListingOutcome.SKIPPED_INCOMPLETE] == 2


def test_visit_failure_does_not_stop_the_run(events):
    site = _site({A: JACKET_A, B: listing_html("DryVent B", "$10", "S")}, fail_urls={A}, events=events)
    store = MemoryStore(events=events)
    notifier = FakeNotifier(events=events)

    state, session = _run(site, store, notifier)

    assert store.seen == {B}
    assert state.outcomes[ListingOutcome.VISIT_FAILED] == 1
    assert state.outcomes[ListingOutcome.NOTIFIED_COMMITTED] == 1
    assert site.opened_pages == site.closed_pages == 3
    assert session.closed == 1


def test_header_sent_once_before_first_match(events):
    listings = {listing_url(s): listing_html(f"DryVent {s}", "$25", "L") for s in "AB"}
    site = _site(listings, events=events)
    notifier = FakeNotifier(events=events)

    _run(site, MemoryStore(events=events), notifier)

    assert notifier.headers == [WARMUP_TEXT, "New deals:"]


def test_header_failure_does_not_block_notification(events):
    bot = AsyncMock()
    bot.send_message.side_effect = [
        NetworkError("boom"),
        NetworkError("boom"),
        SimpleNamespace(message_id=7),
    ]
    config = make_config()
    notifier = TelegramNotifier(config.telegram, bot=bot)
    store = MemoryStore(events=events)

    state, _ = _run(_site({A: JACKET_A}, events=events), store, notifier, config=config)

    assert bot.send_message.await_count == 3
    assert state.match_count == 1
    assert store.seen == {A}


def test_search_page_failure_aborts_run_and_closes_session(events):
    site = _site({A: JACKET_A}, fail_urls={SEARCH_URL}, events=events)
    session = FakeSession(site)
    pipeline = ListingPipeline(
        make_config(), MemoryStore(), FakeNotifier(), session_factory=lambda: session,
    )

    with pytest.raises(DiscoveryError):
        asyncio.run(pipeline.run())

    assert session.closed == 1


def test_session_opened_and_closed_once(events):
    site = _site({A: JACKET_A, B: JACKET_B_FLAW}, events=events)
    _, session = _run(site, MemoryStore(), FakeNotifier())

    assert session.started == 1
    assert session.closed == 1
