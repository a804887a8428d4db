"""Posh Notifier — Listing Pipeline.

Orchestrates one run: discover candidate URLs on the search page, then
for each URL strictly in order:

  1. skip if already in the seen ledger
  2. visit the listing page in its own browser page
  3. skip if title, price or size is missing
  4. skip if the title hits a disqualifying term
  5. before the first match only, send the best-effort header
  6. send the notification; record the URL as seen only if Telegram
     confirmed it

until ``max_matches`` notifications were confirmed or the URLs run out.
A failure on one URL never stops the run; a failure to load the search
page does.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from posh_notifier.config import AppConfig
from posh_notifier.database.models import (
    Listing,
    ListingOutcome,
    RunState,
    VisitResult,
)
from posh_notifier.database.seen_store import SeenStore
from posh_notifier.notifier.formatters import (
    format_listing_message,
    format_run_summary,
    header_messages,
)
from posh_notifier.notifier.telegram_bot import NotifyError, TelegramNotifier
from posh_notifier.scraper.browser import BrowserSession
from posh_notifier.scraper.discovery import ListingDiscovery
from posh_notifier.scraper.extractor import extract_listing
from posh_notifier.scraper.listing_filter import ListingFilter
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class ListingPipeline:
    """Scrape → extract → dedupe → notify pipeline for one search page.

    Attributes:
        config: Full application configuration.
        store: Seen ledger; must already have its schema.
        notifier: Telegram sender.
    """

    def __init__(
        self,
        config: AppConfig,
        store: SeenStore,
        notifier: TelegramNotifier,
        session_factory: Optional[Callable[[], Any]] = None,
        discovery: Optional[ListingDiscovery] = None,
        listing_filter: Optional[ListingFilter] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Full AppConfig instance.
            store: Initialized SeenStore.
            notifier: TelegramNotifier used for all sends.
            session_factory: Builds a fresh browser session per run.
            discovery: Search-page driver (defaults to config-based one).
            listing_filter: Title filter (defaults to configured terms).
        """
        self.config = config
        self.store = store
        self.notifier = notifier
        self._session_factory = session_factory or (lambda: BrowserSession(config.scraper))
        self._discovery = discovery or ListingDiscovery(config.scraper)
        self._filter = listing_filter or ListingFilter(config.filter.disqualifying_terms)

    async def run(self) -> RunState:
        """Run one complete discovery + notification pass.

        Returns:
            The final RunState with per-outcome counts.

        Raises:
            DiscoveryError: If the search page could not be loaded.
        """
        state = RunState(max_matches=self.config.filter.max_matches)
        logger.info("═══ Run Starting (quota %d) ═══", state.max_matches)

        session = self._session_factory()
        try:
            await session.start()
            urls = await self._discovery.discover(session, self.config.scraper.search_url)
            state.discovered = len(urls)

            for url in urls:
                if state.quota_reached:
                    logger.info("Quota of %d reached, stopping", state.max_matches)
                    break
                outcome = await self._process_url(session, url, state)
                state.record(outcome)
                if outcome is ListingOutcome.NOTIFIED_COMMITTED:
                    logger.info("✅ Sent to Telegram (%d/%d)", state.match_count, state.max_matches)
        finally:
            await session.close()
            state.finish()

        logger.info("═══ Run Complete ═══")
        logger.info("  %s", format_run_summary(state))
        logger.info("📦 Final matches sent: %d", state.match_count)
        return state

    async def _process_url(self, session: Any, url: str, state: RunState) -> ListingOutcome:
        """Take one URL through the per-listing state machine."""
        if await self.store.has(url):
            logger.info("🔁 Already sent, skipping: %s", url)
            return ListingOutcome.SKIPPED_SEEN

        result = await self._visit(session, url)
        if not result.ok:
            logger.warning("⚠️ Failed on %s: %s", url, result.error)
            return ListingOutcome.VISIT_FAILED

        listing = result.listing
        missing = listing.missing_fields()
        if missing:
            logger.info("➖ Incomplete listing (missing %s): %s", ", ".join(missing), url)
            return ListingOutcome.SKIPPED_INCOMPLETE

        qualifies, reason = self._filter.check(listing)
        if not qualifies:
            logger.info("🚫 Filtered (%s): %s", reason, listing.title)
            return ListingOutcome.SKIPPED_FILTERED

        if not state.first_match_sent:
            await self._send_header()
            state.first_match_sent = True

        return await self._notify_and_commit(listing)

    async def _visit(self, session: Any, url: str) -> VisitResult:
        """Load a listing page and extract it, capturing any failure."""
        try:
            async with session.page() as page:
                logger.info("🔍 Visiting %s", url)
                await page.goto(
                    url,
                    wait_until=self.config.scraper.wait_until,
                    timeout=self.config.scraper.navigation_timeout_ms,
                )
                await page.wait_for_timeout(self.config.scraper.detail_settle_ms)
                html = await page.content()
        except Exception as e:
            return VisitResult.failure(url, str(e) or type(e).__name__)

        return VisitResult.success(extract_listing(html, url))

    async def _send_header(self) -> None:
        telegram = self.config.telegram
        for text in header_messages(telegram.header_text, warmup=telegram.warmup_message):
            await self.notifier.send_best_effort(text)

    async def _notify_and_commit(self, listing: Listing) -> ListingOutcome:
        """Send the notification, then record the URL only on success."""
        try:
            message_id = await self.notifier.send(format_listing_message(listing))
        except NotifyError as e:
            logger.warning("⚠️ Failed to send message — NOT marking as seen: %s", e)
            return ListingOutcome.NOTIFIED_FAILED_NOT_COMMITTED

        try:
            await self.store.add(listing.url, listing.title or "", message_id)
        except Exception as e:
            logger.warning("⚠️ Sent but could not mark as seen (%s): %s", listing.url, e)
            return ListingOutcome.NOTIFIED_FAILED_NOT_COMMITTED

        return ListingOutcome.NOTIFIED_COMMITTED
