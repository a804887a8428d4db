"""Posh Notifier — Main Orchestrator.

Ties all components together: config, seen ledger, Telegram notifier
and the listing pipeline.

By default a single run is performed and the process exits. When
``schedule.interval_minutes`` is set, runs repeat on that interval with
APScheduler; ``max_instances=1`` keeps runs from overlapping.

Usage:
    python -m posh_notifier.main
    python scripts/run.py
"""

from __future__ import annotations

import asyncio
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from posh_notifier.config import AppConfig, load_config
from posh_notifier.database.models import RunState
from posh_notifier.database.seen_store import SeenStore
from posh_notifier.notifier.telegram_bot import TelegramNotifier
from posh_notifier.scraper.discovery import DiscoveryError
from posh_notifier.scraper.pipeline import ListingPipeline
from posh_notifier.utils.logger import get_logger, set_console_level

logger = get_logger(__name__)


class PoshNotifier:
    """Application orchestrator.

    Attributes:
        config: Full application configuration.
        store: Seen ledger, opened during start().
        run_count: Completed pipeline runs.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize with default state. Call start() to run."""
        self.config: Optional[AppConfig] = config
        self.store: Optional[SeenStore] = None
        self._telegram: Optional[TelegramNotifier] = None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._active_run: Optional[asyncio.Task] = None
        self.run_count = 0
        self.last_state: Optional[RunState] = None

    async def start(self) -> int:
        """Full application startup sequence.

        1. Load config
        2. Initialize the seen ledger
        3. Initialize the Telegram bot
        4. Run once, or schedule repeated runs

        Returns:
            Process exit code: 0 on success, 1 on a fatal error.
        """
        self._running = True
        try:
            # ── 1. Config ────────────────────────────────
            if self.config is None:
                logger.info("═══ Loading configuration ═══")
                self.config = load_config()
            set_console_level(self.config.log_level)

            # ── 2. Seen ledger ───────────────────────────
            logger.info("═══ Initializing database ═══")
            self.store = SeenStore.from_path(self.config.database_path)
            await self.store.ensure_schema()

            # ── 3. Telegram ──────────────────────────────
            self._telegram = TelegramNotifier(self.config.telegram)
            if not await self._telegram.initialize():
                logger.error("Telegram bot connection failed! Continuing anyway...")

            # ── 4. Run ───────────────────────────────────
            interval = self.config.schedule.interval_minutes
            if interval <= 0:
                await self.run_once()
                return 0

            await self._run_scheduled(interval)
            return 0

        except Exception as e:
            logger.error("Fatal error: %s", e)
            logger.error(traceback.format_exc())
            return 1
        finally:
            await self.shutdown()

    async def run_once(self) -> RunState:
        """Run the pipeline a single time.

        Raises:
            DiscoveryError: If the search page could not be loaded.
        """
        pipeline = ListingPipeline(self.config, self.store, self._telegram)
        state = await pipeline.run()
        self.run_count += 1
        self.last_state = state
        return state

    async def _scheduled_run(self) -> None:
        """Scheduler job: a failed run is logged and the next one proceeds."""
        self._active_run = asyncio.current_task()
        try:
            await self.run_once()
        except DiscoveryError as e:
            logger.error("Run aborted: %s", e)
        except Exception as e:
            logger.error("Run error: %s", e)
            logger.error(traceback.format_exc())
        finally:
            self._active_run = None

    async def _run_scheduled(self, interval_minutes: int) -> None:
        """Run on an interval until stop(). The first run starts immediately."""
        logger.info("═══ Setting up scheduler ═══")
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._scheduled_run,
            IntervalTrigger(minutes=interval_minutes),
            id="listing_run",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
            name=f"Listing run (every {interval_minutes}m)",
            next_run_time=datetime.now(),
        )
        self._scheduler.start()
        logger.info("Scheduler started (every %d minutes)", interval_minutes)

        while self._running:
            await asyncio.sleep(1)

    def stop(self) -> None:
        """Ask the scheduled loop to exit."""
        self._running = False

    async def shutdown(self) -> None:
        """Stop the scheduler and close connections."""
        self._running = False

        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        run = self._active_run
        if run is not None and run is not asyncio.current_task() and not run.done():
            run.cancel()
            await asyncio.gather(run, return_exceptions=True)

        if self._telegram:
            await self._telegram.close()

        if self.store:
            try:
                await self.store.close()
            except Exception as e:
                logger.warning("Failed to close database: %s", e)


def _shutdown_handler(app: Any, loop: asyncio.AbstractEventLoop, task: asyncio.Task):
    """Build a signal handler that stops ``app`` and cancels its main task.

    Cancelling lets start() run its cleanup (browser, bot, database)
    instead of unwinding the loop from inside the handler.
    """

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.stop()
        if not loop.is_closed():
            loop.call_soon_threadsafe(task.cancel)

    return _signal_handler


def main() -> int:
    """Application entry point. Takes no arguments."""
    app = PoshNotifier()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(app.start())

    handler = _shutdown_handler(app, loop, task)
    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    try:
        return loop.run_until_complete(task)
    except asyncio.CancelledError:
        return 130
    finally:
        loop.close()


if __name__ == "__main__":
    sys.exit(main())
