"""Posh Notifier — SQLite Connection Manager.

Provides async SQLite database connection management using aiosqlite.
Handles database initialization, schema creation and connection
lifecycle for the seen-listings ledger.
"""

from __future__ import annotations

import aiosqlite
from pathlib import Path

from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Seen Listings Table ═══
-- One row per listing that was successfully notified.
CREATE TABLE IF NOT EXISTS seen_listings (
    url                 TEXT    PRIMARY KEY,
    title               TEXT    DEFAULT '',
    telegram_message_id TEXT,
    notified_at         DATETIME DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_seen_notified_at ON seen_listings(notified_at);
"""


class Database:
    """Async SQLite database connection manager.

    Manages the database lifecycle including initialization, schema creation,
    and a persistent connection with WAL mode enabled.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Relative or absolute path to the SQLite database file.
                     Parent directories will be created if they don't exist.
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection and create the schema.

        Safe to call repeatedly: the schema uses IF NOT EXISTS and an
        already-open connection is reused.
        """
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            logger.info("Connecting to database: %s", self.db_path)
            self._connection = await aiosqlite.connect(str(self.db_path))
            await self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()

        logger.info("Database initialized — seen_listings ready")

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active database connection, initializing if necessary."""
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def close(self) -> None:
        """Close the database connection gracefully.

        Safe to call even if the connection is already closed or was
        never opened.
        """
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
