"""Posh Notifier — Seen Store.

Persistent idempotency ledger keyed by listing URL. A URL is added only
after its notification was confirmed, so presence here means "already
delivered, never send again".
"""

from __future__ import annotations

from typing import Optional

from posh_notifier.database import queries
from posh_notifier.database.db import Database
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class SeenStore:
    """Set-like view over the seen_listings table.

    Attributes:
        db: The underlying Database connection manager.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    @classmethod
    def from_path(cls, db_path: str) -> "SeenStore":
        """Build a store backed by a SQLite file at ``db_path``."""
        return cls(Database(db_path))

    async def ensure_schema(self) -> None:
        """Create the ledger table if needed. Idempotent."""
        await self.db.initialize()

    async def has(self, url: str) -> bool:
        return await queries.is_seen(self.db, url)

    async def add(
        self,
        url: str,
        title: str = "",
        telegram_message_id: Optional[str] = None,
    ) -> None:
        """Mark ``url`` as notified. Adding a present URL is a no-op."""
        await queries.mark_seen(self.db, url, title, telegram_message_id)

    async def count(self) -> int:
        return await queries.count_seen(self.db)

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> "SeenStore":
        await self.ensure_schema()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
