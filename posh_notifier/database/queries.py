"""Posh Notifier — Database Query Operations.

Async read/write operations on the seen-listings ledger. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for SQL)
  - Handles connection via the Database instance
  - Commits after writes
  - Logs operations at DEBUG level
"""

from __future__ import annotations

from typing import Any, Optional

from posh_notifier.database.db import Database
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


async def is_seen(db: Database, url: str) -> bool:
    """Check if a listing URL has already been notified.

    Args:
        db: Active database instance.
        url: Canonical listing permalink.

    Returns:
        True if the URL exists in the seen_listings table.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT 1 FROM seen_listings WHERE url = ? LIMIT 1",
        (url,),
    )
    row = await cursor.fetchone()
    await cursor.close()
    logger.debug("is_seen(%s) = %s", url, row is not None)
    return row is not None


async def mark_seen(
    db: Database,
    url: str,
    title: str = "",
    telegram_message_id: Optional[str] = None,
) -> None:
    """Record a listing as notified.

    Uses INSERT OR IGNORE so marking an already-seen URL is a no-op
    and keeps the original notification timestamp.

    Args:
        db: Active database instance.
        url: Canonical listing permalink.
        title: Listing title, kept for inspection only.
        telegram_message_id: Telegram message ID of the notification.
    """
    conn = await db.get_connection()
    await conn.execute(
        """
        INSERT OR IGNORE INTO seen_listings (url, title, telegram_message_id)
        VALUES (?, ?, ?)
        """,
        (url, title or "", telegram_message_id),
    )
    await conn.commit()
    logger.debug("mark_seen(%s, msg=%s)", url, telegram_message_id)


async def count_seen(db: Database) -> int:
    """Return the number of listings recorded as notified."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT COUNT(*) FROM seen_listings")
    row = await cursor.fetchone()
    await cursor.close()
    return int(row[0]) if row else 0


async def get_seen(db: Database, url: str) -> Optional[dict[str, Any]]:
    """Fetch the ledger row for a URL, or None if it was never notified."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM seen_listings WHERE url = ?",
        (url,),
    )
    row = await cursor.fetchone()
    await cursor.close()
    return dict(row) if row else None
