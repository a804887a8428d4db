"""Posh Notifier — Telegram Message Formatters.

Plain-text messages only: no parse mode, so nothing needs escaping and
a stray character in a title can never make Telegram reject the send.
One data point per line.
"""

from __future__ import annotations

from decimal import Decimal

from posh_notifier.database.models import Listing, RunState

# Invisible separator, sent ahead of the header text
WARMUP_TEXT = "\u2063"


def format_price(price: Decimal) -> str:
    """Render a price without trailing zeros or exponent ('45', '45.5')."""
    text = format(price, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_listing_message(listing: Listing) -> str:
    """Build the notification text for a complete listing.

    Args:
        listing: A listing with title, price and size present.

    Returns:
        Multi-line plain-text message.

    Raises:
        ValueError: If a required field is absent.
    """
    missing = listing.missing_fields()
    if missing:
        raise ValueError(f"Cannot format incomplete listing, missing: {', '.join(missing)}")

    return (
        f"🧥 {listing.title}\n"
        f"💰 {format_price(listing.price)}\n"
        f"📏 Size: {listing.size}\n"
        f"🔗 {listing.url}"
    )


def header_messages(header_text: str, warmup: bool = True) -> list[str]:
    """Messages sent once per run before the first match."""
    messages = [WARMUP_TEXT] if warmup else []
    if header_text:
        messages.append(header_text)
    return messages


def format_run_summary(state: RunState) -> str:
    """One-line summary of a finished run, for logs."""
    stats = state.to_dict()
    return (
        f"Discovered: {stats['discovered']} | Sent: {stats['sent']}/{stats['max_matches']} | "
        f"Seen: {stats['skipped_seen']} | Incomplete: {stats['skipped_incomplete']} | "
        f"Filtered: {stats['skipped_filtered']} | Send failed: {stats['notified_failed_not_committed']} | "
        f"Visit failed: {stats['visit_failed']} | Time: {stats['duration_seconds']}s"
    )
