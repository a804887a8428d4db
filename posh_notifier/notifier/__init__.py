"""Posh Notifier — Notifier Package.

Telegram delivery of listing notifications.
Components:
  - formatters: plain-text message builders
  - telegram_bot: Telegram client with commit-path and best-effort sends
"""

from posh_notifier.notifier.formatters import (
    format_listing_message,
    format_run_summary,
    header_messages,
)
from posh_notifier.notifier.telegram_bot import NotifyError, TelegramNotifier

__all__ = [
    "format_listing_message",
    "format_run_summary",
    "header_messages",
    "NotifyError",
    "TelegramNotifier",
]
