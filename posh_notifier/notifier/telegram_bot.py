"""Posh Notifier — Telegram Bot Client.

Async Telegram bot client using python-telegram-bot v21+.

Two send paths:
  - send(): the commit path. One sendMessage call, no retry. Anything
    short of a delivered message with an ID raises NotifyError, and the
    caller must not record the listing as seen.
  - send_best_effort(): for header messages. Never raises.
"""

from __future__ import annotations

from typing import Optional

from telegram import Bot, LinkPreviewOptions
from telegram.error import TelegramError

from posh_notifier.config import TelegramConfig
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class NotifyError(Exception):
    """Raised when a commit-path Telegram message was not confirmed."""


class TelegramNotifier:
    """Plain-text Telegram sender for a single configured chat.

    Attributes:
        config: TelegramConfig with bot_token and chat_id.
        sent_count: Messages confirmed by Telegram this session.
    """

    def __init__(self, config: TelegramConfig, bot: Optional[Bot] = None) -> None:
        """Initialize the notifier.

        Args:
            config: TelegramConfig from the app configuration.
            bot: Pre-built Bot instance (tests); built from the token otherwise.
        """
        self.config = config
        self._bot = bot or Bot(token=config.bot_token)
        self.sent_count: int = 0

    async def initialize(self) -> bool:
        """Test the bot connection with getMe.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self._bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except Exception as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def send(self, text: str) -> str:
        """Send one message and return its Telegram message ID.

        Args:
            text: Plain-text message content.

        Returns:
            The message ID as a string.

        Raises:
            NotifyError: On any API or transport error, or when Telegram
                does not acknowledge the message with an ID.
        """
        if not text:
            raise NotifyError("Refusing to send an empty message")

        logger.debug("Sending Telegram message (%d chars)", len(text))
        try:
            msg = await self._bot.send_message(
                chat_id=self.config.chat_id,
                text=text,
                link_preview_options=LinkPreviewOptions(
                    is_disabled=self.config.disable_preview,
                ),
            )
        except TelegramError as e:
            logger.error("Telegram API error: %s", e)
            raise NotifyError(f"Telegram API error: {e}") from e
        except Exception as e:
            logger.error("Failed to send Telegram message: %s", e)
            raise NotifyError(f"Transport error: {e}") from e

        message_id = getattr(msg, "message_id", None)
        if message_id is None:
            raise NotifyError("Telegram returned no message ID")

        self.sent_count += 1
        logger.debug("Telegram OK: message_id=%s", message_id)
        return str(message_id)

    async def send_best_effort(self, text: str) -> Optional[str]:
        """Send a non-critical message, swallowing any failure.

        Used for header messages, which carry no delivery guarantee.

        Returns:
            Message ID string on success, None on failure.
        """
        try:
            return await self.send(text)
        except NotifyError as e:
            logger.debug("Best-effort message not delivered: %s", e)
            return None

    async def close(self) -> None:
        """Release the bot's HTTP resources."""
        try:
            await self._bot.shutdown()
        except Exception as e:
            logger.debug("Telegram bot shutdown: %s", e)
