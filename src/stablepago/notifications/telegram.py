"""Telegram notification service.

Pushes orchestration progress and confirmation expiry notices to chats.
Uses a singleton pattern to share the bot instance.
"""

import asyncio
import logging
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from stablepago.config import get_settings
from stablepago.gate import ConfirmationTicket
from stablepago.progress import PhaseEvent

logger = logging.getLogger(__name__)

# Singleton bot instance
_bot_instance: Optional[Bot] = None
_bot_lock = asyncio.Lock()

PHASE_ICONS = {
    "approve": "📝",
    "burn": "🔥",
    "attestation": "⏳",
    "receive": "🪙",
    "execute": "🔄",
}


async def get_bot() -> Optional[Bot]:
    """Get or create the bot instance for notifications."""
    global _bot_instance

    if _bot_instance is not None:
        return _bot_instance

    async with _bot_lock:
        # Double-check after acquiring lock
        if _bot_instance is not None:
            return _bot_instance

        settings = get_settings()
        if not settings.telegram_bot_token:
            logger.warning("Telegram bot token not configured - notifications disabled")
            return None

        _bot_instance = Bot(token=settings.telegram_bot_token)
        return _bot_instance


async def close_bot() -> None:
    """Close the bot session (call on shutdown)."""
    global _bot_instance
    if _bot_instance is not None:
        await _bot_instance.session.close()
        _bot_instance = None


def format_progress(event: PhaseEvent) -> str:
    icon = PHASE_ICONS.get(event.phase, "•")
    if event.stage == "completed":
        return f"✅ Step {event.step}/{event.total}: {event.phase} confirmed"
    return f"{icon} Step {event.step}/{event.total}: {event.phase}..."


class TelegramNotifier:
    """Service for sending Telegram notifications to users."""

    def __init__(self, bot: Optional[Bot] = None):
        """Initialize with optional bot instance.

        If no bot provided, will use the singleton instance.
        """
        self._bot = bot

    async def _get_bot(self) -> Optional[Bot]:
        if self._bot:
            return self._bot
        return await get_bot()

    async def send_message(self, chat_id: int, message: str) -> bool:
        """Send a plain text message to a chat.

        Returns:
            True if message was sent successfully
        """
        bot = await self._get_bot()
        if not bot:
            logger.warning("Cannot send notification - bot not initialized")
            return False

        try:
            await bot.send_message(chat_id=chat_id, text=message)
            return True
        except TelegramForbiddenError:
            logger.warning(f"Chat {chat_id} has blocked the bot")
            return False
        except TelegramBadRequest as e:
            logger.error(f"Bad request sending to {chat_id}: {e}")
            return False

    async def notify_progress(self, chat_id: Optional[int], event: PhaseEvent) -> bool:
        if chat_id is None:
            return False
        return await self.send_message(chat_id, format_progress(event))

    async def notify_expired(self, ticket: ConfirmationTicket) -> bool:
        """Tell the user their confirmation window closed."""
        if ticket.chat_context is None:
            return False
        return await self.send_message(
            ticket.chat_context,
            "⏱️ Confirmation expired. Please send the command again.",
        )
