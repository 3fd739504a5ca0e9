"""Bot initialization and runner."""

import asyncio
import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from stablepago.bot.handlers import setup_routers
from stablepago.config import get_settings
from stablepago.engine import TransactionEngine, build_engine
from stablepago.notifications.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


def create_bot(engine: Optional[TransactionEngine] = None) -> tuple[Bot, Dispatcher]:
    """Create bot and dispatcher instances.

    The engine is injected into every handler as the ``engine`` argument.
    """
    settings = get_settings()

    if not settings.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is not set")

    # No default parse_mode - addresses and amounts are sent as plain text
    bot = Bot(token=settings.telegram_bot_token)

    storage = MemoryStorage()
    dp = Dispatcher(storage=storage)
    dp["engine"] = engine or build_engine(notifier=TelegramNotifier(bot))

    main_router = setup_routers()
    dp.include_router(main_router)

    return bot, dp


async def run_bot(engine: Optional[TransactionEngine] = None) -> None:
    """Run the bot in polling mode."""
    logger.info("Starting StablePago bot...")

    bot, dp = create_bot(engine)
    bot_engine: TransactionEngine = dp["engine"]
    bot_engine.gate.start()

    try:
        # Delete webhook if any and start polling
        await bot.delete_webhook(drop_pending_updates=True)
        logger.info("Starting polling...")
        await dp.start_polling(bot)
    finally:
        await bot_engine.gate.stop()
        await bot.session.close()


def main() -> None:
    """Entry point for bot-only mode."""
    from stablepago.main import configure_logging

    configure_logging()
    asyncio.run(run_bot())


if __name__ == "__main__":
    main()
