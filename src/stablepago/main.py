"""Main entry point - runs the bot, the API and the confirmation sweeper."""

import asyncio
import logging
import signal

import uvicorn

from stablepago.api.app import create_app
from stablepago.bot.bot import create_bot
from stablepago.config import get_settings
from stablepago.engine import build_engine
from stablepago.notifications.telegram import TelegramNotifier, close_bot

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging once, lowering noisy libraries."""
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.INFO)


class Application:
    """Main application that runs both bot and API over one engine."""

    def __init__(self):
        self.settings = get_settings()
        self.engine = None
        self.bot = None
        self.dp = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        configure_logging()

        logger.info("Starting StablePago...")
        logger.info(f"Environment: {self.settings.environment}")

        self.engine = build_engine(notifier=TelegramNotifier())
        logger.info(
            f"Engine ready: provider={self.engine.provider.name}, "
            f"default network={self.engine.registry.current().key}"
        )

        tasks = []

        # Start bot if token is configured
        if self.settings.telegram_bot_token:
            self.bot, self.dp = create_bot(self.engine)
            tasks.append(asyncio.create_task(self._run_bot()))
            logger.info("Bot task created")
        else:
            logger.warning("TELEGRAM_BOT_TOKEN not set - bot disabled")

        # API lifespan starts the confirmation sweeper
        tasks.append(asyncio.create_task(self._run_api()))
        logger.info("API task created")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

        for task in tasks:
            task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_bot(self):
        """Run the Telegram bot."""
        try:
            await self.bot.delete_webhook(drop_pending_updates=True)
            logger.info("Starting bot polling...")
            await self.dp.start_polling(self.bot, handle_signals=False)
        except asyncio.CancelledError:
            logger.info("Bot polling cancelled")
        except Exception as e:
            logger.error(f"Bot error: {e}")
            raise

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app(self.engine)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")

        if self.engine:
            await self.engine.gate.stop()
            await self.engine.attestation_client.aclose()
            await self.engine.provider.aclose()

        if self.bot:
            await self.bot.session.close()

        await close_bot()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
