"""Main entry point for the Okto launch reminder bot"""
import asyncio
import signal
import sys

from .config import Config
from .storage.database import Database
from .services.discord_client import DiscordClient
from .services.launch_cache import LaunchCache
from .services.launch_fetcher import LaunchFetcher
from .services.reminder_scheduler import ReminderScheduler
from .utils.logger import setup_logger

logger = setup_logger(__name__)


class OktoBot:
    """Main bot orchestrator"""

    def __init__(self):
        """Initialize bot components"""
        self.config = Config()
        self.database = Database(db_path=self.config.database_path)
        self.running = False

        # Initialize services
        self.launch_cache = LaunchCache()
        self.launch_fetcher = LaunchFetcher(
            api_url=self.config.launch_api_url,
            limit=self.config.launch_fetch_limit
        )
        self.discord_client = DiscordClient(
            token=self.config.discord_bot_token,
            max_retries=self.config.dispatch_max_retries
        )
        self.reminder_scheduler = ReminderScheduler(
            cache=self.launch_cache,
            database=self.database,
            dispatch=self.discord_client.dispatch,
            check_interval=self.config.reminder_check_interval
        )

        # Setup signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.running = False

    async def start(self):
        """Start the bot"""
        self.running = True
        logger.info("Starting Okto launch reminder bot...")

        # Start Discord client in background
        discord_task = asyncio.create_task(self.discord_client.start())

        # Wait a bit for Discord to connect
        await asyncio.sleep(2)

        # Populate the cache before the first evaluation
        await self._refresh_launches()

        scheduler_task = asyncio.create_task(self.reminder_scheduler.run())
        fetch_task = asyncio.create_task(self._launch_fetch_loop())

        try:
            # Run until stopped
            while self.running:
                await asyncio.sleep(1)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            # Stop services
            logger.info("Stopping services...")
            fetch_task.cancel()
            await self.reminder_scheduler.shutdown()
            await scheduler_task

            # Close Discord client
            await self.discord_client.close()
            discord_task.cancel()

            logger.info("Bot stopped")

    async def _launch_fetch_loop(self):
        """Background loop refreshing the launch cache"""
        logger.info("Starting launch fetch loop...")

        while self.running:
            try:
                await asyncio.sleep(self.config.launch_fetch_interval * 60)
                if self.running:
                    await self._refresh_launches()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in launch fetch loop: {e}")

    async def _refresh_launches(self):
        """Fetch launches in a worker thread and publish them to the cache"""
        logger.info("Fetching launches...")
        try:
            await asyncio.to_thread(self.launch_fetcher.refresh, self.launch_cache)
        except Exception as e:
            logger.error(f"Error refreshing launches: {e}")


async def main():
    """Main entry point"""
    try:
        bot = OktoBot()
        await bot.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


def run():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
