"""Configuration loading and validation"""
import os
from dotenv import load_dotenv

from .utils.logger import setup_logger

logger = setup_logger(__name__)

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration"""

    def __init__(self):
        """Load and validate configuration"""
        # Discord configuration
        self.discord_bot_token = self._get_required("DISCORD_BOT_TOKEN")
        self.dispatch_max_retries = self._get_int("DISPATCH_MAX_RETRIES", 3)

        # Settings store
        self.database_path = os.getenv("DATABASE_PATH", "data/okto.db")

        # Launch provider configuration
        self.launch_api_url = os.getenv("LAUNCH_API_URL", "https://ll.thespacedevs.com/2.2.0")
        self.launch_fetch_limit = self._get_int("LAUNCH_FETCH_LIMIT", 50)
        self.launch_fetch_interval = self._get_int("LAUNCH_FETCH_INTERVAL", 5)

        # Reminder evaluation
        self.reminder_check_interval = self._get_int("REMINDER_CHECK_INTERVAL", 30)

        self._validate()
        logger.info("Configuration loaded successfully")

    def _get_required(self, key: str) -> str:
        """Get required environment variable"""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable {key} is not set")
        return value

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable"""
        value = os.getenv(key)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{key} must be an integer, got {value!r}")

    def _validate(self):
        """Validate configuration values"""
        if self.dispatch_max_retries < 1:
            raise ValueError("DISPATCH_MAX_RETRIES must be at least 1")

        if not 1 <= self.launch_fetch_limit <= 100:
            raise ValueError("LAUNCH_FETCH_LIMIT must be between 1 and 100")

        if self.launch_fetch_interval < 1:
            raise ValueError("LAUNCH_FETCH_INTERVAL must be at least 1 minute")

        if self.reminder_check_interval < 1:
            raise ValueError("REMINDER_CHECK_INTERVAL must be at least 1 second")

        logger.info(f"Launch provider: {self.launch_api_url} (limit {self.launch_fetch_limit})")
        logger.info(f"Launch fetch interval: {self.launch_fetch_interval} minutes")
        logger.info(f"Reminder check interval: {self.reminder_check_interval} seconds")
