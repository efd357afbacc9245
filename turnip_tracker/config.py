"""
Configuration management for the Turnip Tracker bot.

Loads environment variables and provides typed access to configuration values.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from turnip_tracker.services.chart import CHART_BASE_URL


def load_env():
    """Load environment variables from .env file."""
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Storage
    supabase_url: str
    supabase_key: str

    # Telegram
    telegram_bot_token: str

    # Application settings
    log_level: str = "INFO"
    environment: str = "development"

    # Market settings
    timezone: str = "UTC"
    morning_cutoff_hour: int = 11
    chart_base_url: str = CHART_BASE_URL

    @classmethod
    def from_env(cls) -> "Config":
        """Create Config from environment variables."""
        load_env()

        return cls(
            # Required keys
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            supabase_key=os.environ.get("SUPABASE_KEY", ""),
            telegram_bot_token=os.environ.get("TELEGRAM_TURNIP_BOT_TOKEN", ""),
            # Optional keys
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            environment=os.environ.get("ENVIRONMENT", "development"),
            # Market settings
            timezone=os.environ.get("TURNIP_TIMEZONE", "UTC"),
            morning_cutoff_hour=int(os.environ.get("TURNIP_MORNING_CUTOFF_HOUR", "11")),
            chart_base_url=os.environ.get(
                "TURNIP_CHART_BASE_URL", CHART_BASE_URL
            ),
        )

    def validate(self) -> list[str]:
        """
        Validate configuration values. Returns the keys that are missing or
        hold a value the bot cannot use.
        """
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_key:
            missing.append("SUPABASE_KEY")
        if not self.telegram_bot_token:
            missing.append("TELEGRAM_TURNIP_BOT_TOKEN")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            missing.append("TURNIP_TIMEZONE")
        if not 0 <= self.morning_cutoff_hour <= 23:
            missing.append("TURNIP_MORNING_CUTOFF_HOUR")
        return missing


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config():
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
