"""
Supabase client for database operations.

Creates the client handle used by the price store. There is no module-level
connection: the process root creates one client at startup and passes it to
the store explicitly.
"""

import logging
from pathlib import Path
from typing import Optional

from supabase import create_client, Client

from turnip_tracker.config import Config, get_config

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


class Tables:
    """Table name constants."""

    USERS = "turnip_users"
    WEEKS = "turnip_weeks"
    OBSERVATIONS = "turnip_observations"


def create_supabase_client(config: Optional[Config] = None) -> Client:
    """Create a Supabase client from configuration."""
    config = config or get_config()
    if not config.supabase_url or not config.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be configured")
    logger.info(f"Connecting to Supabase at {config.supabase_url[:40]}")
    return create_client(config.supabase_url, config.supabase_key)


def load_schema() -> str:
    """Return the SQL that creates the tracker tables."""
    return SCHEMA_FILE.read_text(encoding="utf-8")
