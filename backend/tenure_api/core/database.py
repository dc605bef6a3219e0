"""Process-wide database manager for the API.

Only the app lifespan creates the manager; request handlers reach the pool
through ``core.dependencies`` so tests can substitute it.
"""

import logging

from tenure_api.core.config import Settings
from tenure_shared.database import DatabaseManager, PoolConfig

logger = logging.getLogger(__name__)

_db_manager: DatabaseManager | None = None


def get_database_manager() -> DatabaseManager | None:
    """Return the manager, or None before startup."""
    return _db_manager


def init_database_manager(settings: Settings) -> DatabaseManager:
    """Create the manager with a pool sized for the execution mode."""
    global _db_manager
    mode = "serverless" if settings.is_serverless else "server"
    ssl = None if settings.database_ssl.lower() == "disable" else settings.database_ssl
    config = PoolConfig.for_mode(mode, ssl=ssl)
    logger.info(f"Database pool mode: {mode} (max_size={config.max_size})")
    _db_manager = DatabaseManager(settings.database_url, config)
    return _db_manager
