"""
Store construction from application settings.
"""
import logging

from tripops.core.config import Settings, settings as default_settings
from tripops.db.session import build_engine
from tripops.store.base import PersistentStore
from tripops.store.memory import InMemoryStore
from tripops.store.sql import SqlDocumentStore

logger = logging.getLogger(__name__)


def build_store(config: Settings = None) -> PersistentStore:
    """Create the store selected by STORE_BACKEND. The caller owns close()."""
    config = config or default_settings
    if config.STORE_BACKEND == "memory":
        logger.info("Using in-memory document store")
        return InMemoryStore(timeout=config.STORE_TIMEOUT_SECONDS)

    logger.info("Using SQL document store")
    engine = build_engine(config.DATABASE_URL, config.DB_ECHO, config.STORE_TIMEOUT_SECONDS)
    return SqlDocumentStore(engine)
