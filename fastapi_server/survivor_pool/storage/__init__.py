"""
Store selection - one process-wide store, chosen by POOL_STORAGE.
"""
import logging
from typing import Optional

from survivor_pool.config import POOL_STORAGE
from survivor_pool.storage.base import SeriesStore

logger = logging.getLogger(__name__)

_store: Optional[SeriesStore] = None


def build_store(kind: str = POOL_STORAGE) -> SeriesStore:
    if kind == "memory":
        from survivor_pool.storage.memory import MemoryStore

        return MemoryStore()
    if kind == "sql":
        from survivor_pool.database import create_db_and_tables, engine
        from survivor_pool.storage.sql import SqlStore

        create_db_and_tables(engine)
        return SqlStore(engine)
    raise ValueError(f"Unknown POOL_STORAGE {kind!r}, expected 'sql' or 'memory'")


def get_store() -> SeriesStore:
    """FastAPI dependency returning the shared store."""
    global _store
    if _store is None:
        _store = build_store()
        logger.info("Using %s store", type(_store).__name__)
    return _store
