"""Persistence layer for trendline workflows."""

from __future__ import annotations

from typing import Optional

from ..config import TrendlineConfig, load_config
from .inmemory import InMemoryStore
from .redis import RedisStore
from .repository import ChatMemoryStore, ProcessedEventStore, Store, WorkflowStateStore
from .sqlite import SQLiteStore


def get_store(
    backend: Optional[str] = None, config: Optional[TrendlineConfig] = None
) -> Store:
    """Factory function to obtain the configured store.

    The backend is taken from ``backend`` when given, otherwise from the
    loaded configuration (``store.backend``, overridable with the
    ``TRENDLINE_STORE`` environment variable).
    """

    config = config or load_config()
    backend = (backend or config.store.backend).lower()

    if backend == "inmemory":
        return InMemoryStore()
    if backend == "sqlite":
        return SQLiteStore(config.store.sqlite_path)
    if backend == "redis":
        redis_conf = config.store.redis
        return RedisStore(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            url=redis_conf.url,
        )
    raise ValueError(f"Unsupported store backend: {backend}")


__all__ = [
    "ChatMemoryStore",
    "InMemoryStore",
    "ProcessedEventStore",
    "RedisStore",
    "SQLiteStore",
    "Store",
    "WorkflowStateStore",
    "get_store",
]
