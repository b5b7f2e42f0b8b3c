"""Build the configured KeyValueStore backend."""

import logging

from config.settings import Settings
from src.cl_store.domain.store import KeyValueStore
from src.cl_store.infrastructure.memory_store import InMemoryKeyValueStore
from src.cl_store.infrastructure.redis_store import RedisKeyValueStore
from src.cl_store.infrastructure.sql_store import SqlKeyValueStore

logger = logging.getLogger(__name__)


def build_store(cfg: Settings) -> KeyValueStore:
    if cfg.STORE_BACKEND == "sql":
        store: KeyValueStore = SqlKeyValueStore.from_url(cfg.DATABASE_URL, echo=cfg.DEBUG)
    elif cfg.STORE_BACKEND == "redis":
        store = RedisKeyValueStore.from_url(cfg.REDIS_URL)
    else:
        logger.warning("Using in-memory store: state is lost on restart")
        store = InMemoryKeyValueStore()
    logger.info("Store backend: %s", cfg.STORE_BACKEND)
    return store
