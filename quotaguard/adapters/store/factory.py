"""Factory for the configured key-value store."""

from __future__ import annotations

import logging

from quotaguard.adapters.store.base import AbstractKeyValueStore
from quotaguard.adapters.store.in_memory import InMemoryKeyValueStore
from quotaguard.adapters.store.redis_store import RedisKeyValueStore
from quotaguard.core.config import StoreSettings, settings

logger = logging.getLogger(__name__)


def create_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the store selected by configuration.

    Uses Redis when ``STORE_REDIS_URL`` is set, otherwise a per-process
    in-memory store.

    Returns:
        AbstractKeyValueStore: Configured store instance.
    """
    cfg = store_settings or settings.store

    if cfg.redis_url:
        logger.info("store.selected", extra={"backend": "redis"})
        return RedisKeyValueStore.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
        )

    logger.warning(
        "store.selected",
        extra={"backend": "in_memory", "note": "limits are per process"},
    )
    return InMemoryKeyValueStore()
