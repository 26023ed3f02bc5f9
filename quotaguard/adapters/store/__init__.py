"""Shared key-value store adapters.

The limiter only needs ``get`` and ``set`` with a millisecond expiry, so any
store offering those two operations (Redis, or the in-process store used for
tests and single-worker deployments) can back it.
"""

from quotaguard.adapters.store.base import AbstractKeyValueStore
from quotaguard.adapters.store.factory import create_store
from quotaguard.adapters.store.in_memory import InMemoryKeyValueStore
from quotaguard.adapters.store.redis_store import RedisKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_store",
]
