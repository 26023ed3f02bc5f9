"""Redis key-value store adapter."""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from quotaguard.adapters.store.base import AbstractKeyValueStore
from quotaguard.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class RedisKeyValueStore(AbstractKeyValueStore):
    """Store backed by ``redis.asyncio``.

    Uses plain ``GET`` and ``SET key value PX ttl``. Connection and command
    failures surface as ``StoreUnavailableError``.
    """

    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 5.0) -> "RedisKeyValueStore":
        """Create a store from a ``redis://`` URL.

        Args:
            url: Redis connection URL.
            socket_timeout: Per-command socket timeout in seconds.
        """
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as exc:
            raise self._unavailable("get", exc) from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, *, px: int) -> None:
        try:
            await self.client.set(key, value, px=px)
        except (RedisError, OSError) as exc:
            raise self._unavailable("set", exc) from exc

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _unavailable(operation: str, exc: Exception) -> StoreUnavailableError:
        logger.error(
            "store.redis_error",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        return StoreUnavailableError(
            code="store_unavailable",
            message=f"Rate limit store {operation} failed",
            details={"operation": operation, "backend": "redis"},
        )
