"""Key-value store interface consumed by the rate limiter."""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Opaque get/set-with-expiry service shared by all workers.

    Implementations raise ``StoreUnavailableError`` when the backend cannot be
    reached; the limiter decides whether that fails the request.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the serialized value stored under ``key``, or None if absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, *, px: int) -> None:
        """Store ``value`` under ``key``, expiring ``px`` milliseconds from now."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release backend connections. No-op by default."""
        return None
