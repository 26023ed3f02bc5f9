"""In-memory TTL key-value store.

Notes:
- Per-process only: running multiple workers gives each worker its own quota.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from quotaguard.adapters.store.base import AbstractKeyValueStore


@dataclass
class _Entry:
    value: str
    expires_at_ms: int


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dictionary-backed store with per-key millisecond expiry.

    Expired entries are dropped lazily on read, and swept on write once the
    store grows past ``sweep_threshold`` entries.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_threshold: int = 10_000,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning UNIX time in seconds.
            sweep_threshold: Entry count above which writes purge expired keys.

        Raises:
            ValueError: If sweep_threshold is invalid.
        """
        if sweep_threshold < 1:
            raise ValueError("sweep_threshold must be >= 1")

        self._clock = clock
        self._sweep_threshold = sweep_threshold
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> str | None:
        now_ms = self._now_ms()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at_ms <= now_ms:
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: str, value: str, *, px: int) -> None:
        if px < 1:
            raise ValueError("px must be >= 1")

        now_ms = self._now_ms()
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at_ms=now_ms + px)
            if len(self._entries) > self._sweep_threshold:
                self._sweep_locked(now_ms)

    def pttl(self, key: str) -> int:
        """Remaining time to live in milliseconds, or -2 if the key is absent.

        Mirrors Redis ``PTTL``.
        """
        now_ms = self._now_ms()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at_ms <= now_ms:
                return -2
            return entry.expires_at_ms - now_ms

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep_locked(self, now_ms: int) -> None:
        expired = [k for k, e in self._entries.items() if e.expires_at_ms <= now_ms]
        for key in expired:
            del self._entries[key]
