"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import that loads settings, so the
suite never picks up a developer's .env file or a real Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.pop("STORE_REDIS_URL", None)
os.environ.setdefault("RATE_LIMIT_TOTAL", "5")
os.environ.setdefault("RATE_LIMIT_EXPIRE_MS", "60000")
os.environ.setdefault("RATE_LIMIT_LOOKUP", "client.host")
os.environ.setdefault("RATE_LIMIT_WHITELIST_PATHS", "/health")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable

import pytest
from starlette.requests import Request


class FakeTime:
    """Deterministic clock shared by limiter and in-memory store."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build a Starlette request from plain values."""

    def _make(
        path: str = "/v1/ping",
        method: str = "GET",
        *,
        client: tuple[str, int] | None = ("10.0.0.7", 50000),
        headers: dict[str, str] | None = None,
        query_string: str = "",
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "root_path": "",
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in (headers or {}).items()
            ],
            "client": client,
        }
        return Request(scope)

    return _make
