"""Fixed-window rate limiter backed by a shared key-value store.

For each request the limiter derives a counting key, reads the window record
from the store, applies the fixed-window transition, writes the record back
with a TTL of one window, and returns a decision carrying the rate-limit
headers.

Concurrency:
    The read and the write are two separate store round trips with no
    compare-and-swap. Concurrent requests for the same key from several
    workers can both read ``remaining = N`` and both write ``N - 1``, so the
    limit may be overshot under contention. Distinct keys never interact.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from quotaguard.adapters.store.base import AbstractKeyValueStore
from quotaguard.core.config import RateLimitSettings, split_csv
from quotaguard.core.errors import ConfigurationAppError, StoreUnavailableError
from quotaguard.core.keys import LookupPath, default_key_generator, normalize_lookup
from quotaguard.core.window import advance_window
from quotaguard.schemas.window import WindowRecord

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"

KeyGenerator = Callable[["Request"], str]
Whitelist = Callable[["Request"], bool]
CallNext = Callable[["Request"], Awaitable["Response"]]
RateLimitedHandler = Callable[["Request", CallNext, "RateLimitDecision"], Awaitable["Response"]]


def _format_seconds(value: float) -> str:
    """Render seconds with millisecond precision and no trailing zeros.

    Examples:
        >>> _format_seconds(60.0)
        '60'
        >>> _format_seconds(12.3456)
        '12.346'
    """
    return f"{value:.3f}".rstrip("0").rstrip(".")


def hash_key(key: str) -> str:
    """Hash a counting key for logging without exposing client attributes."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class RateLimitOptions:
    """Limiter configuration.

    Attributes:
        total: Requests allowed per window and counting key.
        expire_ms: Window length in milliseconds; also the store TTL.
        path: Resource identifier used in the key instead of the request path.
        method: HTTP method used in the key instead of the request method.
        lookup: Dotted request attribute path(s) identifying the client.
        key_generator: Replaces default key derivation entirely when set.
        on_rate_limited: Handler producing the response for rejected requests.
        whitelist: Predicate; matching requests skip limiting altogether.
        skip_headers: Suppress all rate-limit response headers.
        ignore_errors: Admit requests when the store fails instead of failing them.
    """

    total: int
    expire_ms: int
    path: str | None = None
    method: str | None = None
    lookup: str | Sequence[str] | tuple[LookupPath, ...] | None = None
    key_generator: KeyGenerator | None = None
    on_rate_limited: RateLimitedHandler | None = None
    whitelist: Whitelist | None = None
    skip_headers: bool = False
    ignore_errors: bool = False

    def __post_init__(self) -> None:
        if self.total < 1:
            raise ConfigurationAppError(
                code="invalid_rate_limit_total",
                message="total must be >= 1",
            )
        if self.expire_ms < 1:
            raise ConfigurationAppError(
                code="invalid_rate_limit_expire",
                message="expire_ms must be >= 1",
            )
        object.__setattr__(self, "lookup", normalize_lookup(self.lookup))

    @property
    def lookup_paths(self) -> tuple[LookupPath, ...]:
        return self.lookup  # type: ignore[return-value]

    @property
    def route_scoped(self) -> bool:
        """True when the limiter only guards one method/path pair."""
        return bool(self.path and self.method)


def path_whitelist(paths: Iterable[str]) -> Whitelist:
    """Build a whitelist predicate matching exact request paths."""

    allowed = frozenset(paths)

    def _is_whitelisted(request: "Request") -> bool:
        return request.url.path in allowed

    return _is_whitelisted


def build_options(rate_limit_settings: RateLimitSettings, **overrides: Any) -> RateLimitOptions:
    """Translate environment settings into limiter options.

    Keyword overrides win over settings (e.g. to inject callables).
    """

    whitelist_paths = split_csv(rate_limit_settings.whitelist_paths)
    values: dict[str, Any] = {
        "total": rate_limit_settings.total,
        "expire_ms": rate_limit_settings.expire_ms,
        "path": rate_limit_settings.path,
        "method": rate_limit_settings.method,
        "lookup": split_csv(rate_limit_settings.lookup),
        "whitelist": path_whitelist(whitelist_paths) if whitelist_paths else None,
        "skip_headers": rate_limit_settings.skip_headers,
        "ignore_errors": rate_limit_settings.ignore_errors,
    }
    values.update(overrides)
    return RateLimitOptions(**values)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of evaluating one request.

    Attributes:
        allowed: Whether the request may continue down the pipeline.
        evaluated: False when the request bypassed counting (whitelist or
            ignored store error); such decisions carry no headers.
        key: Counting key, None when not evaluated.
        limit: Window quota ceiling.
        remaining: Stored remaining count; -1 on the rejected request.
        reset_at_ms: Epoch milliseconds at which the window resets.
        retry_after_seconds: Seconds until reset, set only when rejected.
        include_headers: False when header emission is suppressed.
    """

    allowed: bool
    evaluated: bool
    key: str | None = None
    limit: int = 0
    remaining: int = 0
    reset_at_ms: int = 0
    retry_after_seconds: float | None = None
    include_headers: bool = True
    headers: dict[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", self._build_headers())

    @classmethod
    def bypass(cls) -> "RateLimitDecision":
        return cls(allowed=True, evaluated=False, include_headers=False)

    @property
    def reset_at(self) -> int:
        """Window reset as UNIX epoch seconds, rounded up."""
        return math.ceil(self.reset_at_ms / 1000)

    def _build_headers(self) -> dict[str, str]:
        if not self.evaluated or not self.include_headers:
            return {}

        headers = {
            HEADER_LIMIT: str(self.limit),
            HEADER_REMAINING: str(max(self.remaining, 0)),
            HEADER_RESET: str(self.reset_at),
        }
        if not self.allowed and self.retry_after_seconds is not None:
            headers[HEADER_RETRY_AFTER] = _format_seconds(self.retry_after_seconds)
        return headers


class RateLimiter:
    """Evaluates requests against a fixed-window quota held in a shared store."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        options: RateLimitOptions,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared key-value store holding window records.
            options: Quota and behaviour configuration.
            clock: Time source returning UNIX time in seconds.
        """
        self.store = store
        self.options = options
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def build_key(self, request: "Request") -> str:
        """Derive the counting key for ``request``."""

        opts = self.options
        if opts.key_generator is not None:
            return opts.key_generator(request)

        return default_key_generator(
            request,
            opts.path or request.url.path,
            opts.method or request.method,
            opts.lookup_paths,
        )

    async def evaluate(self, request: "Request") -> RateLimitDecision:
        """Consume one unit of quota for the request's counting key.

        Args:
            request: Incoming request.

        Returns:
            RateLimitDecision describing admission and header values.

        Raises:
            StoreUnavailableError: If the store fails and ``ignore_errors`` is off.
        """

        opts = self.options
        if opts.whitelist is not None and opts.whitelist(request):
            logger.debug("rate_limit.bypassed", extra={"reason": "whitelist"})
            return RateLimitDecision.bypass()

        key = self.build_key(request)
        key_hash = hash_key(key)

        try:
            raw = await self.store.get(key)
            now_ms = self._now_ms()
            record = advance_window(
                WindowRecord.load(raw),
                total=opts.total,
                expire_ms=opts.expire_ms,
                now_ms=now_ms,
            )
            # Physical TTL runs from this write; the logical reset stays in the record.
            await self.store.set(key, record.dump(), px=opts.expire_ms)
        except StoreUnavailableError as exc:
            if not opts.ignore_errors:
                raise
            logger.warning(
                "rate_limit.store_error_ignored",
                extra={"key_hash": key_hash, "error_code": exc.code},
            )
            return RateLimitDecision.bypass()

        if record.remaining >= 0:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "key_hash": key_hash,
                    "limit": record.total,
                    "remaining": record.remaining,
                },
            )
            return RateLimitDecision(
                allowed=True,
                evaluated=True,
                key=key,
                limit=record.total,
                remaining=record.remaining,
                reset_at_ms=record.reset_at,
                include_headers=not opts.skip_headers,
            )

        retry_after = max(record.reset_at - self._now_ms(), 0) / 1000
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": key_hash,
                "limit": record.total,
                "retry_after_s": retry_after,
            },
        )
        return RateLimitDecision(
            allowed=False,
            evaluated=True,
            key=key,
            limit=record.total,
            remaining=record.remaining,
            reset_at_ms=record.reset_at,
            retry_after_seconds=retry_after,
            include_headers=not opts.skip_headers,
        )
