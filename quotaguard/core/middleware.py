"""HTTP middleware: request correlation and rate limiting.

Usage:
    install_rate_limiter(app, store, options)
    app.middleware("http")(request_id_middleware)

Register the request-id middleware last so it wraps the limiter and rejected
responses still carry a correlation id.

Route scoping compares the literal request path, so parameterised paths such
as ``/users/{user_id}`` never match.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response

from quotaguard.adapters.store.base import AbstractKeyValueStore
from quotaguard.core.config import settings
from quotaguard.core.errors import StoreUnavailableError
from quotaguard.core.exception_handlers import app_error_response, error_response
from quotaguard.core.logging import clear_request_id, set_request_id
from quotaguard.core.rate_limit import (
    CallNext,
    RateLimitDecision,
    RateLimiter,
    RateLimitOptions,
)

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate or generate a request id and time the request.

    The incoming header (``LOG_REQUEST_ID_HEADER``, default X-Request-ID) is
    reused when present, otherwise a UUID4 is generated. The id is stored in
    contextvars for log correlation and echoed on the response together with
    ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def default_rate_limited_handler(
    request: Request,
    call_next: CallNext,
    decision: RateLimitDecision,
) -> Response:
    """Reject with 429 and the standard error envelope."""

    return error_response(429, "rate_limit_exceeded", "Rate limit exceeded")


class RateLimitMiddleware:
    """ASGI function middleware applying a ``RateLimiter`` to requests.

    When the options name both ``path`` and ``method`` only that route is
    limited; every other request passes straight through.
    """

    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter
        self.on_rate_limited = limiter.options.on_rate_limited or default_rate_limited_handler

    def applies_to(self, request: Request) -> bool:
        opts = self.limiter.options
        if not opts.route_scoped:
            return True
        return request.method.upper() == opts.method.upper() and request.url.path == opts.path

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        if not self.applies_to(request):
            return await call_next(request)

        try:
            decision = await self.limiter.evaluate(request)
        except StoreUnavailableError as exc:
            return app_error_response(exc)

        if decision.allowed:
            response = await call_next(request)
        else:
            response = await self.on_rate_limited(request, call_next, decision)

        for name, value in decision.headers.items():
            response.headers[name] = value
        return response


def install_rate_limiter(
    app: FastAPI,
    store: AbstractKeyValueStore,
    options: RateLimitOptions,
) -> RateLimiter:
    """Create a limiter for ``store``/``options`` and register its middleware.

    Returns:
        The limiter, also exposed as ``app.state.rate_limiter``.
    """

    limiter = RateLimiter(store, options)
    app.middleware("http")(RateLimitMiddleware(limiter))
    app.state.rate_limiter = limiter

    logger.info(
        "rate_limit.installed",
        extra={
            "total": options.total,
            "expire_ms": options.expire_ms,
            "route_scoped": options.route_scoped,
            "lookup": [p.dotted for p in options.lookup_paths],
        },
    )
    return limiter
