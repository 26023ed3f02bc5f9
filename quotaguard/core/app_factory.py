"""Application factory for the FastAPI app.

Centralizes app construction (store, middleware, handlers, routers) so tests
can build isolated apps with their own store and options.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from quotaguard.adapters.store import AbstractKeyValueStore, create_store
from quotaguard.api.routes import health_router, ping_router
from quotaguard.core.config import settings
from quotaguard.core.exception_handlers import setup_exception_handlers
from quotaguard.core.logging import configure_logging
from quotaguard.core.middleware import install_rate_limiter, request_id_middleware
from quotaguard.core.rate_limit import RateLimitOptions, build_options


def create_app(
    *,
    store: AbstractKeyValueStore | None = None,
    options: RateLimitOptions | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Key-value store for window records; built from settings if omitted.
        options: Limiter options; built from settings if omitted.

    Returns:
        Configured FastAPI app.
    """
    configure_logging(settings.log)

    if store is None:
        store = create_store()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await store.aclose()

    app = FastAPI(
        title="quotaguard",
        description=(
            "Fixed-window rate limiting filter for ASGI services. Counts requests "
            "per client key in a shared store and answers 429 with "
            "X-RateLimit-* and Retry-After headers once the quota is spent."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store

    # The limiter is registered first so the request-id middleware wraps it.
    if options is not None or settings.rate_limit.enabled:
        install_rate_limiter(app, store, options or build_options(settings.rate_limit))
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(ping_router, prefix="/v1")
    app.include_router(health_router)

    return app
