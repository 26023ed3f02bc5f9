from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Whitelisted by default, so probes never consume quota. Reports which
    store backend holds the window records.
    """

    store = getattr(request.app.state, "store", None)
    return {
        "status": "ok",
        "store": type(store).__name__ if store is not None else None,
        "rate_limit_enabled": hasattr(request.app.state, "rate_limiter"),
    }
