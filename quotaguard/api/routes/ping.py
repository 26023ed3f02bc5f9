from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Ping"])


@router.get("/ping")
def ping(request: Request) -> dict:
    """Rate-limited liveness probe.

    Answers with the caller's address so clients can check which counting
    key their requests fall under.
    """

    client_host = request.client.host if request.client else None
    return {"pong": True, "client": client_host}
