"""Fixed-window state machine.

A counting key is in one of three states:

- ABSENT: no record in the store (first request, or the store expired it).
- ACTIVE: record exists and ``now <= reset_at``.
- EXPIRED: record exists but ``now > reset_at``; still physically stored
  until the next write replaces it.

Every evaluated request moves the key to ACTIVE and consumes one unit.
"""

from __future__ import annotations

from enum import Enum

from quotaguard.schemas.window import WindowRecord

# Lowest value ``remaining`` may hold: the request that exceeded the quota.
EXHAUSTED = -1


class WindowState(str, Enum):
    ABSENT = "absent"
    ACTIVE = "active"
    EXPIRED = "expired"


def classify(record: WindowRecord | None, now_ms: int) -> WindowState:
    if record is None:
        return WindowState.ABSENT
    if now_ms > record.reset_at:
        return WindowState.EXPIRED
    return WindowState.ACTIVE


def advance_window(
    record: WindowRecord | None,
    *,
    total: int,
    expire_ms: int,
    now_ms: int,
) -> WindowRecord:
    """Apply one request to a window record.

    On rollover the ceiling is taken from the stored record, not from
    ``total``; a changed quota applies once the old record has expired out of
    the store.

    Args:
        record: Stored record, or None when absent/corrupt.
        total: Configured quota, used only when starting from ABSENT.
        expire_ms: Window length in milliseconds.
        now_ms: Current time in epoch milliseconds.

    Returns:
        A new record with ``remaining`` decremented and clamped at -1.
    """
    state = classify(record, now_ms)

    if state is WindowState.ABSENT:
        record = WindowRecord(total=total, remaining=total, reset_at=now_ms + expire_ms)
    elif state is WindowState.EXPIRED:
        record = record.model_copy(
            update={"remaining": record.total, "reset_at": now_ms + expire_ms}
        )

    return record.model_copy(update={"remaining": max(record.remaining - 1, EXHAUSTED)})
