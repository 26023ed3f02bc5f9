"""Unit tests for the window record schema and fixed-window transitions."""

import json

import pytest

from quotaguard.core.window import WindowState, advance_window, classify
from quotaguard.schemas.window import WindowRecord

NOW_MS = 1_000_000
EXPIRE_MS = 60_000


class TestWindowRecordSerialization:
    def test_dump_uses_reset_field(self) -> None:
        record = WindowRecord(total=5, remaining=4, reset_at=NOW_MS + EXPIRE_MS)
        assert json.loads(record.dump()) == {"total": 5, "remaining": 4, "reset": 1_060_000}

    def test_load_reads_dumped_record(self) -> None:
        raw = '{"total": 5, "remaining": 2, "reset": 1060000}'
        record = WindowRecord.load(raw)
        assert record == WindowRecord(total=5, remaining=2, reset_at=1_060_000)

    def test_load_accepts_bytes(self) -> None:
        record = WindowRecord.load(b'{"total": 3, "remaining": -1, "reset": 5}')
        assert record is not None
        assert record.remaining == -1

    def test_load_absent_returns_none(self) -> None:
        assert WindowRecord.load(None) is None

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "",
            "[]",
            '{"total": 5, "remaining": 4}',
            '{"total": "many", "remaining": 4, "reset": 1}',
            '{"total": 5, "remaining": -7, "reset": 1}',
            '{"total": 5, "remaining": 9, "reset": 1}',
            '{"total": 0, "remaining": 0, "reset": 1}',
        ],
    )
    def test_corrupt_payloads_load_as_absent(self, raw: str) -> None:
        assert WindowRecord.load(raw) is None


class TestClassify:
    def test_absent(self) -> None:
        assert classify(None, NOW_MS) is WindowState.ABSENT

    def test_active_until_reset_inclusive(self) -> None:
        record = WindowRecord(total=5, remaining=3, reset_at=NOW_MS)
        assert classify(record, NOW_MS) is WindowState.ACTIVE

    def test_expired_after_reset(self) -> None:
        record = WindowRecord(total=5, remaining=3, reset_at=NOW_MS)
        assert classify(record, NOW_MS + 1) is WindowState.EXPIRED


class TestAdvanceWindow:
    def test_absent_starts_window_and_consumes_one(self) -> None:
        record = advance_window(None, total=5, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record == WindowRecord(total=5, remaining=4, reset_at=NOW_MS + EXPIRE_MS)

    def test_active_only_decrements(self) -> None:
        current = WindowRecord(total=5, remaining=4, reset_at=NOW_MS + 30_000)
        record = advance_window(current, total=5, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record.remaining == 3
        assert record.reset_at == NOW_MS + 30_000

    def test_does_not_mutate_input(self) -> None:
        current = WindowRecord(total=5, remaining=4, reset_at=NOW_MS + 30_000)
        advance_window(current, total=5, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert current.remaining == 4

    def test_clamps_at_minus_one(self) -> None:
        current = WindowRecord(total=2, remaining=-1, reset_at=NOW_MS + 30_000)
        record = advance_window(current, total=2, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record.remaining == -1

    def test_expired_rolls_over_from_exhausted(self) -> None:
        current = WindowRecord(total=2, remaining=-1, reset_at=NOW_MS - 1)
        record = advance_window(current, total=2, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record.remaining == 1
        assert record.reset_at == NOW_MS + EXPIRE_MS

    def test_rollover_keeps_stored_ceiling(self) -> None:
        current = WindowRecord(total=2, remaining=0, reset_at=NOW_MS - 1)
        record = advance_window(current, total=10, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record.total == 2
        assert record.remaining == 1

    def test_absent_uses_configured_total(self) -> None:
        record = advance_window(None, total=10, expire_ms=EXPIRE_MS, now_ms=NOW_MS)
        assert record.total == 10
        assert record.remaining == 9

    def test_remaining_never_exceeds_total(self) -> None:
        record = None
        for step in range(20):
            record = advance_window(record, total=3, expire_ms=EXPIRE_MS, now_ms=NOW_MS + step)
            assert -1 <= record.remaining <= record.total
