from __future__ import annotations

import pytest

from core.dedup import ProcessedMessageRecord


def test_unbounded_record_keeps_everything() -> None:
    record = ProcessedMessageRecord()
    for index in range(1000):
        record.mark_seen(f"m{index}")

    assert len(record) == 1000
    assert record.is_seen("m0")


def test_lookup_refreshes_recency() -> None:
    record = ProcessedMessageRecord(max_entries=2)
    record.mark_seen("a")
    record.mark_seen("b")
    assert record.is_seen("a")

    record.mark_seen("c")

    assert "a" in record
    assert "b" not in record
    assert "c" in record


def test_rejects_non_positive_cap() -> None:
    with pytest.raises(ValueError):
        ProcessedMessageRecord(max_entries=0)
