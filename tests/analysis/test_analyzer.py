from __future__ import annotations

from devscope.analysis.analyzer import (
    heaviest_queries,
    memory_hogs,
    slow_operations,
    slowest,
    summarize,
)
from devscope.models.records import LockError


def test_slowest_returns_top_k_by_duration(sample_window) -> None:
    assert [r.uri for r in slowest(sample_window, 2)] == ["/b", "/a"]


def test_rankings_do_not_mutate_the_window(sample_window) -> None:
    before = list(sample_window)
    slowest(sample_window, 3)
    memory_hogs(sample_window, 3)
    assert sample_window == before


def test_ties_keep_window_order(sample_window) -> None:
    # /a and /c both ran 3 queries
    assert [r.uri for r in heaviest_queries(sample_window, 3)] == ["/b", "/a", "/c"]


def test_k_bounds(sample_window) -> None:
    assert slowest(sample_window, 0) == []
    assert slowest(sample_window, -1) == []
    assert len(slowest(sample_window, 50)) == 3
    assert slowest([], 5) == []


def test_memory_hogs(sample_window) -> None:
    assert [r.uri for r in memory_hogs(sample_window, 1)] == ["/c"]


def test_slow_operations_are_flattened_and_tagged(sample_window) -> None:
    ops = slow_operations(sample_window, 10)

    assert [(op.text, op.uri) for op in ops] == [
        ("select * from orders", "/b"),
        ("update carts", "/c"),
        ("select * from items", "/b"),
    ]
    assert [op.duration_ms for op in ops] == [310, 120, 75]


def test_slow_operations_respects_k(sample_window) -> None:
    assert len(slow_operations(sample_window, 2)) == 2
    assert slow_operations(sample_window, 0) == []


def test_summarize(sample_window) -> None:
    locks = [LockError(timestamp="2024-01-01 10:00:00", message="Deadlock found")]

    summary = summarize(sample_window, locks, slowest_k=1)

    assert summary.total_records == 3
    assert not summary.is_empty
    assert [r.uri for r in summary.slowest] == ["/b"]
    assert len(summary.heaviest_queries) == 3
    assert summary.lock_errors == locks


def test_summarize_empty_window() -> None:
    summary = summarize([])
    assert summary.is_empty
    assert summary.slowest == []
    assert summary.slow_operations == []


def test_large_window_is_re_derived_in_full(record_factory) -> None:
    window = [record_factory(f"/r{i}", duration_ms=i % 97) for i in range(5000)]

    top = slowest(window, 5)

    assert [r.duration_ms for r in top] == [96] * 5
    assert [r.uri for r in top] == ["/r96", "/r193", "/r290", "/r387", "/r484"]
