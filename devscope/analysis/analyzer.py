"""
Rankings over a window of capture records

Every function here is pure and re-derived from the full window on each
refresh. Python's sort is stable, so records with equal keys keep their
window order.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from devscope.config.settings import settings
from devscope.models.records import CaptureRecord, LockError, TaggedSlowOperation


def _top(
    window: Sequence[CaptureRecord],
    key: Callable[[CaptureRecord], float],
    k: int,
) -> List[CaptureRecord]:
    if k <= 0:
        return []
    return sorted(window, key=key, reverse=True)[:k]


def slowest(window: Sequence[CaptureRecord], k: int = 5) -> List[CaptureRecord]:
    """Top-k records by duration"""
    return _top(window, lambda r: r.duration_ms, k)


def heaviest_queries(window: Sequence[CaptureRecord], k: int = 5) -> List[CaptureRecord]:
    """Top-k records by query count"""
    return _top(window, lambda r: r.query_count, k)


def memory_hogs(window: Sequence[CaptureRecord], k: int = 5) -> List[CaptureRecord]:
    """Top-k records by memory"""
    return _top(window, lambda r: r.memory_mb, k)


def slow_operations(window: Sequence[CaptureRecord], k: int = 10) -> List[TaggedSlowOperation]:
    """Every record's slow operations, tagged with the record's uri, top-k by duration"""
    if k <= 0:
        return []

    flattened = [
        TaggedSlowOperation(text=op.text, duration_ms=op.duration_ms, uri=record.uri)
        for record in window
        for op in record.slow_operations
    ]
    return sorted(flattened, key=lambda op: op.duration_ms, reverse=True)[:k]


@dataclass(frozen=True)
class AuditSummary:
    """Everything the audit view shows for one window"""

    total_records: int = 0
    slowest: List[CaptureRecord] = field(default_factory=list)
    heaviest_queries: List[CaptureRecord] = field(default_factory=list)
    memory_hogs: List[CaptureRecord] = field(default_factory=list)
    slow_operations: List[TaggedSlowOperation] = field(default_factory=list)
    lock_errors: List[LockError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_records == 0


def summarize(
    window: Sequence[CaptureRecord],
    lock_errors: Sequence[LockError] = (),
    slowest_k: int = settings.slowest_limit,
    queries_k: int = settings.heaviest_queries_limit,
    memory_k: int = settings.memory_hogs_limit,
    operations_k: int = settings.slow_operations_limit,
) -> AuditSummary:
    return AuditSummary(
        total_records=len(window),
        slowest=slowest(window, slowest_k),
        heaviest_queries=heaviest_queries(window, queries_k),
        memory_hogs=memory_hogs(window, memory_k),
        slow_operations=slow_operations(window, operations_k),
        lock_errors=list(lock_errors),
    )
