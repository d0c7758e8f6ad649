from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from devscope.models.records import CaptureRecord, SlowOperation


def make_record(uri: str, duration_ms: float = 0, memory_mb: float = 0, query_count: int = 0, **kwargs) -> CaptureRecord:
    return CaptureRecord(
        uri=uri,
        method=kwargs.pop("method", "GET"),
        duration_ms=duration_ms,
        memory_mb=memory_mb,
        query_count=query_count,
        **kwargs,
    )


@pytest.fixture
def record_factory() -> Callable[..., CaptureRecord]:
    return make_record


@pytest.fixture
def sample_window() -> list[CaptureRecord]:
    return [
        make_record("/a", duration_ms=120, memory_mb=12, query_count=3),
        make_record(
            "/b",
            duration_ms=900,
            memory_mb=8,
            query_count=40,
            slow_operations=[
                SlowOperation(text="select * from orders", duration_ms=310),
                SlowOperation(text="select * from items", duration_ms=75),
            ],
        ),
        make_record(
            "/c",
            duration_ms=50,
            memory_mb=64,
            query_count=3,
            slow_operations=[SlowOperation(text="update carts", duration_ms=120)],
        ),
    ]


@pytest.fixture
def write_app_log() -> Callable[[Path, list[str]], Path]:
    def _write(project: Path, lines: list[str]) -> Path:
        log_path = project / "logs" / "app.log"
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return log_path

    return _write
