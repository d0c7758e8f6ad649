"""
Readers for application log files on the collector side
"""
import json
import os
from collections import deque
from pathlib import Path
from typing import List

from pydantic import ValidationError

from devscope.config.settings import settings
from devscope.models.records import CaptureRecord, LockError
from devscope.utils.logger import logger

PERF_TAG = "[DEVSCOPE_PERF]"

LOCK_ERROR_MARKERS = (
    "Deadlock found",
    "Lock wait timeout exceeded",
    "deadlock detected",
)


def project_log_path(project_path: str) -> Path:
    return Path(project_path) / settings.project_log_relpath


def _bracket_timestamp(line: str) -> str:
    """'[YYYY-MM-DD HH:MM:SS] ...' -> 'YYYY-MM-DD HH:MM:SS', else ''"""
    if len(line) > 21 and line[0] == "[" and line[20] == "]":
        return line[1:20]
    return ""


def tail_lines(path: Path, count: int) -> List[str]:
    """Last ``count`` lines of a file, streamed so memory stays bounded"""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\r\n") for line in deque(f, maxlen=count)]


def read_last_lines(path: str, count: int, max_bytes: int = 20000) -> List[str]:
    """
    Last ``count`` lines from the final ``max_bytes`` of a file.

    Errors come back as a single explanatory line instead of raising.
    """
    try:
        with open(path, "rb") as f:
            size = os.fstat(f.fileno()).st_size
            if size > max_bytes:
                f.seek(-max_bytes, os.SEEK_END)
            data = f.read()
    except OSError as e:
        return [f"Error reading log: {e}"]

    lines = data.decode("utf-8", errors="replace").splitlines()
    return lines[-count:] if count else []


def recent_project_logs(project_path: str, count: int) -> List[str]:
    """Recent raw lines of a project's log; a missing file is reported inline"""
    log_path = project_log_path(project_path)
    if not log_path.exists():
        return [f"Log file not found ({log_path})"]
    return tail_lines(log_path, count)


def scan_performance_records(lines: List[str]) -> List[CaptureRecord]:
    """Recover records written to the application log with PERF_TAG"""
    records = []
    for line in lines:
        idx = line.find(PERF_TAG)
        if idx == -1:
            continue

        brace = line.find("{", idx)
        if brace == -1:
            continue

        try:
            data = json.loads(line[brace:])
            timestamp = _bracket_timestamp(line)
            if timestamp:
                data["timestamp"] = timestamp
            records.append(CaptureRecord.model_validate(data))
        except (ValueError, TypeError, ValidationError) as e:
            logger.debug("Skipping malformed perf line", error=str(e))

    return records


def scan_lock_errors(lines: List[str]) -> List[LockError]:
    """Database deadlock / lock-timeout lines"""
    found = []
    for line in lines:
        if not any(marker in line for marker in LOCK_ERROR_MARKERS):
            continue

        timestamp = _bracket_timestamp(line)
        message = line
        if timestamp and len(line) > 22:
            message = line[22:].strip()
        found.append(LockError(timestamp=timestamp, message=message))

    return found
