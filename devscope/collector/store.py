"""
In-memory ring buffer of delivered capture records
"""
import threading
from collections import deque
from datetime import datetime
from typing import List

from devscope.models.records import CaptureRecord


class RecordStore:
    """Keeps the most recent ``limit`` records in arrival order"""

    def __init__(self, limit: int = 1000):
        self.limit = limit
        self._entries = deque(maxlen=limit)
        self._lock = threading.Lock()

    def add(self, record: CaptureRecord) -> CaptureRecord:
        """Append a record, stamping it if the sender left no timestamp"""
        if not record.timestamp:
            record = record.model_copy(
                update={"timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S")}
            )

        with self._lock:
            self._entries.append(record)
        return record

    def get_all(self) -> List[CaptureRecord]:
        with self._lock:
            return list(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
