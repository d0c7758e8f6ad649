"""
Data-access hook for per-request query counting
"""
import threading
import time
from contextvars import ContextVar, Token
from typing import List, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine

from devscope.models.records import SlowOperation

_START_KEY = "devscope_query_start"


class QueryTracker:
    """Counts the queries issued by one unit of work"""

    def __init__(self, slow_threshold_ms: float = 50.0):
        self.slow_threshold_ms = slow_threshold_ms
        self.count = 0
        self.slow_operations: List[SlowOperation] = []

    def record(self, statement: str, duration_ms: float):
        self.count += 1
        if duration_ms > self.slow_threshold_ms:
            self.slow_operations.append(
                SlowOperation(text=statement, duration_ms=round(duration_ms, 2))
            )


_current_tracker: ContextVar[Optional[QueryTracker]] = ContextVar(
    "devscope_query_tracker", default=None
)


def current_tracker() -> Optional[QueryTracker]:
    return _current_tracker.get()


def activate_tracker(tracker: QueryTracker) -> Token:
    return _current_tracker.set(tracker)


def deactivate_tracker(token: Token):
    _current_tracker.reset(token)


class QueryHook:
    """
    Process-scoped installation of SQLAlchemy cursor listeners.

    install() is idempotent: the owned flag short-circuits repeat calls, and
    event.contains() catches a listener attached by another QueryHook bound to
    the same functions.
    """

    def __init__(self, target=Engine):
        self.target = target
        self._installed = False
        self._lock = threading.Lock()

    def is_installed(self) -> bool:
        return self._installed

    def install(self) -> bool:
        """
        Attach the listeners.

        Returns:
            bool: True only for the call that actually attached them
        """
        with self._lock:
            if self._installed:
                return False

            if event.contains(self.target, "before_cursor_execute", self._before_cursor_execute):
                self._installed = True
                return False

            event.listen(self.target, "before_cursor_execute", self._before_cursor_execute)
            event.listen(self.target, "after_cursor_execute", self._after_cursor_execute)
            event.listen(self.target, "handle_error", self._handle_error)
            self._installed = True
            return True

    def uninstall(self):
        with self._lock:
            if not self._installed:
                return
            if event.contains(self.target, "before_cursor_execute", self._before_cursor_execute):
                event.remove(self.target, "before_cursor_execute", self._before_cursor_execute)
                event.remove(self.target, "after_cursor_execute", self._after_cursor_execute)
                event.remove(self.target, "handle_error", self._handle_error)
            self._installed = False

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        elapsed_ms = (time.perf_counter() - starts.pop()) * 1000

        tracker = _current_tracker.get()
        if tracker is not None:
            tracker.record(statement, elapsed_ms)

    def _handle_error(self, context):
        # A failed statement never reaches after_cursor_execute
        conn = context.connection
        if conn is None or context.statement is None:
            return
        starts = conn.info.get(_START_KEY)
        if starts:
            starts.pop()


# Global hook instance
query_hook = QueryHook()
