"""
Request-scoped capture of duration, memory and query metrics
"""
import time
from contextvars import Token
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import psutil

from devscope.capture.hooks import (
    QueryHook,
    QueryTracker,
    activate_tracker,
    deactivate_tracker,
    query_hook,
)
from devscope.capture.transport import Transport
from devscope.config.settings import settings
from devscope.models.records import CaptureRecord
from devscope.utils.logger import StructuredLogger, diagnostic_sink


class CaptureState(str, Enum):
    UNINITIALIZED = "uninitialized"
    HOOKED = "hooked"
    FINALIZING = "finalizing"
    DELIVERED = "delivered"
    DROPPED = "dropped"


class CaptureUnavailable(Exception):
    """The host has not exposed the request context the record needs"""


@dataclass(frozen=True)
class Delivered:
    record: CaptureRecord


@dataclass(frozen=True)
class Dropped:
    reason: str
    record: Optional[CaptureRecord] = None


CaptureResult = Union[Delivered, Dropped]


class RequestLifecycle:
    """Capture state for one unit of work"""

    def __init__(self, scope: Dict[str, Any], started_at: float):
        self.scope = scope
        self.started_at = started_at
        self.state = CaptureState.UNINITIALIZED
        self.tracker: Optional[QueryTracker] = None
        self._token: Optional[Token] = None

    def arm(self, tracker: QueryTracker):
        self.tracker = tracker
        self._token = activate_tracker(tracker)

    def disarm(self):
        if self._token is not None:
            token, self._token = self._token, None
            deactivate_tracker(token)


class CaptureAgent:
    """
    Produces at most one CaptureRecord per unit of work.

    Figures are taken at teardown so they cover the whole lifecycle. The query
    counter only exists for requests that began after the data-access hook was
    installed; with ``install_on_teardown`` the hook arrives too late for the
    request that installs it, and every such record reports query_count=0.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        hook: Optional[QueryHook] = None,
        slow_threshold_ms: Optional[float] = None,
        install_on_teardown: bool = False,
        diagnostics: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.diagnostics = diagnostics or diagnostic_sink(settings.capture_debug_log)
        self.transport = transport or Transport(diagnostics=self.diagnostics)
        self.hook = hook or query_hook
        self.slow_threshold_ms = (
            slow_threshold_ms if slow_threshold_ms is not None
            else settings.slow_operation_threshold_ms
        )
        self.install_on_teardown = install_on_teardown
        self.clock = clock
        self._process = None

        if not install_on_teardown:
            self._install_hook()

        self.diagnostics.debug("Capture agent loaded", hook_installed=self.hook.is_installed())

    def _install_hook(self):
        try:
            if self.hook.install():
                self.diagnostics.debug("Query hook installed")
        except Exception as e:
            self.diagnostics.error("Query hook installation failed", error=repr(e))

    def begin(self, scope: Dict[str, Any]) -> RequestLifecycle:
        """Register a unit of work for capture at its teardown"""
        lifecycle = RequestLifecycle(scope, started_at=self.clock())
        try:
            if self.hook.is_installed():
                lifecycle.arm(QueryTracker(self.slow_threshold_ms))
        except Exception as e:
            self.diagnostics.error("Query tracker unavailable", error=repr(e))

        lifecycle.state = CaptureState.HOOKED
        return lifecycle

    async def finish(self, lifecycle: RequestLifecycle) -> CaptureResult:
        """Build and deliver the record. Never raises."""
        lifecycle.state = CaptureState.FINALIZING
        try:
            if self.install_on_teardown:
                self._install_hook()
            record = self._build_record(lifecycle)
        except Exception as e:
            return self._drop(lifecycle, f"capture-unavailable: {e!r}")
        finally:
            try:
                lifecycle.disarm()
            except Exception as e:
                self.diagnostics.debug("Tracker reset failed", error=repr(e))

        try:
            delivered = await self.transport.deliver(record)
        except Exception as e:
            return self._drop(lifecycle, f"transport-failure: {e!r}", record)

        if not delivered:
            return self._drop(lifecycle, "transport-failure", record)

        lifecycle.state = CaptureState.DELIVERED
        return Delivered(record)

    def _drop(
        self,
        lifecycle: RequestLifecycle,
        reason: str,
        record: Optional[CaptureRecord] = None,
    ) -> Dropped:
        lifecycle.state = CaptureState.DROPPED
        self.diagnostics.debug("Record dropped", reason=reason)
        return Dropped(reason=reason, record=record)

    def _build_record(self, lifecycle: RequestLifecycle) -> CaptureRecord:
        scope = lifecycle.scope
        path = scope.get("path")
        method = scope.get("method")
        if not path or not method:
            raise CaptureUnavailable("request path/method not available")

        uri = path
        query_string = scope.get("query_string") or b""
        if query_string:
            uri = f"{path}?{query_string.decode('latin-1')}"

        tracker = lifecycle.tracker
        return CaptureRecord(
            uri=uri,
            method=method,
            duration_ms=round(max(0.0, self.clock() - lifecycle.started_at) * 1000, 2),
            memory_mb=self._memory_mb(),
            query_count=tracker.count if tracker else 0,
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            slow_operations=list(tracker.slow_operations) if tracker else [],
        )

    def _memory_mb(self) -> float:
        if self._process is None:
            self._process = psutil.Process()
        return round(self._process.memory_info().rss / 1024 / 1024, 2)


class CaptureMiddleware:
    """
    ASGI middleware running a CaptureAgent around every HTTP request.

    The host's own exceptions propagate unchanged; capture never adds one.
    """

    def __init__(self, app, agent: Optional[CaptureAgent] = None, **agent_options):
        self.app = app
        self.agent = agent or CaptureAgent(**agent_options)

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        lifecycle = self.agent.begin(scope)
        try:
            await self.app(scope, receive, send)
        finally:
            await self.agent.finish(lifecycle)
