"""
Periodic refresh of collector-backed views
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from devscope.analysis.analyzer import AuditSummary, summarize
from devscope.clients.collector_client import ERROR, CollectorClient
from devscope.config.settings import CollectorConfig, settings
from devscope.indexer.log_indexer import parse_lines
from devscope.models.incident import IncidentView
from devscope.models.records import CaptureRecord
from devscope.models.telemetry import TelemetryStatus
from devscope.utils.logger import logger
from devscope.viewer.log_browser import LogBrowser


class Poller:
    """
    Cancellable periodic task.

    Each tick awaits the previous refresh before sleeping, so refreshes never
    overlap. stop() cancels the pending sleep; no timer outlives the owner.
    """

    def __init__(self, refresh: Callable[[], Awaitable[None]], interval: Optional[float] = None):
        self.refresh = refresh
        self.interval = interval if interval is not None else settings.poll_interval
        self.running = False
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self.running = True
            self._task = asyncio.create_task(self._run())
        return self._task

    async def _run(self):
        while self.running:
            try:
                await self.refresh()
            except Exception as e:
                logger.error("Error in refresh loop", error=str(e))
            self.tick_count += 1
            await asyncio.sleep(self.interval)

    async def stop(self):
        self.running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class AuditMonitor:
    """Viewer state for one project: window, rankings and incident"""

    def __init__(self, client: CollectorClient, project_path: str):
        self.client = client
        self.project_path = project_path
        self.window: List[CaptureRecord] = []
        self.summary = AuditSummary()
        self.incident = IncidentView()
        self.loaded = False
        self.error: Optional[str] = None
        self.last_refresh: Optional[datetime] = None

    async def refresh(self):
        """Pull one window and re-derive every ranking from it"""
        performance, incident, locks = await asyncio.gather(
            self.client.fetch_performance(self.project_path),
            self.client.fetch_alerts(),
            self.client.fetch_lock_errors(self.project_path),
        )

        self.incident = incident

        if performance.status == ERROR:
            self.error = performance.error
        else:
            self.error = None
            # Newest first
            self.window = list(reversed(performance.data))
            self.summary = summarize(self.window, list(reversed(locks.data)))
            self.loaded = True

        self.last_refresh = datetime.now()
        logger.debug(
            "Audit refreshed",
            path=self.project_path,
            records=len(self.window),
            incident=self.incident.status.value,
        )


class LogTailMonitor:
    """Recent lines of a project's log, re-parsed on every poll"""

    def __init__(self, client: CollectorClient, project_path: str, browser: Optional[LogBrowser] = None,
                 follow: bool = True):
        self.client = client
        self.project_path = project_path
        self.browser = browser or LogBrowser()
        self.follow = follow
        self.lines: List[str] = []
        self.loaded = False
        self.error: Optional[str] = None
        self.last_refresh: Optional[datetime] = None

    async def refresh(self):
        result = await self.client.fetch_logs(self.project_path)

        if result.status == ERROR:
            # Keep showing the last good lines
            self.error = result.error
        else:
            self.error = None
            self.lines = result.data
            self.browser.set_entries(parse_lines(result.data), keep_position=True)
            if self.follow:
                self.browser.follow()
            self.loaded = True

        self.last_refresh = datetime.now()


class MetricsMonitor:
    """Collector telemetry, configuration and current incident"""

    def __init__(self, client: CollectorClient):
        self.client = client
        self.telemetry: Optional[TelemetryStatus] = None
        self.config: Optional[CollectorConfig] = None
        self.incident = IncidentView()
        self.loaded = False
        self.error: Optional[str] = None
        self.last_refresh: Optional[datetime] = None

    async def refresh(self):
        telemetry, config, incident = await asyncio.gather(
            self.client.fetch_telemetry(),
            self.client.fetch_config(),
            self.client.fetch_alerts(),
        )

        self.incident = incident
        if config.ok:
            self.config = config.data

        if telemetry.ok:
            self.error = None
            self.telemetry = telemetry.data
            self.loaded = True
        else:
            self.error = telemetry.error

        self.last_refresh = datetime.now()
