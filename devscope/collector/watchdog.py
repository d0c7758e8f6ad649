"""
CPU watchdog raising incidents for the collector's /alerts surface
"""
import asyncio
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from devscope.collector.app_logs import read_last_lines
from devscope.collector.telemetry import ProcessMonitor
from devscope.config.settings import CollectorConfig, settings
from devscope.models.incident import Incident
from devscope.utils.logger import logger


class Watchdog:
    """
    Holds at most one current incident.

    A breach during the cooldown returns the existing incident unchanged, and
    an incident older than the expiry window is no longer reported.
    """

    def __init__(
        self,
        cooldown_seconds: Optional[int] = None,
        expiry_seconds: Optional[int] = None,
        suspect_line_count: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.cooldown = timedelta(seconds=cooldown_seconds or settings.incident_cooldown_seconds)
        self.expiry = timedelta(seconds=expiry_seconds or settings.incident_expiry_seconds)
        self.suspect_line_count = suspect_line_count or settings.suspect_line_count
        self.clock = clock

        self.last_incident: Optional[Incident] = None
        self.cooldown_until: Optional[datetime] = None
        self.incidents_raised = 0
        self._lock = threading.Lock()

    def check(self, load_percent: float, threshold: float, log_path: str) -> Optional[Incident]:
        """Evaluate one sample; returns the incident in force, if any"""
        with self._lock:
            if load_percent < threshold:
                return None

            now = self.clock()
            if self.cooldown_until is not None and now < self.cooldown_until:
                return self.last_incident

            suspects = read_last_lines(log_path, self.suspect_line_count) if log_path else []
            self.last_incident = Incident(
                timestamp=now,
                load_percent=load_percent,
                suspect_entries=suspects,
            )
            self.cooldown_until = now + self.cooldown
            self.incidents_raised += 1

        logger.warning(
            "Load threshold breached",
            load_percent=load_percent,
            threshold=threshold,
            suspects=len(suspects),
        )
        return self.last_incident

    def get_latest(self) -> Optional[Incident]:
        with self._lock:
            incident = self.last_incident
            if incident is not None and self.clock() - incident.timestamp > self.expiry:
                return None
            return incident


class WatchdogLoop:
    """Periodically samples watched processes and feeds the watchdog"""

    def __init__(self, watchdog: Watchdog, get_config: Callable[[], CollectorConfig], interval: Optional[float] = None):
        self.watchdog = watchdog
        self.get_config = get_config
        self.interval = interval or settings.watchdog_interval
        self.running = False
        self.monitors = {}

    def _monitor_for(self, pattern: str) -> ProcessMonitor:
        monitor = self.monitors.get(pattern)
        if monitor is None:
            monitor = ProcessMonitor(pattern)
            self.monitors = {pattern: monitor}
        return monitor

    async def tick(self):
        config = self.get_config()
        monitor = self._monitor_for(config.watch_process_pattern)
        _, cpu, _ = await asyncio.to_thread(monitor.sample)
        # check() reads the access log under a thread lock
        await asyncio.to_thread(self.watchdog.check, cpu, config.cpu_threshold, config.access_log_path)

    async def start(self):
        self.running = True
        logger.info("Starting watchdog", interval=self.interval)

        while self.running:
            try:
                await self.tick()
            except Exception as e:
                logger.error("Error in watchdog loop", error=str(e))
            await asyncio.sleep(self.interval)

    async def stop(self):
        self.running = False
        logger.info("Watchdog stopped")
