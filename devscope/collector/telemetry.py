"""
Process statistics for the collector and the watched web processes
"""
import re
import threading
from typing import Dict, Tuple

import psutil

from devscope.models.telemetry import SystemStats, TelemetryStatus
from devscope.utils.logger import logger


class ProcessMonitor:
    """Samples processes whose name or command line matches a pattern"""

    def __init__(self, pattern: str = "uvicorn|gunicorn|hypercorn"):
        self.pattern = pattern
        self._procs: Dict[int, psutil.Process] = {}
        self._lock = threading.Lock()
        self._self = psutil.Process()

    def _matches(self, regex, proc: psutil.Process) -> bool:
        name = (proc.name() or "").lower()
        if regex.search(name):
            return True
        cmdline = " ".join(proc.cmdline()).lower()
        return bool(regex.search(cmdline))

    def sample(self) -> Tuple[float, float, int]:
        """
        Returns:
            (memory_mb, cpu_percent, worker_count) summed over matching processes
        """
        regex = re.compile(self.pattern, re.IGNORECASE)
        memory_bytes = 0
        cpu = 0.0
        workers = 0

        with self._lock:
            current = set()
            for pid in psutil.pids():
                if pid == self._self.pid:
                    continue
                current.add(pid)

                try:
                    proc = self._procs.get(pid)
                    if proc is None:
                        proc = psutil.Process(pid)
                        self._procs[pid] = proc

                    if not self._matches(regex, proc):
                        continue

                    memory_bytes += proc.memory_info().rss
                    # cpu_percent is measured since the previous call on this object
                    cpu += proc.cpu_percent(interval=None)
                    workers += 1
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue

            for pid in list(self._procs):
                if pid not in current:
                    del self._procs[pid]

        return round(memory_bytes / 1024 / 1024, 2), round(cpu, 2), workers

    def get_status(self) -> TelemetryStatus:
        try:
            web_memory, web_cpu, workers = self.sample()
        except psutil.Error as e:
            logger.error("Process sampling failed", error=str(e))
            web_memory, web_cpu, workers = 0.0, 0.0, 0

        stats = SystemStats(
            memory_usage_mb=round(self._self.memory_info().rss / 1024 / 1024, 2),
            num_threads=self._self.num_threads(),
            web_memory_mb=web_memory,
            web_cpu_percent=web_cpu,
            web_worker_count=workers,
        )
        return TelemetryStatus(web_running=workers > 0, system_stats=stats)
