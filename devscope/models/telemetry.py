"""
Process telemetry data models
"""
from pydantic import BaseModel


class SystemStats(BaseModel):
    """Collector process plus the watched web processes"""
    memory_usage_mb: float = 0.0
    num_threads: int = 0
    web_memory_mb: float = 0.0
    web_cpu_percent: float = 0.0
    web_worker_count: int = 0


class TelemetryStatus(BaseModel):
    web_running: bool = False
    system_stats: SystemStats = SystemStats()
