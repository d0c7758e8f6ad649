"""
devscope collector - FastAPI application
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncio

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

from devscope.collector.app_logs import (
    project_log_path,
    recent_project_logs,
    scan_lock_errors,
    scan_performance_records,
    tail_lines,
)
from devscope.collector.store import RecordStore
from devscope.collector.telemetry import ProcessMonitor
from devscope.collector.watchdog import Watchdog, WatchdogLoop
from devscope.config.settings import CollectorConfig, load_config, save_config, settings
from devscope.models.incident import Incident
from devscope.models.records import CaptureRecord, LockError
from devscope.models.telemetry import TelemetryStatus
from devscope.utils.logger import logger


store = RecordStore(limit=settings.store_limit)
watchdog = Watchdog()
collector_config = load_config(settings.config_file)
process_monitor = ProcessMonitor(collector_config.watch_process_pattern)
watchdog_loop = WatchdogLoop(watchdog, get_config=lambda: collector_config)

records_ingested = Counter(
    'devscope_records_ingested_total',
    'Capture records accepted by the collector',
    ['method']
)
store_size = Gauge('devscope_store_records', 'Records currently held in the ring buffer')
store_size.set_function(lambda: len(store))
incidents_raised = Gauge('devscope_incidents_raised', 'Incidents raised since start')
incidents_raised.set_function(lambda: watchdog.incidents_raised)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan"""
    logger.info("Starting devscope collector", version=settings.app_version)

    watchdog_task = asyncio.create_task(watchdog_loop.start())

    yield

    logger.info("Shutting down devscope collector")
    await watchdog_loop.stop()
    watchdog_task.cancel()
    logger.info("Collector stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Local collector for request capture records",
    lifespan=lifespan
)


def _require_path(path: Optional[str]) -> str:
    if not path:
        raise HTTPException(status_code=400, detail="Missing 'path' query parameter")
    return path


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}


@app.post("/ingest")
async def ingest(record: CaptureRecord):
    """Accept one capture record"""
    stored = store.add(record)
    records_ingested.labels(method=stored.method).inc()
    logger.debug("Ingested", method=stored.method, uri=stored.uri, duration_ms=stored.duration_ms)
    return Response(status_code=200)


@app.get("/performance")
def get_performance(path: Optional[str] = Query(default=None)) -> List[CaptureRecord]:
    """Records recovered from the project log followed by delivered records"""
    project = _require_path(path)

    metrics: List[CaptureRecord] = []
    log_path = project_log_path(project)
    try:
        if log_path.exists():
            metrics = scan_performance_records(tail_lines(log_path, settings.perf_scan_lines))
    except OSError as e:
        # Acceptable to have no file-based records
        logger.error("Error reading log file", path=str(log_path), error=str(e))

    metrics.extend(store.get_all())
    return metrics


@app.post("/performance/clear")
async def clear_performance():
    """Drop all in-memory records"""
    store.clear()
    logger.info("Performance store cleared")
    return Response(status_code=200)


@app.get("/alerts", response_model=None)
async def get_alerts() -> Any:
    """Current incident, or 204 when there is none"""
    incident: Optional[Incident] = watchdog.get_latest()
    if incident is None:
        return Response(status_code=204)
    return incident


@app.get("/logs")
def get_logs(path: Optional[str] = Query(default=None)) -> Dict[str, List[str]]:
    """Recent raw application log lines"""
    project = _require_path(path)
    try:
        lines = recent_project_logs(project, settings.logs_tail_lines)
    except OSError as e:
        logger.error("Failed to read logs", path=project, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
    return {"lines": lines}


@app.get("/locks")
def get_lock_errors(path: Optional[str] = Query(default=None)) -> List[LockError]:
    """Database lock errors from the application log"""
    project = _require_path(path)
    log_path = project_log_path(project)
    try:
        if not log_path.exists():
            return []
        return scan_lock_errors(tail_lines(log_path, settings.lock_scan_lines))
    except OSError as e:
        # An empty list keeps the viewer usable when the log is unreadable
        logger.error("Failed to scan for lock errors", path=project, error=str(e))
        return []


@app.get("/telemetry")
def get_telemetry() -> TelemetryStatus:
    """Collector and watched-process statistics"""
    return process_monitor.get_status()


@app.get("/config")
async def get_config() -> CollectorConfig:
    return collector_config


@app.post("/config")
async def update_config(new_config: CollectorConfig) -> Dict[str, str]:
    """Persist a new collector configuration"""
    global collector_config, process_monitor

    try:
        save_config(new_config, settings.config_file)
    except OSError as e:
        logger.error("Failed to save config", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to save config")

    collector_config = new_config
    if process_monitor.pattern != new_config.watch_process_pattern:
        process_monitor = ProcessMonitor(new_config.watch_process_pattern)

    logger.info("Config updated", cpu_threshold=new_config.cpu_threshold)
    return {"status": "updated", "message": "Config saved. Restart required for host/port."}


@app.get("/metrics")
async def metrics():
    """Expose Prometheus metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting devscope collector server")

    uvicorn.run(
        "devscope.main:app",
        host=settings.collector_host,
        port=settings.collector_port,
        reload=settings.debug,
        log_level="info"
    )
