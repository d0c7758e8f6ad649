"""
Application settings and the persisted collector configuration
"""
import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from devscope.utils.logger import logger


class Settings(BaseSettings):
    """Process settings, read from DEVSCOPE_* environment variables"""

    model_config = SettingsConfigDict(env_prefix="DEVSCOPE_", env_file=".env", extra="ignore")

    app_name: str = "devscope"
    app_version: str = "0.1.0"
    debug: bool = False

    # Collector
    collector_host: str = "127.0.0.1"
    collector_port: int = 8888
    config_file: str = "devscope-config.json"
    store_limit: int = 1000
    project_log_relpath: str = "logs/app.log"
    logs_tail_lines: int = 50
    perf_scan_lines: int = 2000
    lock_scan_lines: int = 5000

    # Watchdog
    watchdog_interval: float = 2.0
    incident_cooldown_seconds: int = 60
    incident_expiry_seconds: int = 300
    suspect_line_count: int = 15

    # Capture
    transport_timeout: float = 0.2
    slow_operation_threshold_ms: float = 50.0
    capture_debug_log: Optional[str] = None

    # Viewer
    poll_interval: float = 2.0
    slowest_limit: int = 5
    heaviest_queries_limit: int = 5
    memory_hogs_limit: int = 5
    slow_operations_limit: int = 10
    row_buffer: int = 5

    @property
    def collector_url(self) -> str:
        return f"http://{self.collector_host}:{self.collector_port}"

    @property
    def ingest_url(self) -> str:
        return f"{self.collector_url}/ingest"


class CollectorConfig(BaseModel):
    """User-editable collector configuration, persisted as JSON"""

    workspace_root: str = ""
    host: str = "127.0.0.1"
    port: int = 8888
    ignored_projects: List[str] = []
    cpu_threshold: int = 50
    access_log_path: str = ""
    watch_process_pattern: str = "uvicorn|gunicorn|hypercorn"


def load_config(path: str) -> CollectorConfig:
    """Load the collector config, falling back to defaults when absent"""
    config_path = Path(path)
    if not config_path.exists():
        return CollectorConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8") or "{}")
        config = CollectorConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.error("Invalid config file, using defaults", path=path, error=str(e))
        return CollectorConfig()

    # Zero means unset in older files
    if config.cpu_threshold <= 0:
        config.cpu_threshold = 50
    if not config.host:
        config.host = "127.0.0.1"
    if config.port == 0:
        config.port = 8888
    return config


def save_config(config: CollectorConfig, path: str) -> None:
    """Write the collector config as indented JSON"""
    Path(path).write_text(config.model_dump_json(indent=2), encoding="utf-8")


settings = Settings()
