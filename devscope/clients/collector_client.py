"""
Collector client for the viewer's query surface
"""
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from devscope.config.settings import CollectorConfig, settings
from devscope.models.incident import Incident, IncidentStatus, IncidentView
from devscope.models.records import CaptureRecord, LockError
from devscope.models.telemetry import TelemetryStatus
from devscope.utils.logger import logger

T = TypeVar("T")

OK = "ok"
EMPTY = "empty"
ERROR = "error"

_records_adapter = TypeAdapter(List[CaptureRecord])
_locks_adapter = TypeAdapter(List[LockError])


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Payload plus whether it is real data, an explicit absence, or a failure"""

    status: str
    data: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != ERROR


class CollectorClient:
    """Client for the collector HTTP API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.collector_url
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def close(self):
        await self.client.aclose()

    async def health_check(self) -> bool:
        try:
            response = await self.client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("Collector health check failed", error=str(e))
            return False

    async def fetch_performance(self, project_path: str) -> QueryResult[List[CaptureRecord]]:
        """Record history for one project"""
        try:
            response = await self.client.get("/performance", params={"path": project_path})
            response.raise_for_status()
            records = _records_adapter.validate_python(response.json() or [])
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch performance", path=project_path, error=str(e))
            return QueryResult(ERROR, [], str(e))

        return QueryResult(OK if records else EMPTY, records)

    async def fetch_alerts(self) -> IncidentView:
        """Current incident; 204 means explicitly none"""
        try:
            response = await self.client.get("/alerts")
            if response.status_code == 204:
                return IncidentView(status=IncidentStatus.NONE)
            response.raise_for_status()
            incident = Incident.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch alerts", error=str(e))
            return IncidentView(status=IncidentStatus.UNAVAILABLE, error=str(e))

        return IncidentView(status=IncidentStatus.ACTIVE, incident=incident)

    async def fetch_logs(self, project_path: str) -> QueryResult[List[str]]:
        """Recent raw log lines"""
        try:
            response = await self.client.get("/logs", params={"path": project_path})
            response.raise_for_status()
            lines = list(response.json().get("lines") or [])
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error("Failed to fetch logs", path=project_path, error=str(e))
            return QueryResult(ERROR, [], str(e))

        return QueryResult(OK if lines else EMPTY, lines)

    async def fetch_lock_errors(self, project_path: str) -> QueryResult[List[LockError]]:
        try:
            response = await self.client.get("/locks", params={"path": project_path})
            response.raise_for_status()
            found = _locks_adapter.validate_python(response.json() or [])
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch lock errors", path=project_path, error=str(e))
            return QueryResult(ERROR, [], str(e))

        return QueryResult(OK if found else EMPTY, found)

    async def fetch_telemetry(self) -> QueryResult[Optional[TelemetryStatus]]:
        """Collector self-reported stats, for display only"""
        try:
            response = await self.client.get("/telemetry")
            response.raise_for_status()
            telemetry = TelemetryStatus.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch telemetry", error=str(e))
            return QueryResult(ERROR, None, str(e))

        return QueryResult(OK, telemetry)

    async def fetch_config(self) -> QueryResult[Optional[CollectorConfig]]:
        try:
            response = await self.client.get("/config")
            response.raise_for_status()
            config = CollectorConfig.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch config", error=str(e))
            return QueryResult(ERROR, None, str(e))

        return QueryResult(OK, config)

    async def update_config(self, config: CollectorConfig) -> QueryResult[Dict[str, Any]]:
        try:
            response = await self.client.post("/config", json=config.model_dump())
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to update config", error=str(e))
            return QueryResult(ERROR, {}, str(e))

        return QueryResult(OK, data)

    async def clear_performance(self) -> bool:
        try:
            response = await self.client.post("/performance/clear")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("Failed to clear performance", error=str(e))
            return False
