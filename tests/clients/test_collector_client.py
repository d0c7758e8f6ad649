from __future__ import annotations

import json

import httpx
import pytest

from devscope.clients.collector_client import EMPTY, ERROR, OK, CollectorClient
from devscope.config.settings import CollectorConfig
from devscope.models.incident import IncidentStatus

RECORD = {
    "uri": "/orders",
    "method": "GET",
    "duration_ms": 120.5,
    "memory_mb": 14.2,
    "query_count": 3,
    "timestamp": "2024-01-01 10:00:00",
    "slow_queries": [{"sql": "select * from orders", "duration_ms": 75.1}],
}


def _client(handler) -> CollectorClient:
    return CollectorClient(base_url="http://collector.test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_performance_parses_records() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[RECORD])

    client = _client(handler)
    result = await client.fetch_performance("/srv/shop")
    await client.close()

    assert seen == {"path": "/performance", "params": {"path": "/srv/shop"}}
    assert result.status == OK
    assert result.ok
    [record] = result.data
    assert record.slow_operations[0].text == "select * from orders"


@pytest.mark.asyncio
async def test_empty_history_is_not_an_error() -> None:
    client = _client(lambda request: httpx.Response(200, json=[]))
    result = await client.fetch_performance("/srv/shop")

    assert result.status == EMPTY
    assert result.ok
    assert result.data == []


@pytest.mark.asyncio
async def test_unreachable_collector_is_an_error() -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused")

    client = _client(handler)
    result = await client.fetch_performance("/srv/shop")

    assert result.status == ERROR
    assert not result.ok
    assert "connection refused" in result.error
    assert await client.health_check() is False


@pytest.mark.asyncio
async def test_malformed_payload_is_an_error() -> None:
    client = _client(lambda request: httpx.Response(200, json=[{"uri": "/x"}]))
    assert (await client.fetch_performance("/srv/shop")).status == ERROR


@pytest.mark.asyncio
async def test_alerts_distinguish_none_from_unavailable() -> None:
    client = _client(lambda request: httpx.Response(204))
    assert (await client.fetch_alerts()).status == IncidentStatus.NONE

    client = _client(lambda request: httpx.Response(500))
    view = await client.fetch_alerts()
    assert view.status == IncidentStatus.UNAVAILABLE
    assert view.error

    incident = {"timestamp": "2024-01-01T10:00:00", "load_percent": 88.0, "suspect_entries": ["GET /x"]}
    client = _client(lambda request: httpx.Response(200, json=incident))
    view = await client.fetch_alerts()
    assert view.status == IncidentStatus.ACTIVE
    assert view.incident.load_percent == 88.0


@pytest.mark.asyncio
async def test_logs_and_locks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/logs":
            return httpx.Response(200, json={"lines": ["a", "b"]})
        return httpx.Response(200, json=[{"timestamp": "2024-01-01 10:00:00", "message": "Deadlock found"}])

    client = _client(handler)

    logs = await client.fetch_logs("/srv/shop")
    assert logs.status == OK
    assert logs.data == ["a", "b"]

    locks = await client.fetch_lock_errors("/srv/shop")
    assert locks.data[0].message == "Deadlock found"


@pytest.mark.asyncio
async def test_config_round_trip() -> None:
    stored = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            stored.update(json.loads(request.content))
            return httpx.Response(200, json={"status": "saved"})
        return httpx.Response(200, json=CollectorConfig(cpu_threshold=75).model_dump())

    client = _client(handler)

    fetched = await client.fetch_config()
    assert fetched.data.cpu_threshold == 75

    result = await client.update_config(CollectorConfig(cpu_threshold=30))
    assert result.ok
    assert stored["cpu_threshold"] == 30


@pytest.mark.asyncio
async def test_health_and_clear() -> None:
    client = _client(lambda request: httpx.Response(200, json={"status": "ok"}))
    assert await client.health_check() is True
    assert await client.clear_performance() is True


@pytest.mark.asyncio
async def test_fetch_telemetry() -> None:
    payload = {
        "web_running": False,
        "system_stats": {"memory_usage_mb": 30.0, "num_threads": 4},
    }
    client = _client(lambda request: httpx.Response(200, json=payload))
    result = await client.fetch_telemetry()

    assert result.ok
    assert result.data.web_running is False
    assert result.data.system_stats.web_worker_count == 0

    client = _client(lambda request: httpx.Response(200, json={"web_running": "maybe"}))
    assert (await client.fetch_telemetry()).status == ERROR
