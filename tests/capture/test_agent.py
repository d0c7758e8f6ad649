from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text

from devscope.capture.agent import (
    CaptureAgent,
    CaptureMiddleware,
    CaptureState,
    Delivered,
    Dropped,
)
from devscope.capture.hooks import QueryHook
from devscope.utils.logger import diagnostic_sink


class RecordingTransport:
    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.sent = []

    async def deliver(self, record):
        self.sent.append(record)
        if self.error is not None:
            raise self.error
        return self.result


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    with engine.connect():
        pass
    yield engine
    engine.dispose()


def _scope(path: str = "/users", method: str = "GET", query: bytes = b"") -> dict:
    return {"type": "http", "path": path, "method": method, "query_string": query}


def _agent(engine, transport=None, **kwargs) -> CaptureAgent:
    return CaptureAgent(
        transport=transport or RecordingTransport(),
        hook=QueryHook(target=engine),
        diagnostics=diagnostic_sink(None),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_lifecycle_delivers_one_record(engine) -> None:
    transport = RecordingTransport()
    clock = FakeClock(10.0)
    agent = _agent(engine, transport, clock=clock)

    lifecycle = agent.begin(_scope("/users", query=b"page=2"))
    assert lifecycle.state == CaptureState.HOOKED

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
        conn.execute(text("SELECT 2"))
    clock.now = 10.25

    result = await agent.finish(lifecycle)

    assert isinstance(result, Delivered)
    assert lifecycle.state == CaptureState.DELIVERED
    assert transport.sent == [result.record]

    record = result.record
    assert record.uri == "/users?page=2"
    assert record.method == "GET"
    assert record.duration_ms == 250.0
    assert record.query_count == 2
    assert record.memory_mb > 0
    assert len(record.timestamp) == 19


@pytest.mark.asyncio
async def test_hook_installed_at_load(engine) -> None:
    agent = _agent(engine)
    assert agent.hook.is_installed() is True


@pytest.mark.asyncio
async def test_late_install_reports_default_query_count(engine) -> None:
    transport = RecordingTransport()
    agent = _agent(engine, transport, install_on_teardown=True)
    assert agent.hook.is_installed() is False

    lifecycle = agent.begin(_scope())
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    first = await agent.finish(lifecycle)

    # Installed during teardown: too late to count this request
    assert isinstance(first, Delivered)
    assert first.record.query_count == 0
    assert agent.hook.is_installed() is True

    lifecycle = agent.begin(_scope())
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    second = await agent.finish(lifecycle)

    assert second.record.query_count == 1


@pytest.mark.asyncio
async def test_missing_request_context_is_dropped(engine) -> None:
    transport = RecordingTransport()
    agent = _agent(engine, transport)

    lifecycle = agent.begin({"type": "http"})
    result = await agent.finish(lifecycle)

    assert isinstance(result, Dropped)
    assert result.reason.startswith("capture-unavailable")
    assert lifecycle.state == CaptureState.DROPPED
    assert transport.sent == []


@pytest.mark.asyncio
async def test_transport_failure_is_dropped(engine) -> None:
    agent = _agent(engine, RecordingTransport(result=False))

    result = await agent.finish(agent.begin(_scope()))

    assert isinstance(result, Dropped)
    assert result.reason == "transport-failure"
    assert result.record is not None


@pytest.mark.asyncio
async def test_transport_exception_never_escapes(engine) -> None:
    agent = _agent(engine, RecordingTransport(error=RuntimeError("socket gone")))

    result = await agent.finish(agent.begin(_scope()))

    assert isinstance(result, Dropped)
    assert "socket gone" in result.reason


@pytest.mark.asyncio
async def test_middleware_passes_host_errors_through(engine) -> None:
    transport = RecordingTransport()
    middleware = CaptureMiddleware(None, agent=_agent(engine, transport))

    async def failing_app(scope, receive, send):
        raise ValueError("host bug")

    middleware.app = failing_app

    with pytest.raises(ValueError, match="host bug"):
        await middleware(_scope("/explode"), None, None)

    assert [r.uri for r in transport.sent] == ["/explode"]


@pytest.mark.asyncio
async def test_middleware_ignores_non_http_scopes(engine) -> None:
    transport = RecordingTransport()
    calls = []

    async def app(scope, receive, send):
        calls.append(scope["type"])

    middleware = CaptureMiddleware(app, agent=_agent(engine, transport))
    await middleware({"type": "lifespan"}, None, None)

    assert calls == ["lifespan"]
    assert transport.sent == []


def test_middleware_in_fastapi_app(engine) -> None:
    transport = RecordingTransport(result=False)
    agent = _agent(engine, transport)

    app = FastAPI()
    app.add_middleware(CaptureMiddleware, agent=agent)

    @app.get("/items/{item_id}")
    def read_item(item_id: int):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"item_id": item_id}

    client = TestClient(app)
    response = client.get("/items/7")

    # A dropped record is invisible to the client
    assert response.status_code == 200
    assert response.json() == {"item_id": 7}
    assert len(transport.sent) == 1
    assert transport.sent[0].uri == "/items/7"
    assert transport.sent[0].query_count == 1
