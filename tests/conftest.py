"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from perflog.adapters.delivery import LogDelivery
from perflog.adapters.storage.in_memory import InMemorySink
from perflog.bootstrap import build_manager
from perflog.core.config import PerformanceConfig
from perflog.core.manager import PerformanceManager
from perflog.core.models import Channel, LogEntry, LogLevel
from perflog.core.registry import FormatterRegistry

FIXED_TIMESTAMP = "2024-01-01T00:00:00.000Z"


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    """Factory fixture for LogEntry values with a fixed timestamp."""

    def _entry(
        message: str = "test message",
        level: LogLevel = LogLevel.INFO,
        channel: Channel = Channel.EVENT,
        session_id: str | None = None,
        timestamp: str = FIXED_TIMESTAMP,
        **fields: Any,
    ) -> LogEntry:
        return LogEntry(
            timestamp=timestamp,
            level=level,
            channel=channel,
            message=message,
            session_id=session_id,
            fields=fields,
        )

    return _entry


@pytest.fixture
def registry() -> FormatterRegistry:
    """Registry holding every built-in formatter."""
    return FormatterRegistry.with_builtins()


@pytest.fixture
def sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture
def delivery(sink: InMemorySink) -> LogDelivery:
    """Delivery layer with a threshold high enough to never auto-flush."""
    return LogDelivery(sink, threshold=10_000)


@pytest.fixture
def perf_config() -> PerformanceConfig:
    """Default configuration with every channel at TRACE and JSON output."""
    config = PerformanceConfig(flush_threshold=10_000)
    for channel in Channel:
        config.loggers[channel] = config.loggers[channel].replace(
            level="TRACE", format="json"
        )
    return config


@pytest.fixture
def manager(perf_config: PerformanceConfig, sink: InMemorySink) -> PerformanceManager:
    """Manager writing to an in-memory sink with rolling windows attached."""
    return build_manager(perf_config, sink=sink)


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from perflog.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from perflog.adapters.frameworks.asgi import Scope

    def _scope(
        method: str = "GET",
        path: str = "/test",
        query_string: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": [
                (name.lower().encode(), value.encode())
                for name, value in (headers or {}).items()
            ],
            "client": ("10.0.0.1", 5000),
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_receive():
    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    return receive


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app, raise_app_exceptions: bool = True):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(
                app=app, raise_app_exceptions=raise_app_exceptions
            ),
            base_url="http://test",
        )

    return _get_client


class StepClock:
    """Clock returning queued readings, repeating the last one."""

    def __init__(self, *readings: float) -> None:
        self._readings = list(readings)

    def __call__(self) -> float:
        if len(self._readings) > 1:
            return self._readings.pop(0)
        return self._readings[0]


@pytest.fixture
def step_clock() -> type[StepClock]:
    return StepClock
