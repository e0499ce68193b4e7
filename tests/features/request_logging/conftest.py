"""Step definitions for request logging scenarios."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from perflog.adapters.frameworks.asgi import RequestLoggingMiddleware
from perflog.adapters.storage.in_memory import InMemorySink
from perflog.bootstrap import build_manager
from perflog.core.config import PerformanceConfig
from perflog.core.manager import PerformanceManager
from perflog.core.models import Channel, LogEntry


@dataclass
class RequestScenarioContext:
    """Shared state between steps in a request logging scenario."""

    sink: InMemorySink = field(default_factory=InMemorySink)
    manager: PerformanceManager | None = None
    app: Any = None
    clock: Any = None
    exclude_paths: list[str] = field(default_factory=list)
    responses: list[dict[str, Any]] = field(default_factory=list)


class AdvancingClock:
    """Clock moving forward a fixed step on every second reading."""

    def __init__(self, step_ms: float) -> None:
        self.step = step_ms / 1000
        self.now = 10.0
        self.calls = 0

    def __call__(self) -> float:
        self.calls += 1
        if self.calls % 2 == 0:
            return self.now + self.step
        return self.now


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


def _entries(ctx: RequestScenarioContext, channel: Channel) -> list[LogEntry]:
    assert ctx.manager is not None
    return ctx.manager.recent(channel)


@pytest.fixture
def ctx() -> RequestScenarioContext:
    """Fresh scenario context for each test."""
    return RequestScenarioContext()


# === Background Steps ===


@given("an in-memory log sink")
def step_sink(ctx: RequestScenarioContext) -> None:
    ctx.sink = InMemorySink()


@given("a performance manager writing JSON on every channel")
def step_manager(ctx: RequestScenarioContext) -> None:
    config = PerformanceConfig(flush_threshold=10_000)
    for channel in Channel:
        config.loggers[channel] = config.loggers[channel].replace(
            level="TRACE", format="json"
        )
    ctx.manager = build_manager(config, sink=ctx.sink)


# === Application Steps ===


@given(parsers.parse("an ASGI app answering with status {status:d}"))
def step_app(ctx: RequestScenarioContext, status: int) -> None:
    async def app(scope, receive, send) -> None:
        await send({"type": "http.response.start", "status": status, "headers": []})
        await send({"type": "http.response.body", "body": b'{"ok": true}'})

    ctx.app = app


@given(parsers.parse("a clock advancing {step:d} milliseconds per request"))
def step_clock(ctx: RequestScenarioContext, step: int) -> None:
    ctx.clock = AdvancingClock(step)


@given(parsers.parse('the middleware excludes "{path}"'))
def step_exclude(ctx: RequestScenarioContext, path: str) -> None:
    ctx.exclude_paths.append(path)


# === Request Steps ===


@when(parsers.parse('a {method} request is made to "{path}"'))
def step_request(ctx: RequestScenarioContext, method: str, path: str) -> None:
    kwargs: dict[str, Any] = {"exclude_paths": ctx.exclude_paths}
    if ctx.clock is not None:
        kwargs["clock"] = ctx.clock
    middleware = RequestLoggingMiddleware(ctx.app, ctx.manager, **kwargs)
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 5000),
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: dict[str, Any]) -> None:
        ctx.responses.append(message)

    run_async(middleware(scope, receive, send))


@when("the manager is flushed")
def step_flush(ctx: RequestScenarioContext) -> None:
    assert ctx.manager is not None
    run_async(ctx.manager.flush())


# === Access Channel Assertions ===


@then(parsers.re(r"(?P<count>\d+) access entr(y|ies) (is|are) recorded"))
def step_access_count(ctx: RequestScenarioContext, count: str) -> None:
    assert len(_entries(ctx, Channel.ACCESS)) == int(count)


@then(parsers.parse('the access entry has url pattern "{pattern}"'))
def step_access_pattern(ctx: RequestScenarioContext, pattern: str) -> None:
    assert _entries(ctx, Channel.ACCESS)[0].fields["urlPattern"] == pattern


@then(parsers.parse("the access entry has duration {duration:f}"))
def step_access_duration(ctx: RequestScenarioContext, duration: float) -> None:
    assert _entries(ctx, Channel.ACCESS)[0].fields["duration"] == duration


@then(parsers.parse("the access entry has status {status:d}"))
def step_access_status(ctx: RequestScenarioContext, status: int) -> None:
    assert _entries(ctx, Channel.ACCESS)[0].fields["status"] == status


# === Metrics Assertions ===


@then(parsers.parse('a counter "{name}" with value {value:d} is recorded'))
def step_counter(ctx: RequestScenarioContext, name: str, value: int) -> None:
    samples = [
        e.fields
        for e in _entries(ctx, Channel.METRICS)
        if e.fields["metricName"] == name and e.fields["metricType"] == "counter"
    ]
    assert [s["value"] for s in samples] == [value]


@then(parsers.parse('a histogram "{name}" with value {value:f} is recorded'))
def step_histogram(ctx: RequestScenarioContext, name: str, value: float) -> None:
    samples = [
        e.fields
        for e in _entries(ctx, Channel.METRICS)
        if e.fields["metricName"] == name and e.fields["metricType"] == "histogram"
    ]
    assert [s["value"] for s in samples] == [value]


# === Error Channel Assertions ===


@then(parsers.re(r"(?P<count>\d+) error entr(y|ies) (is|are) recorded"))
def step_error_count(ctx: RequestScenarioContext, count: str) -> None:
    assert len(_entries(ctx, Channel.ERROR)) == int(count)


@then(parsers.parse('the error entry has level "{level}"'))
def step_error_level(ctx: RequestScenarioContext, level: str) -> None:
    assert _entries(ctx, Channel.ERROR)[0].level.name == level


@then(parsers.parse('the error entry has error code "{code}"'))
def step_error_code(ctx: RequestScenarioContext, code: str) -> None:
    assert _entries(ctx, Channel.ERROR)[0].fields["errorCode"] == code


@then(parsers.parse('the error entry has severity "{severity}"'))
def step_error_severity(ctx: RequestScenarioContext, severity: str) -> None:
    assert _entries(ctx, Channel.ERROR)[0].fields["severity"] == severity


# === Sink Assertions ===


@then(parsers.parse('the sink holds {count:d} line for "{destination}"'))
@then(parsers.parse('the sink holds {count:d} lines for "{destination}"'))
def step_sink_lines(ctx: RequestScenarioContext, count: int, destination: str) -> None:
    assert len(ctx.sink.lines(destination)) == count
