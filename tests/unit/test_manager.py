"""Tests for PerformanceManager."""

import json
import logging

import pytest

from perflog.adapters.delivery import LogDelivery
from perflog.adapters.storage.in_memory import InMemorySink
from perflog.adapters.storage.ring_buffer import RingBufferHistory
from perflog.bootstrap import build_manager
from perflog.core.config import PerformanceConfig
from perflog.core.exceptions import ConfigurationError, UnknownChannelError
from perflog.core.manager import PerformanceManager
from perflog.core.models import Channel, LogLevel
from perflog.core.registry import FormatterRegistry

pytestmark = pytest.mark.core


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class HttpError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class TestLogHttpRequest:
    def test_emits_access_counter_and_histogram(self, manager) -> None:
        entry = manager.log_http_request("GET", "/api/products/42", 200, 37.0, 512)

        assert entry.fields["urlPattern"] == "/api/products/:id"
        counter, histogram = manager.metrics.recent()
        assert counter.fields["metricName"] == "http_requests_get_200"
        assert counter.fields["value"] == 1
        assert histogram.fields["metricName"] == "http_request_duration"
        assert histogram.fields["value"] == 37.0
        assert manager.error.recent() == []

    def test_metrics_emitted_even_if_access_disabled(self, manager) -> None:
        manager.enable_logger("access", False)
        assert manager.log_http_request("GET", "/", 200, 1.0) is None
        assert len(manager.metrics.recent()) == 2


class TestLogError:
    def test_client_error_context_logs_warn(self, manager) -> None:
        entry = manager.log_error("Not found", {"status": 404})
        assert entry.level is LogLevel.WARN

    def test_client_error_attribute_logs_warn(self, manager) -> None:
        entry = manager.log_error(HttpError("Bad input", 422))
        assert entry.level is LogLevel.WARN

    def test_other_errors_log_error(self, manager) -> None:
        assert manager.log_error(RuntimeError("boom")).level is LogLevel.ERROR
        assert manager.log_error(HttpError("down", 502)).level is LogLevel.ERROR


class TestTimers:
    @pytest.fixture
    def timed_manager(self, perf_config) -> tuple[PerformanceManager, FakeClock]:
        clock = FakeClock()
        manager = PerformanceManager(
            perf_config,
            FormatterRegistry.with_builtins(),
            LogDelivery(InMemorySink(), threshold=1000),
            history_factory=RingBufferHistory,
            clock=clock,
        )
        return manager, clock

    def test_end_timer_returns_elapsed_ms(self, timed_manager) -> None:
        manager, clock = timed_manager
        timer_id = manager.start_timer("load_menu")
        clock.now += 0.25

        assert manager.end_timer(timer_id, {"items": 3}) == pytest.approx(250.0)
        metric = manager.metrics.recent()[-1]
        assert metric.fields["metricName"] == "load_menu"
        assert metric.fields["tags"] == {"items": "3"}
        assert manager.event.recent()[-1].fields["eventType"] == "performance"

    def test_concurrent_timers_are_independent(self, timed_manager) -> None:
        manager, clock = timed_manager
        first = manager.start_timer("a")
        clock.now += 1
        second = manager.start_timer("a")
        clock.now += 1

        assert first != second
        assert manager.end_timer(second) == pytest.approx(1000.0)
        assert manager.end_timer(first) == pytest.approx(2000.0)

    def test_timer_ids_are_unique(self, manager) -> None:
        ids = {manager.start_timer("same") for _ in range(500)}
        assert len(ids) == 500
        assert all(timer_id.startswith("same_") for timer_id in ids)

    def test_unknown_timer_returns_zero(self, manager, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="perflog.core.manager"):
            assert manager.end_timer("missing") == 0.0
        assert "was not started" in caplog.text

    def test_timed_context_manager_ends_on_error(self, timed_manager) -> None:
        manager, clock = timed_manager
        with pytest.raises(ValueError):
            with manager.timed("work", step="x"):
                clock.now += 0.5
                raise ValueError("fail")
        assert manager.active_timers() == []
        assert manager.metrics.recent()[-1].fields["value"] == pytest.approx(500.0)


class TestRuntimeConfiguration:
    def test_set_log_level(self, manager) -> None:
        manager.set_log_level("event", "error")
        assert manager.levels()["event"] == "ERROR"
        assert manager.log_user_action("click", "#b") is None

    def test_set_log_format(self, manager) -> None:
        manager.set_log_format("access", "clf")
        assert manager.formats()["access"] == "clf"
        assert manager.config.logger_config("access").format == "clf"

    def test_unknown_channel_raises(self, manager) -> None:
        with pytest.raises(UnknownChannelError):
            manager.set_log_level("performance", "INFO")

    def test_invalid_level_and_format_raise(self, manager) -> None:
        with pytest.raises(ConfigurationError):
            manager.set_log_level("event", "loud")
        with pytest.raises(ConfigurationError):
            manager.set_log_format("event", "yaml")

    def test_config_snapshot(self, manager) -> None:
        snapshot = manager.config_snapshot()
        assert set(snapshot) == {c.value for c in Channel}
        assert snapshot["error"]["destination"] == "errors.log"


class TestAnalytics:
    def test_get_analytics_matches_independent_pass(self, manager) -> None:
        manager.log_http_request("GET", "/a", 200, 10.0)
        manager.log_http_request("GET", "/b", 500, 30.0)
        manager.log_error("Database down")

        analytics = manager.get_analytics()
        access = manager.access.recent()
        statuses = [e.fields["status"] for e in access]

        assert analytics.access.total_requests == len(access)
        assert analytics.error_rate == 100 * sum(s >= 400 for s in statuses) / len(statuses)
        assert analytics.average_response_time == 20.0
        assert analytics.total_errors == 1
        assert manager.get_analytics() == analytics

    def test_window_is_bounded(self, sink) -> None:
        config = PerformanceConfig(window_size=3, flush_threshold=1000)
        manager = build_manager(config, sink=sink)
        for i in range(10):
            manager.log_http_request("GET", f"/{i}", 200, float(i))
        assert manager.get_analytics().access.total_requests == 3


class TestDelivery:
    async def test_flush_writes_rendered_lines(self, manager, sink) -> None:
        manager.log_user_action("click", "#order", "u-1")
        await manager.flush()
        line = sink.lines("events.log")[0]
        assert json.loads(line)["userId"] == "u-1"

    async def test_start_and_stop(self, manager, sink) -> None:
        manager.start()
        manager.log_error("Network failure")
        await manager.stop()
        assert len(sink.lines("errors.log")) == 1
