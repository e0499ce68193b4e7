"""Performance manager.

Single entry point owning one logger per channel. It is constructed
explicitly by the application and passed to whatever needs it
(middleware, routers, handlers).
"""

import logging
import random
import string
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from perflog.core.analytics import Analytics, compute_analytics
from perflog.core.config import PerformanceConfig
from perflog.core.exceptions import ConfigurationError, UnknownChannelError
from perflog.core.loggers import (
    CHANNEL_LOGGERS,
    AccessLogger,
    ChannelLogger,
    ErrorLogger,
    EventLogger,
    MetricsLogger,
)
from perflog.core.models import Channel, LogEntry, LoggerConfig, LogLevel
from perflog.core.ports import DeliveryPort, HistoryPort
from perflog.core.registry import FormatterRegistry

logger = logging.getLogger(__name__)

HistoryFactory = Callable[[int], HistoryPort]

_TIMER_ALPHABET = string.digits + string.ascii_lowercase


def _client_error_status(error: BaseException | str, context: Mapping[str, Any]) -> bool:
    status = context.get("status")
    if status is None:
        status = getattr(error, "status_code", getattr(error, "status", None))
    return isinstance(status, int) and 400 <= status < 500


class PerformanceManager:
    """Owns the channel loggers and exposes semantic logging helpers.

    Args:
        config: Channel configuration and tunables.
        registry: Formatter registry shared by every channel.
        delivery: Buffered delivery layer receiving rendered lines.
        history_factory: Builds the rolling window of a channel from
            ``config.window_size``. Without it, analytics see no entries.
        rng: Random source for timer ids.
        clock: Monotonic clock in seconds used by timers.
    """

    def __init__(
        self,
        config: PerformanceConfig,
        registry: FormatterRegistry,
        delivery: DeliveryPort,
        history_factory: HistoryFactory | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config
        self.registry = registry
        self.delivery = delivery
        self._rng = rng or random.Random()
        self._clock = clock
        self._timers: dict[str, tuple[str, float]] = {}
        self._loggers: dict[Channel, ChannelLogger] = {}
        for channel, logger_cls in CHANNEL_LOGGERS.items():
            kwargs: dict[str, Any] = {}
            if logger_cls is AccessLogger:
                kwargs["slow_request_ms"] = config.slow_request_ms
            self._loggers[channel] = logger_cls(
                config.logger_config(channel),
                registry,
                delivery,
                history=history_factory(config.window_size) if history_factory else None,
                session_id=config.session_id,
                console=config.console,
                **kwargs,
            )

    @classmethod
    def from_config(
        cls,
        config: PerformanceConfig,
        delivery: DeliveryPort,
        registry: FormatterRegistry | None = None,
        history_factory: HistoryFactory | None = None,
    ) -> "PerformanceManager":
        """Build a manager using the built-in formatters unless given a registry."""
        return cls(
            config,
            registry or FormatterRegistry.with_builtins(),
            delivery,
            history_factory=history_factory,
        )

    # Channel access

    def logger(self, channel: Channel | str) -> ChannelLogger:
        """Return the logger of ``channel``.

        Raises:
            UnknownChannelError: If ``channel`` names no channel.
        """
        try:
            return self._loggers[Channel.parse(channel)]
        except ValueError:
            raise UnknownChannelError(str(channel)) from None

    @property
    def access(self) -> AccessLogger:
        return self._loggers[Channel.ACCESS]  # type: ignore[return-value]

    @property
    def event(self) -> EventLogger:
        return self._loggers[Channel.EVENT]  # type: ignore[return-value]

    @property
    def metrics(self) -> MetricsLogger:
        return self._loggers[Channel.METRICS]  # type: ignore[return-value]

    @property
    def error(self) -> ErrorLogger:
        return self._loggers[Channel.ERROR]  # type: ignore[return-value]

    @property
    def session_id(self) -> str | None:
        return self.config.session_id

    # Semantic helpers

    def log_http_request(
        self,
        method: str,
        url: str,
        status: int,
        duration_ms: float,
        size_bytes: int | None = None,
        **extra: Any,
    ) -> LogEntry | None:
        """Record one HTTP request on the access and metrics channels.

        Emits the access entry, a ``http_requests_<method>_<status>``
        counter and a ``http_request_duration`` histogram sample.

        Returns:
            The access entry, or None if the access channel filtered it.
        """
        entry = self.access.log_request(
            method, url, status, duration_ms, size=size_bytes, **extra
        )
        method_name = method.lower()
        self.metrics.log_counter(
            f"http_requests_{method_name}_{status}",
            1,
            {"method": method.upper(), "status": status},
        )
        self.metrics.log_histogram(
            "http_request_duration",
            duration_ms,
            tags={"method": method.upper(), "status": status},
        )
        return entry

    def log_user_action(
        self,
        action: str,
        element: str,
        user_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.event.log_user_action(action, element, user_id, details)

    def log_business_event(
        self,
        event_type: str,
        action: str,
        user_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.event.log_business_event(event_type, action, user_id, details)

    def log_performance_event(
        self,
        name: str,
        duration_ms: float,
        component: str = "application",
        metadata: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.event.log_performance_event(name, duration_ms, component, metadata)

    def log_error(
        self,
        error: BaseException | str,
        context: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        """Record ``error``; WARN for client-side (4xx) causes, ERROR otherwise."""
        context = dict(context or {})
        level = LogLevel.WARN if _client_error_status(error, context) else LogLevel.ERROR
        return self.error.log_exception(error, context, level=level)

    # Timers

    def start_timer(self, name: str) -> str:
        """Start a named timer and return its opaque id."""
        suffix = "".join(self._rng.choices(_TIMER_ALPHABET, k=6))
        timer_id = f"{name}_{int(time.time() * 1000)}_{suffix}"
        while timer_id in self._timers:
            timer_id += self._rng.choice(_TIMER_ALPHABET)
        self._timers[timer_id] = (name, self._clock())
        return timer_id

    def end_timer(
        self, timer_id: str, metadata: Mapping[str, Any] | None = None
    ) -> float:
        """Stop a timer and log its duration.

        Returns:
            Elapsed milliseconds, or 0.0 for an unknown or already ended id.
        """
        started = self._timers.pop(timer_id, None)
        if started is None:
            logger.warning("Timer %r was not started or already ended", timer_id)
            return 0.0
        name, start = started
        duration_ms = (self._clock() - start) * 1000
        self.metrics.log_timer(name, duration_ms, metadata)
        self.event.log_performance_event(name, duration_ms, "timer", metadata)
        return duration_ms

    @contextmanager
    def timed(self, name: str, **metadata: Any) -> Iterator[str]:
        """Time the enclosed block, ending the timer even when it raises."""
        timer_id = self.start_timer(name)
        try:
            yield timer_id
        finally:
            self.end_timer(timer_id, metadata)

    def active_timers(self) -> list[str]:
        return list(self._timers)

    # Analytics

    def get_analytics(self) -> Analytics:
        """Aggregate the current rolling windows of every channel."""
        windows = {channel: log.recent() for channel, log in self._loggers.items()}
        return compute_analytics(windows, self.config.slow_request_ms)

    def recent(self, channel: Channel | str) -> list[LogEntry]:
        return self.logger(channel).recent()

    def clear_history(self) -> None:
        for channel_logger in self._loggers.values():
            channel_logger.clear_history()

    # Runtime configuration

    def get_logger_config(self, channel: Channel | str) -> LoggerConfig:
        return self.logger(channel).config

    def update_logger_config(self, channel: Channel | str, **changes: Any) -> LoggerConfig:
        """Change the configuration of ``channel`` at runtime.

        Raises:
            UnknownChannelError: If ``channel`` names no channel.
            ConfigurationError: If a level or format is not recognised.
        """
        channel_logger = self.logger(channel)
        level = changes.get("level")
        if level is not None and not isinstance(level, LogLevel):
            if not LogLevel.is_valid(str(level)):
                raise ConfigurationError(f"Unknown log level: {level!r}")
        fmt = changes.get("format")
        if fmt is not None and fmt not in self.registry:
            raise ConfigurationError(f"Unknown log format: {fmt!r}")
        channel_logger.update_config(**changes)
        self.config.loggers[channel_logger.channel] = channel_logger.config
        logger.info(
            "Updated %s logger configuration: %s",
            channel_logger.channel.value,
            channel_logger.config.as_dict(),
        )
        return channel_logger.config

    def set_log_level(self, channel: Channel | str, level: LogLevel | str) -> LoggerConfig:
        return self.update_logger_config(channel, level=level)

    def set_log_format(self, channel: Channel | str, format_name: str) -> LoggerConfig:
        return self.update_logger_config(channel, format=format_name)

    def enable_logger(self, channel: Channel | str, enabled: bool = True) -> LoggerConfig:
        return self.update_logger_config(channel, enabled=enabled)

    def levels(self) -> dict[str, str]:
        return {ch.value: log.config.level.name for ch, log in self._loggers.items()}

    def formats(self) -> dict[str, str]:
        return {ch.value: log.config.format for ch, log in self._loggers.items()}

    def config_snapshot(self) -> dict[str, dict[str, Any]]:
        return {ch.value: log.config.as_dict() for ch, log in self._loggers.items()}

    # Delivery lifecycle

    async def flush(self) -> None:
        await self.delivery.flush()

    def start(self) -> None:
        self.delivery.start()

    async def stop(self) -> None:
        await self.delivery.stop()
