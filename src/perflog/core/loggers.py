"""Channel loggers.

A ChannelLogger gates on its configuration, builds an immutable LogEntry,
renders it with the configured formatter and hands the line to the
delivery layer. Subclasses add channel-specific enrichment and helpers.
"""

import hashlib
import logging
import traceback
from collections.abc import Mapping
from typing import Any

from perflog.core import metrics
from perflog.core.formatters import Formatter
from perflog.core.http import categorize_status, extract_url_pattern
from perflog.core.models import Channel, LogEntry, LoggerConfig, LogLevel, utc_timestamp
from perflog.core.ports import DeliveryPort, HistoryPort
from perflog.core.registry import FormatterRegistry

logger = logging.getLogger(__name__)

_STDLIB_LEVELS = {
    LogLevel.TRACE: 5,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}


class ChannelLogger:
    """Logger bound to a single channel."""

    channel: Channel = Channel.EVENT

    def __init__(
        self,
        config: LoggerConfig,
        registry: FormatterRegistry,
        delivery: DeliveryPort,
        history: HistoryPort | None = None,
        session_id: str | None = None,
        console: bool = False,
    ) -> None:
        self._config = config
        self._registry = registry
        self._delivery = delivery
        self._history = history
        self.session_id = session_id
        self.console = console
        self._mirror = logging.getLogger(f"perflog.{self.channel.value}")
        self._configured: tuple[Formatter, dict[str, Any], Formatter] | None = None
        self._sync_mirror_level()

    @property
    def config(self) -> LoggerConfig:
        return self._config

    def is_enabled_for(self, level: LogLevel) -> bool:
        return self._config.enabled and level >= self._config.level

    def log(
        self,
        level: LogLevel | str,
        message: str,
        fields: Mapping[str, Any] | None = None,
        **extra: Any,
    ) -> LogEntry | None:
        """Render and enqueue one entry.

        Returns:
            The entry, or None when filtered out by the enabled flag or level.
        """
        config = self._config
        if not config.enabled:
            return None
        level = LogLevel.parse(level)
        if level < config.level:
            return None
        try:
            data = self.enrich(level, message, {**(fields or {}), **extra})
            entry = LogEntry(
                timestamp=utc_timestamp(),
                level=level,
                channel=self.channel,
                message=message,
                session_id=self.session_id,
                fields=data,
            )
            line = self.formatter().format(entry)
        except Exception:
            logger.exception("Dropping %s entry %r", self.channel.value, message)
            return None
        if self._history is not None:
            self._history.write(entry)
        self._delivery.enqueue(line, config.destination)
        if self.console:
            self._mirror.log(_STDLIB_LEVELS[level], line)
        return entry

    def enrich(
        self, level: LogLevel, message: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Add channel-specific fields; the base channel adds nothing."""
        return fields

    def formatter(self) -> Formatter:
        """Resolve the formatter for the current configuration."""
        formatter = self._registry.resolve(self._config.format)
        options = self._config.format_options
        if not options:
            return formatter
        cached = self._configured
        if cached is not None and cached[0] is formatter and cached[1] == options:
            return cached[2]
        configured = formatter.with_options(**options)
        self._configured = (formatter, dict(options), configured)
        return configured

    def update_level(self, level: LogLevel | str) -> None:
        self.update_config(level=level)

    def update_format(self, format_name: str) -> None:
        if format_name not in self._registry:
            logger.warning(
                "Unknown format %r for %s channel, output will fall back",
                format_name,
                self.channel.value,
            )
        self.update_config(format=format_name)

    def update_config(self, **changes: Any) -> None:
        """Apply configuration changes; they take effect on the next call."""
        self._config = self._config.replace(**changes)
        self._sync_mirror_level()

    def recent(self) -> list[LogEntry]:
        """Entries retained in this channel's rolling window."""
        return self._history.read() if self._history is not None else []

    def clear_history(self) -> None:
        if self._history is not None:
            self._history.clear()

    def _sync_mirror_level(self) -> None:
        self._mirror.setLevel(_STDLIB_LEVELS[self._config.level])

    def trace(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.TRACE, message, fields, **extra)

    def debug(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.DEBUG, message, fields, **extra)

    def info(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.INFO, message, fields, **extra)

    def warn(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.WARN, message, fields, **extra)

    def error(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.ERROR, message, fields, **extra)

    def fatal(self, message: str, fields: Mapping[str, Any] | None = None, **extra: Any) -> LogEntry | None:
        return self.log(LogLevel.FATAL, message, fields, **extra)


class AccessLogger(ChannelLogger):
    """Access channel: one entry per HTTP request."""

    channel = Channel.ACCESS

    def __init__(self, *args: Any, slow_request_ms: float = 1000.0, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.slow_request_ms = slow_request_ms

    def enrich(
        self, level: LogLevel, message: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        if "url" in fields and "urlPattern" not in fields:
            fields["urlPattern"] = extract_url_pattern(str(fields["url"]))
        status = fields.get("status")
        if isinstance(status, int) and "statusCategory" not in fields:
            fields["statusCategory"] = categorize_status(status).value
        duration = fields.get("duration")
        if isinstance(duration, (int, float)) and duration > self.slow_request_ms:
            fields["slowRequest"] = True
        return fields

    def log_request(
        self,
        method: str,
        url: str,
        status: int,
        duration_ms: float,
        size: int | None = None,
        **extra: Any,
    ) -> LogEntry | None:
        fields: dict[str, Any] = {
            "method": method.upper(),
            "url": url,
            "status": status,
            "duration": duration_ms,
        }
        if size is not None:
            fields["size"] = size
        return self.info("HTTP request processed", fields, **extra)


class EventLogger(ChannelLogger):
    """Event channel: user actions, business and performance events."""

    channel = Channel.EVENT

    def log_user_action(
        self,
        action: str,
        element: str,
        user_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.info(
            "User action",
            eventType="user_action",
            action=action,
            element=element,
            userId=user_id or "anonymous",
            details=dict(details or {}),
        )

    def log_business_event(
        self,
        event_type: str,
        action: str,
        user_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.info(
            "Business event occurred",
            eventType=event_type,
            action=action,
            component="business_logic",
            userId=user_id or "anonymous",
            details=dict(details or {}),
        )

    def log_performance_event(
        self,
        name: str,
        duration_ms: float,
        component: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.info(
            "Performance timing",
            eventType="performance",
            action=name,
            component=component,
            duration=duration_ms,
            details=dict(metadata or {}),
        )


class MetricsLogger(ChannelLogger):
    """Metrics channel: counters, gauges, histograms and timers."""

    channel = Channel.METRICS

    def log_counter(
        self, name: str, value: float = 1, tags: Mapping[str, Any] | None = None
    ) -> LogEntry | None:
        return self.info("Counter metric", metrics.counter(name, value, dict(tags or {})))

    def log_gauge(
        self,
        name: str,
        value: float,
        unit: str = "units",
        tags: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.info("Gauge metric", metrics.gauge(name, value, unit, dict(tags or {})))

    def log_histogram(
        self,
        name: str,
        value: float,
        unit: str = "milliseconds",
        tags: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self.info(
            "Histogram metric", metrics.histogram(name, value, unit, dict(tags or {}))
        )

    def log_timer(
        self, name: str, duration_ms: float, tags: Mapping[str, Any] | None = None
    ) -> LogEntry | None:
        return self.info("Timer metric", metrics.timer(name, duration_ms, dict(tags or {})))


_ERROR_KEYWORDS = (
    ("network_error", ("network", "fetch", "connection")),
    ("permission_error", ("permission", "unauthorized", "forbidden")),
    ("not_found_error", ("not found", "404")),
    ("timeout_error", ("timeout", "timed out", "abort")),
    ("parse_error", ("parse", "json", "syntax", "decode")),
    ("validation_error", ("validation", "invalid")),
    ("database_error", ("database", "sql")),
    ("resource_error", ("memory", "out of")),
)


def classify_error(message: str) -> str:
    """Guess an error type from the words of ``message``."""
    lowered = message.lower()
    for error_type, keywords in _ERROR_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return error_type
    return "generic_error"


def infer_severity(level: LogLevel, message: str) -> str:
    if level >= LogLevel.FATAL:
        return "critical"
    if level >= LogLevel.ERROR:
        lowered = message.lower()
        if any(word in lowered for word in ("critical", "fatal", "crash")):
            return "critical"
        if any(word in lowered for word in ("security", "unauthorized", "breach")):
            return "high"
        return "medium"
    return "low"


class ErrorLogger(ChannelLogger):
    """Error channel: classified, fingerprinted error entries."""

    channel = Channel.ERROR

    def enrich(
        self, level: LogLevel, message: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        fields.setdefault("errorType", classify_error(message))
        fields.setdefault("errorCode", "UNKNOWN")
        fields.setdefault("severity", infer_severity(level, message))
        digest = hashlib.sha1(
            f"{fields['errorType']}|{fields['errorCode']}|{message}".encode()
        )
        fields.setdefault("fingerprint", digest.hexdigest()[:12])
        return fields

    def log_exception(
        self,
        error: BaseException | str,
        context: Mapping[str, Any] | None = None,
        level: LogLevel = LogLevel.ERROR,
    ) -> LogEntry | None:
        fields: dict[str, Any] = dict(context or {})
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            fields.setdefault("errorName", type(error).__name__)
            if error.__traceback__ is not None:
                fields.setdefault(
                    "stack", "".join(traceback.format_exception(error)).rstrip()
                )
        else:
            message = error
        return self.log(level, message, fields)

    def log_http_error(
        self,
        status: int,
        method: str,
        url: str,
        response_body: str | None = None,
        **extra: Any,
    ) -> LogEntry | None:
        server_error = status >= 500
        return self.log(
            LogLevel.ERROR if server_error else LogLevel.WARN,
            "HTTP error response",
            {
                "method": method.upper(),
                "url": url,
                "status": status,
                "errorType": "server_error" if server_error else "client_error",
                "errorCode": f"HTTP_{status}",
                "severity": "high" if server_error else "medium",
                "responseBody": response_body or "No response body captured",
            },
            **extra,
        )


CHANNEL_LOGGERS: dict[Channel, type[ChannelLogger]] = {
    Channel.ACCESS: AccessLogger,
    Channel.EVENT: EventLogger,
    Channel.METRICS: MetricsLogger,
    Channel.ERROR: ErrorLogger,
}
