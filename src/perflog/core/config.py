"""Process-wide logging configuration.

One LoggerConfig per channel plus the tunables of the delivery layer and
the analytics window. Configuration errors never propagate: invalid values
are replaced by defaults and reported on the internal diagnostic logger.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from perflog.core.models import Channel, LoggerConfig, LogLevel

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def default_logger_config(channel: Channel) -> LoggerConfig:
    """Return the default configuration for ``channel``."""
    defaults = {
        Channel.ACCESS: LoggerConfig(
            level=LogLevel.INFO, format="clf", destination="access.log"
        ),
        Channel.EVENT: LoggerConfig(
            level=LogLevel.DEBUG, format="json", destination="events.log"
        ),
        Channel.METRICS: LoggerConfig(
            level=LogLevel.INFO, format="json", destination="metrics.log"
        ),
        Channel.ERROR: LoggerConfig(
            level=LogLevel.WARN, format="json", destination="errors.log"
        ),
    }
    return defaults[channel]


def _default_loggers() -> dict[Channel, LoggerConfig]:
    return {channel: default_logger_config(channel) for channel in Channel}


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    logger.warning("Invalid boolean %r in logging config, using %s", value, default)
    return default


def _parse_int(value: Any, default: int, minimum: int = 1) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer %r in logging config, using %d", value, default)
        return default
    return number if number >= minimum else default


def _parse_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid number %r in logging config, using %s", value, default)
        return default
    return number if number > 0 else default


@dataclass
class PerformanceConfig:
    """Configuration for a PerformanceManager and its delivery layer.

    Attributes:
        loggers: Per-channel logger configuration.
        session_id: Optional caller-supplied correlation id.
        window_size: Entries retained per channel for analytics.
        flush_threshold: Pending lines per destination that trigger a flush.
        flush_interval: Seconds between background flushes.
        max_pending: Upper bound of pending lines per destination.
        slow_request_ms: Duration above which a request is flagged slow.
        console: Mirror rendered lines to the ``perflog.<channel>`` loggers.
    """

    loggers: dict[Channel, LoggerConfig] = field(default_factory=_default_loggers)
    session_id: str | None = None
    window_size: int = 100
    flush_threshold: int = 10
    flush_interval: float = 1.0
    max_pending: int = 10_000
    slow_request_ms: float = 1000.0
    console: bool = False

    def logger_config(self, channel: Channel | str) -> LoggerConfig:
        """Return the configuration of ``channel``."""
        return self.loggers[Channel.parse(channel)]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PerformanceConfig":
        """Build a configuration from a plain mapping.

        The mapping may contain a ``loggers`` mapping of
        ``channel -> {enabled, level, format, destination, formatOptions}``
        and the scalar tunables of this class. Unknown channels are ignored.
        """
        config = cls()
        for name, overrides in (data.get("loggers") or {}).items():
            try:
                channel = Channel.parse(name)
            except ValueError:
                logger.warning("Ignoring configuration for unknown channel %r", name)
                continue
            config.loggers[channel] = _apply_overrides(
                config.loggers[channel], overrides
            )
        config.session_id = data.get("session_id", data.get("sessionId"))
        if "window_size" in data:
            config.window_size = _parse_int(data["window_size"], config.window_size)
        if "flush_threshold" in data:
            config.flush_threshold = _parse_int(
                data["flush_threshold"], config.flush_threshold
            )
        if "flush_interval" in data:
            config.flush_interval = _parse_float(
                data["flush_interval"], config.flush_interval
            )
        if "max_pending" in data:
            config.max_pending = _parse_int(data["max_pending"], config.max_pending)
        if "slow_request_ms" in data:
            config.slow_request_ms = _parse_float(
                data["slow_request_ms"], config.slow_request_ms
            )
        if "console" in data:
            config.console = _parse_bool(data["console"], config.console)
        return config

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = "PERFLOG_"
    ) -> "PerformanceConfig":
        """Build a configuration from environment variables.

        Recognised names: ``<prefix><CHANNEL>_ENABLED``, ``_LEVEL``,
        ``_FORMAT``, ``_DESTINATION`` and ``<prefix>WINDOW_SIZE``,
        ``FLUSH_THRESHOLD``, ``FLUSH_INTERVAL``, ``SLOW_REQUEST_MS``,
        ``CONSOLE``, ``SESSION_ID``.
        """
        env = os.environ if environ is None else environ
        loggers: dict[str, dict[str, str]] = {}
        for channel in Channel:
            overrides = {}
            for key in ("enabled", "level", "format", "destination"):
                value = env.get(f"{prefix}{channel.name}_{key.upper()}")
                if value is not None:
                    overrides[key] = value
            if overrides:
                loggers[channel.value] = overrides
        data: dict[str, Any] = {"loggers": loggers}
        for key in (
            "window_size",
            "flush_threshold",
            "flush_interval",
            "slow_request_ms",
            "console",
            "session_id",
        ):
            value = env.get(f"{prefix}{key.upper()}")
            if value is not None:
                data[key] = value
        return cls.from_mapping(data)


def _apply_overrides(base: LoggerConfig, overrides: Mapping[str, Any]) -> LoggerConfig:
    changes: dict[str, Any] = {}
    if "enabled" in overrides:
        changes["enabled"] = _parse_bool(overrides["enabled"], base.enabled)
    if "level" in overrides:
        level = overrides["level"]
        if isinstance(level, LogLevel) or LogLevel.is_valid(str(level)):
            changes["level"] = level
        else:
            logger.warning("Invalid log level %r, using INFO", level)
            changes["level"] = LogLevel.INFO
    if overrides.get("format"):
        changes["format"] = overrides["format"]
    if overrides.get("destination"):
        changes["destination"] = str(overrides["destination"])
    options = overrides.get("format_options", overrides.get("formatOptions"))
    if isinstance(options, Mapping):
        changes["format_options"] = dict(options)
    return base.replace(**changes)
