"""Core domain models for channel logging."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Any

_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "FATAL"}

RECORD_CORE_KEYS = ("timestamp", "level", "channel", "message", "sessionId")


class LogLevel(IntEnum):
    """Severity of a log entry, ordered from least to most severe."""

    TRACE = 0
    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40
    FATAL = 50

    @classmethod
    def parse(
        cls, value: "LogLevel | str | None", default: "LogLevel | None" = None
    ) -> "LogLevel":
        """Parse a level name, falling back to ``default`` (INFO) if invalid.

        Args:
            value: Level member or case-insensitive level name.
            default: Level returned for missing or unknown values.

        Returns:
            The matching LogLevel, or the default.
        """
        fallback = cls.INFO if default is None else default
        if isinstance(value, LogLevel):
            return value
        if not isinstance(value, str):
            return fallback
        name = value.strip().upper()
        name = _LEVEL_ALIASES.get(name, name)
        return cls.__members__.get(name, fallback)

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Return True if ``value`` names a level (aliases included)."""
        name = value.strip().upper()
        return _LEVEL_ALIASES.get(name, name) in cls.__members__


class Channel(StrEnum):
    """The four named logging streams."""

    ACCESS = "access"
    EVENT = "event"
    METRICS = "metrics"
    ERROR = "error"

    @classmethod
    def parse(cls, value: "Channel | str") -> "Channel":
        """Parse a channel name.

        Raises:
            ValueError: If ``value`` is not a channel name.
        """
        if isinstance(value, Channel):
            return value
        return cls(value.strip().lower())


class StatusCategory(StrEnum):
    """Coarse classification of an HTTP status code."""

    SUCCESS = "success"
    REDIRECT = "redirect"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


def utc_timestamp() -> str:
    """Return the current UTC time as ISO-8601 with milliseconds and ``Z``."""
    now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        timestamp: ISO-8601 UTC timestamp, set at creation.
        level: Severity of the entry.
        channel: Logging stream the entry belongs to.
        message: Free-text summary.
        session_id: Optional correlation identifier.
        fields: Additional structured fields (read-only).
    """

    timestamp: str
    level: LogLevel
    channel: Channel
    message: str
    session_id: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def to_record(self) -> dict[str, Any]:
        """Flatten the entry into the record handed to formatters.

        Core keys come first. A field that shares a core key's name is kept
        under ``field.<name>`` instead of replacing the core value.
        """
        record: dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.name,
            "channel": self.channel.value,
            "message": self.message,
        }
        if self.session_id:
            record["sessionId"] = self.session_id
        shadowed = []
        for key, value in self.fields.items():
            if key in RECORD_CORE_KEYS:
                shadowed.append((key, value))
            else:
                record[key] = value
        for key, value in shadowed:
            alias = f"field.{key}"
            while alias in record:
                alias = f"field.{alias}"
            record[alias] = value
        return record


@dataclass
class LoggerConfig:
    """Runtime configuration for one channel.

    Attributes:
        enabled: When False the channel does no work at all.
        level: Minimum severity emitted.
        format: Name of a registered formatter.
        destination: Sink identifier (file name or endpoint path).
        format_options: Options applied to the formatter for this channel.
    """

    enabled: bool = True
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    destination: str = "app.log"
    format_options: dict[str, Any] = field(default_factory=dict)

    def replace(self, **changes: Any) -> "LoggerConfig":
        """Return a copy with ``changes`` applied and the level normalised."""
        if "level" in changes:
            changes["level"] = LogLevel.parse(changes["level"], self.level)
        if "format" in changes and changes["format"]:
            changes["format"] = str(changes["format"]).strip().lower()
        return replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the configuration."""
        return {
            "enabled": self.enabled,
            "level": self.level.name,
            "format": self.format,
            "destination": self.destination,
            "formatOptions": dict(self.format_options),
        }
