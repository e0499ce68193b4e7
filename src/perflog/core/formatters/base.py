"""Formatter base class and shared rendering helpers."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from perflog.core.models import Channel, LogEntry, utc_timestamp

logger = logging.getLogger(__name__)

FORMAT_FAILURE = "format failure"


class FormatKind(StrEnum):
    """Built-in formatter kinds."""

    JSON = "json"
    CLF = "clf"
    STRING = "string"
    CSV = "csv"
    XML = "xml"
    CUSTOM = "custom"


def failure_line(entry: LogEntry | None = None) -> str:
    """Render the degraded output emitted when a formatter fails."""
    timestamp = entry.timestamp if entry is not None else utc_timestamp()
    return json.dumps({"error": FORMAT_FAILURE, "timestamp": timestamp})


def parse_timestamp(timestamp: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into UTC."""
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def lookup(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted ``path`` inside nested mappings, or None."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


class Formatter(ABC):
    """Renders a LogEntry into a single string.

    Formatters are pure: no state is mutated by ``format`` and identical
    entries render identically. Options are fixed at construction;
    ``with_options`` returns a configured copy.
    """

    name: str = ""
    default_options: Mapping[str, Any] = {}

    def __init__(self, **options: Any) -> None:
        self._options = {**self.default_options, **options}

    @property
    def options(self) -> dict[str, Any]:
        """Effective options of this formatter."""
        return dict(self._options)

    def with_options(self, **options: Any) -> Self:
        """Return a copy of this formatter with ``options`` merged in."""
        return type(self)(**{**self._options, **options})

    def format(self, entry: LogEntry) -> str:
        """Render ``entry``; never raises."""
        try:
            return self.render(entry)
        except Exception:
            logger.warning("Formatter %r failed to render entry", self.name, exc_info=True)
            return failure_line(entry)

    @abstractmethod
    def render(self, entry: LogEntry) -> str:
        """Render ``entry``; may raise, ``format`` degrades the output."""

    @abstractmethod
    def display_name(self) -> str:
        """Human readable formatter name."""

    def file_extension(self) -> str:
        """Conventional file extension for files in this format."""
        return ".log"

    def supports_channel(self, channel: Channel) -> bool:
        """Return True if this formatter suits ``channel``."""
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._options!r})"
