"""Formatter registry.

Maps format names to Formatter instances. Lookups never raise; ``resolve``
always yields a usable formatter by falling back to ``string``, then
``json``, then a minimal built-in renderer.
"""

import json
import logging

from perflog.core.formatters import BUILTIN_FORMATTERS, FormatKind, Formatter
from perflog.core.models import Channel, LogEntry

logger = logging.getLogger(__name__)

FALLBACK_ORDER = (FormatKind.STRING, FormatKind.JSON)


class MinimalFormatter(Formatter):
    """Last-resort formatter that depends on nothing but the entry."""

    name = "minimal"

    def render(self, entry: LogEntry) -> str:
        return json.dumps(
            {
                "timestamp": entry.timestamp,
                "level": entry.level.name,
                "message": entry.message,
            }
        )

    def display_name(self) -> str:
        return "Minimal"


class FormatterRegistry:
    """Registry of named formatters.

    Registering an existing name replaces the previous formatter.
    """

    def __init__(self) -> None:
        self._formatters: dict[str, Formatter] = {}
        self._minimal = MinimalFormatter()

    @classmethod
    def with_builtins(cls) -> "FormatterRegistry":
        """Create a registry holding every built-in formatter.

        A built-in that fails to construct is skipped with a warning.
        """
        registry = cls()
        for kind, formatter_cls in BUILTIN_FORMATTERS.items():
            try:
                registry.register(kind.value, formatter_cls())
            except Exception:
                logger.warning("Failed to load formatter %r", kind.value, exc_info=True)
        return registry

    def register(self, name: str, formatter: Formatter) -> None:
        """Store ``formatter`` under ``name``, replacing any previous one."""
        key = name.strip().lower()
        if key in self._formatters:
            logger.debug("Replacing formatter %r", key)
        self._formatters[key] = formatter

    def unregister(self, name: str) -> None:
        """Remove ``name`` if registered."""
        self._formatters.pop(name.strip().lower(), None)

    def get(self, name: str | None) -> Formatter | None:
        """Return the formatter registered as ``name``, or None."""
        if not name:
            return None
        return self._formatters.get(name.strip().lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def names(self) -> list[str]:
        """Registered names in registration order."""
        return list(self._formatters)

    def for_channel(self, channel: Channel) -> dict[str, Formatter]:
        """Formatters that report support for ``channel``."""
        return {
            name: formatter
            for name, formatter in self._formatters.items()
            if formatter.supports_channel(channel)
        }

    def resolve(self, name: str | None) -> Formatter:
        """Return the named formatter or the first available fallback."""
        formatter = self.get(name)
        if formatter is not None:
            return formatter
        logger.debug("Formatter %r not found, falling back", name)
        for fallback in FALLBACK_ORDER:
            formatter = self.get(fallback.value)
            if formatter is not None:
                return formatter
        return self._minimal

    def preview(self, entry: LogEntry, channel: Channel | None = None) -> dict[str, str]:
        """Render ``entry`` with every formatter (or those suiting ``channel``)."""
        formatters = self._formatters if channel is None else self.for_channel(channel)
        return {name: formatter.format(entry) for name, formatter in formatters.items()}
