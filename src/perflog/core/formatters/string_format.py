"""Human readable single-line formatter."""

from perflog.core.formatters.base import FormatKind, Formatter
from perflog.core.models import LogEntry

SEPARATOR = " - "


def _first(fields, *keys):
    for key in keys:
        value = fields.get(key)
        if value not in (None, ""):
            return value
    return None


class StringFormatter(Formatter):
    """Renders ``timestamp - event - path - duration - session``.

    Empty parts are omitted.

    Options:
        include_level: Insert the level after the timestamp.
        max_length: Truncate lines longer than this (0 disables).
    """

    name = FormatKind.STRING
    default_options = {"include_level": False, "max_length": 0}

    def render(self, entry: LogEntry) -> str:
        fields = entry.fields
        event = _first(fields, "event", "eventType", "action") or entry.message
        path = _first(fields, "path", "url")
        duration = _first(fields, "duration")
        parts = [entry.timestamp]
        if self._options["include_level"]:
            parts.append(entry.level.name)
        parts.extend(
            [
                event,
                path,
                f"{duration}ms" if duration is not None else None,
                entry.session_id,
            ]
        )
        line = SEPARATOR.join(str(part) for part in parts if part not in (None, ""))
        max_length = self._options["max_length"]
        if max_length and len(line) > max_length:
            line = line[: max(max_length - 3, 0)] + "..."
        return line

    def display_name(self) -> str:
        return "Human Readable String"
