"""NDJSON encoder for log entries."""

import json
from collections.abc import Iterable

from perflog.core.formatters.base import failure_line
from perflog.core.models import LogEntry


def _encode(entry: LogEntry) -> str:
    try:
        return json.dumps(entry.to_record(), default=str)
    except (TypeError, ValueError, RecursionError):
        return failure_line(entry)


def encode_entries(entries: Iterable[LogEntry]) -> str:
    """Encode log entries to newline-delimited JSON.

    Args:
        entries: An iterable of LogEntry objects.

    Returns:
        NDJSON string with one flat JSON record per line.
        Empty string if no entries. An entry that cannot be serialised
        is replaced by the formatter failure line.
    """
    lines = [_encode(entry) for entry in entries]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"
