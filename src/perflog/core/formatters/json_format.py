"""JSON formatter."""

import json

from perflog.core.formatters.base import FormatKind, Formatter, failure_line
from perflog.core.models import LogEntry


class JSONFormatter(Formatter):
    """Renders the flat entry record as a JSON object.

    Options:
        indent: Indentation passed to ``json.dumps`` (None for one line).
        include_stack: Keep a ``stack`` field when present (default True).
    """

    name = FormatKind.JSON
    default_options = {"indent": None, "include_stack": True}

    def render(self, entry: LogEntry) -> str:
        record = entry.to_record()
        if not self._options["include_stack"]:
            record.pop("stack", None)
        try:
            return json.dumps(record, indent=self._options["indent"], default=str)
        except (TypeError, ValueError, RecursionError):
            return failure_line(entry)

    def display_name(self) -> str:
        return "JSON"

    def file_extension(self) -> str:
        return ".json"
