"""CSV formatter."""

import csv
import io
import json
from collections.abc import Sequence
from typing import Any

from perflog.core.formatters.base import FormatKind, Formatter, lookup
from perflog.core.models import RECORD_CORE_KEYS as CORE_COLUMNS
from perflog.core.models import LogEntry


class CSVFormatter(Formatter):
    """Renders one CSV row per entry.

    Column order is deterministic: the core columns first, then the
    remaining record keys sorted by name, unless ``columns`` fixes it.

    Options:
        columns: Explicit column list (dotted paths allowed).
        separator: Field delimiter (default ``,``).
        null_value: Text written for missing values.
    """

    name = FormatKind.CSV
    default_options = {"columns": None, "separator": ",", "null_value": ""}

    def columns_for(self, entry: LogEntry) -> list[str]:
        """Return the column list used to render ``entry``."""
        configured: Sequence[str] | None = self._options["columns"]
        if configured:
            return list(configured)
        record = entry.to_record()
        core = [column for column in CORE_COLUMNS if column in record]
        return core + sorted(key for key in record if key not in CORE_COLUMNS)

    def header(self, entry: LogEntry) -> str:
        """Render the header row matching ``render(entry)``."""
        return self._write_row(self.columns_for(entry))

    def render(self, entry: LogEntry) -> str:
        record = entry.to_record()
        values = [self._cell(lookup(record, column)) for column in self.columns_for(entry)]
        return self._write_row(values)

    def _cell(self, value: Any) -> str:
        if value is None:
            return self._options["null_value"]
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, default=str, sort_keys=True)
        return str(value)

    def _write_row(self, values: Sequence[str]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(
            buffer, delimiter=self._options["separator"], lineterminator=""
        )
        writer.writerow(values)
        return buffer.getvalue()

    def display_name(self) -> str:
        return "CSV (Comma Separated Values)"

    def file_extension(self) -> str:
        return ".csv"
