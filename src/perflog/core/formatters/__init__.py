"""Built-in log formatters."""

from perflog.core.formatters.base import (
    FORMAT_FAILURE,
    FormatKind,
    Formatter,
    failure_line,
)
from perflog.core.formatters.clf import CLFFormatter
from perflog.core.formatters.csv_format import CSVFormatter
from perflog.core.formatters.json_format import JSONFormatter
from perflog.core.formatters.string_format import StringFormatter
from perflog.core.formatters.template import TemplateFormatter, parse_template
from perflog.core.formatters.xml_format import XMLFormatter

BUILTIN_FORMATTERS: dict[FormatKind, type[Formatter]] = {
    FormatKind.JSON: JSONFormatter,
    FormatKind.CLF: CLFFormatter,
    FormatKind.STRING: StringFormatter,
    FormatKind.CSV: CSVFormatter,
    FormatKind.XML: XMLFormatter,
    FormatKind.CUSTOM: TemplateFormatter,
}

__all__ = [
    "BUILTIN_FORMATTERS",
    "FORMAT_FAILURE",
    "CLFFormatter",
    "CSVFormatter",
    "FormatKind",
    "Formatter",
    "JSONFormatter",
    "StringFormatter",
    "TemplateFormatter",
    "XMLFormatter",
    "failure_line",
    "parse_template",
]
