"""XML formatter."""

import re
from collections.abc import Mapping
from typing import Any
from xml.sax.saxutils import escape

from perflog.core.formatters.base import FormatKind, Formatter
from perflog.core.models import Channel, LogEntry

_ENTITIES = {'"': "&quot;", "'": "&#39;", "\n": "&#10;", "\r": "&#13;"}
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_element_name(name: str) -> str:
    """Turn an arbitrary key into a valid XML element name."""
    cleaned = _INVALID_NAME_CHARS.sub("_", str(name)) or "_"
    if not (cleaned[0].isalpha() or cleaned[0] == "_"):
        cleaned = f"_{cleaned}"
    if cleaned.lower().startswith("xml"):
        cleaned = f"_{cleaned}"
    return cleaned


def escape_text(value: Any) -> str:
    """Entity-escape ``&<>"'`` in the text form of ``value``."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return escape(str(value), _ENTITIES)


class XMLFormatter(Formatter):
    """Renders an entry as a single-line XML element.

    Options:
        root_element: Name of the enclosing element (default ``logEntry``).
        item_element: Element name for sequence items (default ``item``).
        declaration: Prefix the XML declaration.
        force_compatibility: Report support for every channel.
    """

    name = FormatKind.XML
    default_options = {
        "root_element": "logEntry",
        "item_element": "item",
        "declaration": False,
        "force_compatibility": False,
    }

    def render(self, entry: LogEntry) -> str:
        body = self._element(self._options["root_element"], entry.to_record())
        if self._options["declaration"]:
            return '<?xml version="1.0" encoding="UTF-8"?>' + body
        return body

    def _element(self, name: str, value: Any) -> str:
        tag = sanitize_element_name(name)
        if value is None:
            return f"<{tag}/>"
        if isinstance(value, Mapping):
            children = "".join(self._element(k, v) for k, v in value.items())
            return f"<{tag}>{children}</{tag}>"
        if isinstance(value, (list, tuple)):
            item = self._options["item_element"]
            children = "".join(self._element(item, v) for v in value)
            return f"<{tag}>{children}</{tag}>"
        return f"<{tag}>{escape_text(value)}</{tag}>"

    def display_name(self) -> str:
        return "XML"

    def file_extension(self) -> str:
        return ".xml"

    def supports_channel(self, channel: Channel) -> bool:
        if self._options["force_compatibility"]:
            return True
        return channel in (Channel.EVENT, Channel.ERROR, Channel.METRICS)
