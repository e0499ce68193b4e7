"""User-defined template formatter.

Templates are parsed once into a token list. Placeholders take the form
``{field}`` or ``{field|filter}``; dotted paths reach into nested fields.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from perflog.core.formatters.base import FormatKind, Formatter, lookup
from perflog.core.models import LogEntry

DEFAULT_TEMPLATE = "{timestamp} - {level} - {message}"
TRUNCATE_AT = 50

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    source: str
    path: str
    filter: str | None = None


Token = Literal | Placeholder


def parse_template(template: str) -> tuple[Token, ...]:
    """Split ``template`` into literal and placeholder tokens."""
    tokens: list[Token] = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        if match.start() > position:
            tokens.append(Literal(template[position : match.start()]))
        path, _, name = match.group(1).partition("|")
        tokens.append(
            Placeholder(
                source=match.group(0),
                path=path.strip(),
                filter=name.strip().lower() or None,
            )
        )
        position = match.end()
    if position < len(template):
        tokens.append(Literal(template[position:]))
    return tuple(tokens)


def apply_filter(value: Any, name: str | None) -> str:
    """Apply a named filter to a resolved placeholder value."""
    match name:
        case None:
            return str(value)
        case "upper":
            return str(value).upper()
        case "lower":
            return str(value).lower()
        case "json":
            return json.dumps(value, default=str)
        case "truncate":
            text = str(value)
            if len(text) > TRUNCATE_AT:
                return text[: TRUNCATE_AT - 3] + "..."
            return text
        case _:
            return str(value)


class TemplateFormatter(Formatter):
    """Renders entries through a ``{field}`` template.

    Unresolved placeholders are emitted verbatim.

    Options:
        template: The template string.
        file_extension: Extension reported for files in this format.
    """

    name = FormatKind.CUSTOM
    default_options = {"template": DEFAULT_TEMPLATE, "file_extension": ".log"}

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._tokens = parse_template(self._options["template"] or DEFAULT_TEMPLATE)

    @property
    def tokens(self) -> tuple[Token, ...]:
        return self._tokens

    def render(self, entry: LogEntry) -> str:
        record = entry.to_record()
        parts = []
        for token in self._tokens:
            if isinstance(token, Literal):
                parts.append(token.text)
                continue
            value = lookup(record, token.path)
            parts.append(token.source if value is None else apply_filter(value, token.filter))
        return "".join(parts)

    def unresolved(self, entry: LogEntry) -> list[str]:
        """Return the placeholder paths ``entry`` cannot satisfy."""
        record = entry.to_record()
        return [
            token.path
            for token in self._tokens
            if isinstance(token, Placeholder) and lookup(record, token.path) is None
        ]

    def display_name(self) -> str:
        return "Custom Template"

    def file_extension(self) -> str:
        return self._options["file_extension"]
