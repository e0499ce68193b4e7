"""Common Log Format (CLF) formatter."""

from perflog.core.formatters.base import FormatKind, Formatter, parse_timestamp
from perflog.core.formatters.string_format import StringFormatter
from perflog.core.models import Channel, LogEntry

_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

REQUEST_FIELDS = ("method", "url", "status")


def clf_timestamp(timestamp: str) -> str:
    """Convert an ISO-8601 timestamp into ``dd/Mon/YYYY:HH:MM:SS +0000``."""
    moment = parse_timestamp(timestamp)
    return (
        f"{moment.day:02d}/{_MONTHS[moment.month - 1]}/{moment.year:04d}"
        f":{moment:%H:%M:%S} +0000"
    )


def _or_dash(value) -> str:
    return "-" if value in (None, "") else str(value)


class CLFFormatter(Formatter):
    """Renders request entries as ``host ident authuser [time] "req" status size``.

    Entries without ``method``, ``url`` and ``status`` fields are rendered by
    the string formatter instead.

    Options:
        extended: Append ``"referer" "userAgent" <duration>ms``.
        force_compatibility: Report support for every channel.
    """

    name = FormatKind.CLF
    default_options = {"extended": False, "force_compatibility": False}

    def __init__(self, **options) -> None:
        super().__init__(**options)
        self._fallback = StringFormatter()

    def render(self, entry: LogEntry) -> str:
        fields = entry.fields
        if not all(key in fields for key in REQUEST_FIELDS):
            return self._fallback.render(entry)
        host = _or_dash(fields.get("ip"))
        authuser = _or_dash(fields.get("userId"))
        size = fields.get("size", fields.get("contentLength"))
        request = f'"{fields["method"]} {fields["url"]} HTTP/1.1"'
        line = (
            f"{host} - {authuser} [{clf_timestamp(entry.timestamp)}] "
            f"{request} {fields['status']} {_or_dash(size)}"
        )
        if self._options["extended"]:
            duration = fields.get("duration")
            line += (
                f' "{_or_dash(fields.get("referer"))}"'
                f' "{_or_dash(fields.get("userAgent"))}"'
                f" {_or_dash(duration)}{'ms' if duration is not None else ''}"
            )
        return line

    def display_name(self) -> str:
        return "Common Log Format (CLF)"

    def supports_channel(self, channel: Channel) -> bool:
        return channel == Channel.ACCESS or bool(self._options["force_compatibility"])
