"""Python logging handler adapter for perflog.

Bridges the standard library logging module to a channel logger, so that
records from application code (or third-party libraries) land in the same
formatted, buffered channel output.
"""

import logging
import traceback

from perflog.core.loggers import ChannelLogger
from perflog.core.models import LogLevel

# Attributes every LogRecord carries; anything else came in via ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Default attributes to extract from LogRecord
_DEFAULT_INCLUDE_ATTRS = ["logger", "funcName", "lineno"]


def level_for_record(levelno: int) -> LogLevel:
    """Map a stdlib level number onto the nearest LogLevel at or below it."""
    if levelno >= logging.CRITICAL:
        return LogLevel.FATAL
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARN
    if levelno >= logging.INFO:
        return LogLevel.INFO
    if levelno >= logging.DEBUG:
        return LogLevel.DEBUG
    return LogLevel.TRACE


class ChannelHandler(logging.Handler):
    """Logging handler that writes log records to a channel logger.

    Records emitted by perflog's own loggers are ignored, so delivery
    diagnostics can never feed back into the channel they report on.

    Example:
        ```python
        handler = ChannelHandler(manager.event)
        logging.getLogger("shop").addHandler(handler)
        ```
    """

    def __init__(
        self,
        channel_logger: ChannelLogger,
        include_attrs: list[str] | None = None,
        level: int = logging.NOTSET,
    ) -> None:
        """Initialize the handler.

        Args:
            channel_logger: Channel receiving the records.
            include_attrs: LogRecord attributes to include. Defaults to
                ["logger", "funcName", "lineno"].
            level: Handler threshold.
        """
        super().__init__(level)
        self._channel_logger = channel_logger
        self._include_attrs = include_attrs or _DEFAULT_INCLUDE_ATTRS

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "perflog" or record.name.startswith("perflog."):
            return
        try:
            attr_mapping: dict[str, str | int | float | bool] = {
                "logger": record.name,
                "module": record.module,
                "funcName": record.funcName or "",
                "lineno": record.lineno,
                "pathname": record.pathname,
            }
            fields: dict[str, object] = {
                key: attr_mapping[key] for key in self._include_attrs if key in attr_mapping
            }

            # Extra attributes passed via the logging call
            for key, value in record.__dict__.items():
                if key not in _RECORD_ATTRS and isinstance(
                    value, (str, int, float, bool)
                ):
                    fields[key] = value

            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                if exc_type is not None:
                    fields["errorName"] = exc_type.__name__
                if exc_value is not None:
                    fields["errorMessage"] = str(exc_value)
                if exc_tb is not None:
                    fields["stack"] = "".join(
                        traceback.format_exception(exc_type, exc_value, exc_tb)
                    ).rstrip()

            self._channel_logger.log(
                level_for_record(record.levelno), record.getMessage(), fields
            )
        except Exception:
            self.handleError(record)
