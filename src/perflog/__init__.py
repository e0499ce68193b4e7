"""perflog: multi-channel structured performance logging."""

from perflog.adapters.delivery import DeliveryBuffer, LogDelivery
from perflog.adapters.logging import ChannelHandler
from perflog.adapters.storage import (
    ConsoleSink,
    FileSink,
    HttpSink,
    InMemorySink,
    RingBufferHistory,
)
from perflog.bootstrap import build_manager
from perflog.core.analytics import Analytics
from perflog.core.config import PerformanceConfig
from perflog.core.exceptions import (
    ConfigurationError,
    DeliveryError,
    PerflogError,
    UnknownChannelError,
)
from perflog.core.formatters import FormatKind, Formatter
from perflog.core.manager import PerformanceManager
from perflog.core.models import Channel, LogEntry, LoggerConfig, LogLevel
from perflog.core.registry import FormatterRegistry

__all__ = [
    "Analytics",
    "Channel",
    "ChannelHandler",
    "ConfigurationError",
    "ConsoleSink",
    "DeliveryBuffer",
    "DeliveryError",
    "FileSink",
    "FormatKind",
    "Formatter",
    "FormatterRegistry",
    "HttpSink",
    "InMemorySink",
    "LogDelivery",
    "LogEntry",
    "LogLevel",
    "LoggerConfig",
    "PerflogError",
    "PerformanceConfig",
    "PerformanceManager",
    "RingBufferHistory",
    "UnknownChannelError",
    "build_manager",
]
