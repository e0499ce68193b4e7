"""Sinks and rolling-window storage."""

from perflog.adapters.storage.console import ConsoleSink
from perflog.adapters.storage.file import FileSink
from perflog.adapters.storage.http import HttpSink
from perflog.adapters.storage.in_memory import InMemorySink
from perflog.adapters.storage.ring_buffer import RingBufferHistory

__all__ = [
    "ConsoleSink",
    "FileSink",
    "HttpSink",
    "InMemorySink",
    "RingBufferHistory",
]
