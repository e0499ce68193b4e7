"""Port interfaces for delivery sinks and rolling history.

These protocols define the contracts that adapters must implement.
The core domain depends only on these interfaces, not concrete implementations.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from perflog.core.models import LogEntry


@runtime_checkable
class SinkPort(Protocol):
    """Port for delivering batches of rendered log lines.

    Adapters implementing this protocol receive lines in insertion order.
    Examples: InMemorySink, FileSink, HttpSink, ConsoleSink.
    """

    async def write(self, destination: str, lines: Sequence[str]) -> None:
        """Deliver ``lines`` to ``destination``.

        Raises:
            Exception: Any failure; the caller re-queues the batch.
        """
        ...


@runtime_checkable
class HistoryPort(Protocol):
    """Port for the bounded recent-history window of a channel.

    Examples: RingBufferHistory.
    """

    def write(self, entry: LogEntry) -> None:
        """Record an entry, evicting the oldest one when full."""
        ...

    def read(self) -> list[LogEntry]:
        """Return a snapshot of the retained entries, oldest first."""
        ...

    def clear(self) -> None:
        """Drop every retained entry."""
        ...


@runtime_checkable
class DeliveryPort(Protocol):
    """Port accepting rendered lines for buffered, deferred delivery.

    Examples: LogDelivery.
    """

    def enqueue(self, line: str, destination: str) -> None:
        """Queue ``line`` for ``destination``; never blocks, never raises."""
        ...

    async def flush(self, destination: str | None = None) -> None:
        """Deliver pending lines for ``destination`` (every one if None)."""
        ...

    def start(self) -> None:
        """Begin periodic background delivery on the running event loop."""
        ...

    async def stop(self) -> None:
        """Stop background delivery after a final flush."""
        ...
