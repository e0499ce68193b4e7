"""Ring buffer history for the analytics window.

Bounded in-memory storage that evicts the oldest entry when full, keeping
memory use predictable however long the process runs.
"""

from collections import deque

from perflog.core.models import LogEntry


class RingBufferHistory:
    """Ring buffer implementation of HistoryPort.

    Args:
        max_size: Maximum number of entries to retain.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[LogEntry] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._buffer.maxlen or 0

    def write(self, entry: LogEntry) -> None:
        """Record an entry, evicting the oldest one when full."""
        self._buffer.append(entry)

    def read(self) -> list[LogEntry]:
        """Return the retained entries, oldest first."""
        return list(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)
