"""In-memory sink."""

from collections.abc import Sequence

from perflog.core.exceptions import DeliveryError


class InMemorySink:
    """In-memory implementation of SinkPort.

    Keeps every delivered batch per destination. Suitable for testing and
    development where nothing has to leave the process.

    Args:
        fail_times: Number of upcoming writes that raise DeliveryError.
    """

    def __init__(self, fail_times: int = 0) -> None:
        self.batches: list[tuple[str, list[str]]] = []
        self.fail_times = fail_times

    async def write(self, destination: str, lines: Sequence[str]) -> None:
        """Record the batch, or fail while ``fail_times`` remains."""
        if self.fail_times > 0:
            self.fail_times -= 1
            raise DeliveryError(destination, "simulated failure")
        self.batches.append((destination, list(lines)))

    def lines(self, destination: str | None = None) -> list[str]:
        """Delivered lines in delivery order, optionally for one destination."""
        return [
            line
            for name, batch in self.batches
            if destination is None or name == destination
            for line in batch
        ]

    def clear(self) -> None:
        self.batches.clear()
