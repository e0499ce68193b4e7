"""Buffered delivery of rendered log lines.

Lines are queued per destination and handed to a SinkPort in batches, either
when a destination reaches the flush threshold, on the periodic background
flush, or on an explicit flush. A failed batch goes back to the front of its
queue so the next attempt delivers it before anything newer.
"""

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Sequence

from perflog.core.ports import SinkPort

logger = logging.getLogger(__name__)


class DeliveryBuffer:
    """Per-destination FIFO queues of pending lines.

    Args:
        threshold: Pending count at which a destination is due for flushing.
        max_pending: Upper bound per destination; the oldest lines are
            dropped beyond it.
    """

    def __init__(self, threshold: int = 10, max_pending: int = 10_000) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.max_pending = max(max_pending, threshold)
        self.dropped = 0
        self._queues: dict[str, deque[str]] = {}

    def enqueue(self, line: str, destination: str) -> bool:
        """Append ``line``; return True when ``destination`` is due."""
        queue = self._queues.setdefault(destination, deque())
        queue.append(line)
        self._trim(destination, queue)
        return len(queue) >= self.threshold

    def drain(self, destination: str) -> list[str]:
        """Remove and return every pending line of ``destination``."""
        queue = self._queues.get(destination)
        if not queue:
            return []
        lines = list(queue)
        queue.clear()
        return lines

    def requeue(self, destination: str, lines: Sequence[str]) -> None:
        """Put ``lines`` back in front of anything queued since they were drained."""
        queue = self._queues.setdefault(destination, deque())
        queue.extendleft(reversed(lines))
        self._trim(destination, queue)

    def pending(self, destination: str | None = None) -> int:
        if destination is not None:
            return len(self._queues.get(destination, ()))
        return sum(len(queue) for queue in self._queues.values())

    def destinations(self) -> list[str]:
        return [name for name, queue in self._queues.items() if queue]

    def _trim(self, destination: str, queue: deque[str]) -> None:
        overflow = len(queue) - self.max_pending
        if overflow <= 0:
            return
        for _ in range(overflow):
            queue.popleft()
        self.dropped += overflow
        logger.warning(
            "Buffer for %r exceeded %d lines, dropped %d oldest",
            destination,
            self.max_pending,
            overflow,
        )


class LogDelivery:
    """Background delivery worker owning a DeliveryBuffer and a sink.

    ``enqueue`` never blocks the caller. Reaching the threshold schedules a
    flush task on the running event loop; outside of an event loop the
    flush runs to completion before ``enqueue`` returns. At most one flush
    per destination is in flight at any time, and a flush cancelled
    mid-write puts its batch back at the front of the queue.

    Args:
        sink: Sink receiving the batches.
        threshold: Pending lines per destination that trigger a flush.
        flush_interval: Seconds between periodic flushes once started.
        max_pending: Upper bound of pending lines per destination.
    """

    def __init__(
        self,
        sink: SinkPort,
        threshold: int = 10,
        flush_interval: float = 1.0,
        max_pending: int = 10_000,
    ) -> None:
        self.sink = sink
        self.flush_interval = flush_interval
        self.buffer = DeliveryBuffer(threshold, max_pending)
        self.delivered = 0
        self.failures = 0
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def pending(self, destination: str | None = None) -> int:
        return self.buffer.pending(destination)

    def enqueue(self, line: str, destination: str) -> None:
        """Queue ``line`` for ``destination``."""
        try:
            due = self.buffer.enqueue(line, destination)
            if due:
                self._schedule(destination)
        except Exception:
            logger.exception("Failed to enqueue line for %r", destination)

    def _schedule(self, destination: str) -> None:
        if self._lock(destination).locked():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._flush_destination(destination, until_empty=False))
            return
        task = loop.create_task(self._flush_destination(destination, until_empty=False))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _lock(self, destination: str) -> asyncio.Lock:
        lock = self._locks.get(destination)
        if lock is None:
            lock = self._locks[destination] = asyncio.Lock()
        return lock

    async def _flush_destination(self, destination: str, until_empty: bool) -> None:
        lock = self._lock(destination)
        # Threshold flushes defer to the running one; explicit flushes queue behind it
        if not until_empty and lock.locked():
            return
        floor = 1 if until_empty else self.buffer.threshold
        async with lock:
            while self.buffer.pending(destination) >= floor:
                lines = self.buffer.drain(destination)
                try:
                    await self.sink.write(destination, lines)
                except asyncio.CancelledError:
                    self.buffer.requeue(destination, lines)
                    raise
                except Exception as exc:
                    self.buffer.requeue(destination, lines)
                    self.failures += 1
                    logger.warning(
                        "Delivery of %d lines to %r failed, re-queued: %s",
                        len(lines),
                        destination,
                        exc,
                    )
                    return
                self.delivered += len(lines)

    async def _wait_scheduled(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def flush(self, destination: str | None = None) -> None:
        """Deliver everything pending for ``destination`` (all if None)."""
        await self._wait_scheduled()
        targets = [destination] if destination is not None else self.buffer.destinations()
        for target in targets:
            await self._flush_destination(target, until_empty=True)

    def start(self) -> None:
        """Start the periodic flush on the running event loop."""
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, periodic flushing not started")
            return
        self._worker = loop.create_task(self._run())
        logger.debug("Started periodic flush every %ss", self.flush_interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            await self.flush()

    async def stop(self) -> None:
        """Cancel the periodic flush and deliver what is still pending."""
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        await self.flush()
        if self.buffer.pending():
            logger.warning(
                "%d lines could not be delivered on shutdown", self.buffer.pending()
            )
