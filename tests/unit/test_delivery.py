"""Tests for buffered delivery."""

import asyncio
import logging

import pytest

from perflog.adapters.delivery import DeliveryBuffer, LogDelivery
from perflog.adapters.storage.in_memory import InMemorySink
from perflog.core.ports import DeliveryPort

pytestmark = pytest.mark.delivery


class RecordingSink(InMemorySink):
    """In-memory sink that can be told to fail or block."""

    def __init__(self, fail_times: int = 0) -> None:
        super().__init__(fail_times)
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def write(self, destination, lines) -> None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        await super().write(destination, lines)


class TestDeliveryBuffer:
    def test_enqueue_reports_threshold(self) -> None:
        buffer = DeliveryBuffer(threshold=3)
        assert buffer.enqueue("a", "d") is False
        assert buffer.enqueue("b", "d") is False
        assert buffer.enqueue("c", "d") is True

    def test_destinations_are_independent(self) -> None:
        buffer = DeliveryBuffer(threshold=2)
        buffer.enqueue("a", "one")
        assert buffer.enqueue("b", "two") is False
        assert buffer.pending("one") == 1
        assert buffer.pending() == 2

    def test_requeue_goes_to_front(self) -> None:
        buffer = DeliveryBuffer()
        buffer.enqueue("1", "d")
        drained = buffer.drain("d")
        buffer.enqueue("2", "d")
        buffer.requeue("d", drained)
        assert buffer.drain("d") == ["1", "2"]

    def test_max_pending_drops_oldest(self, caplog) -> None:
        buffer = DeliveryBuffer(threshold=2, max_pending=3)
        with caplog.at_level(logging.WARNING, logger="perflog.adapters.delivery"):
            for line in "abcd":
                buffer.enqueue(line, "d")
        assert buffer.drain("d") == ["b", "c", "d"]
        assert buffer.dropped == 1
        assert "dropped 1 oldest" in caplog.text

    def test_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            DeliveryBuffer(threshold=0)


class TestLogDeliverySync:
    """Delivery outside of a running event loop."""

    def test_implements_delivery_port(self) -> None:
        assert isinstance(LogDelivery(InMemorySink()), DeliveryPort)

    def test_threshold_triggers_exactly_one_flush_in_order(self) -> None:
        sink = RecordingSink()
        delivery = LogDelivery(sink, threshold=10)
        lines = [f"line {i}" for i in range(10)]

        for line in lines[:9]:
            delivery.enqueue(line, "access.log")
        assert sink.calls == 0

        delivery.enqueue(lines[9], "access.log")

        assert sink.calls == 1
        assert sink.batches == [("access.log", lines)]
        assert delivery.pending() == 0

    def test_failed_flush_keeps_fifo_order(self, caplog) -> None:
        sink = RecordingSink(fail_times=1)
        delivery = LogDelivery(sink, threshold=2)

        with caplog.at_level(logging.WARNING, logger="perflog.adapters.delivery"):
            delivery.enqueue("a", "d")
            delivery.enqueue("b", "d")
        assert sink.batches == []
        assert delivery.pending("d") == 2
        assert delivery.failures == 1
        assert "re-queued" in caplog.text

        delivery.enqueue("c", "d")

        assert sink.batches == [("d", ["a", "b", "c"])]
        assert delivery.delivered == 3

    def test_enqueue_never_raises(self, monkeypatch, caplog) -> None:
        delivery = LogDelivery(InMemorySink())

        def explode(line, destination):
            raise RuntimeError("boom")

        monkeypatch.setattr(delivery.buffer, "enqueue", explode)
        with caplog.at_level(logging.ERROR, logger="perflog.adapters.delivery"):
            delivery.enqueue("x", "d")
        assert "Failed to enqueue" in caplog.text


class TestLogDeliveryAsync:
    """Delivery inside a running event loop."""

    async def test_threshold_schedules_background_flush(self) -> None:
        sink = RecordingSink()
        delivery = LogDelivery(sink, threshold=3)
        for line in ("a", "b", "c"):
            delivery.enqueue(line, "d")

        assert sink.calls == 0
        await asyncio.sleep(0)

        assert sink.batches == [("d", ["a", "b", "c"])]

    async def test_single_flush_in_flight_per_destination(self) -> None:
        sink = RecordingSink()
        sink.gate = asyncio.Event()
        delivery = LogDelivery(sink, threshold=2)

        delivery.enqueue("a", "d")
        delivery.enqueue("b", "d")
        await asyncio.sleep(0)
        delivery.enqueue("c", "d")
        delivery.enqueue("e", "d")
        await asyncio.sleep(0)
        assert sink.calls == 1

        sink.gate.set()
        await delivery.flush()

        assert sink.lines("d") == ["a", "b", "c", "e"]

    async def test_explicit_flush_delivers_below_threshold(self) -> None:
        sink = RecordingSink()
        delivery = LogDelivery(sink, threshold=100)
        delivery.enqueue("a", "one")
        delivery.enqueue("b", "two")

        await delivery.flush()

        assert sorted(sink.batches) == [("one", ["a"]), ("two", ["b"])]

    async def test_flush_skips_empty_destinations(self) -> None:
        sink = RecordingSink()
        await LogDelivery(sink).flush("nothing")
        assert sink.calls == 0

    async def test_periodic_flush_and_stop(self) -> None:
        sink = RecordingSink()
        delivery = LogDelivery(sink, threshold=100, flush_interval=0.01)
        delivery.start()
        assert delivery.running

        delivery.enqueue("a", "d")
        for _ in range(100):
            if sink.batches:
                break
            await asyncio.sleep(0.01)
        assert sink.batches == [("d", ["a"])]

        delivery.enqueue("b", "d")
        await delivery.stop()

        assert not delivery.running
        assert sink.lines("d") == ["a", "b"]

    async def test_explicit_flush_waits_for_flush_in_flight(self) -> None:
        sink = RecordingSink()
        sink.gate = asyncio.Event()
        delivery = LogDelivery(sink, threshold=100)
        delivery.enqueue("old", "d")
        first = asyncio.create_task(delivery.flush())
        await asyncio.sleep(0)
        assert sink.calls == 1

        delivery.enqueue("new", "d")
        second = asyncio.create_task(delivery.flush())
        await asyncio.sleep(0)
        assert not second.done()

        sink.gate.set()
        await second
        assert sink.lines("d") == ["old", "new"]
        assert delivery.pending() == 0
        await first

    async def test_stop_during_write_keeps_the_batch(self) -> None:
        sink = RecordingSink()
        sink.gate = asyncio.Event()
        delivery = LogDelivery(sink, threshold=100, flush_interval=0.01)
        delivery.start()
        delivery.enqueue("a", "d")
        delivery.enqueue("b", "d")
        for _ in range(100):
            if sink.calls:
                break
            await asyncio.sleep(0.01)
        assert sink.calls == 1
        assert delivery.pending("d") == 0

        # Only the write already in progress stays blocked
        sink.gate = None
        await delivery.stop()

        assert sink.lines("d") == ["a", "b"]
        assert delivery.pending() == 0

    async def test_stop_reports_undeliverable_lines(self, caplog) -> None:
        delivery = LogDelivery(RecordingSink(fail_times=5), threshold=100)
        delivery.enqueue("a", "d")
        with caplog.at_level(logging.WARNING, logger="perflog.adapters.delivery"):
            await delivery.stop()
        assert delivery.pending("d") == 1
        assert "could not be delivered on shutdown" in caplog.text


def test_start_without_loop_warns(caplog) -> None:
    delivery = LogDelivery(InMemorySink())
    with caplog.at_level(logging.WARNING, logger="perflog.adapters.delivery"):
        delivery.start()
    assert not delivery.running
    assert "No running event loop" in caplog.text
