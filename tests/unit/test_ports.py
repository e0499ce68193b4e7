"""Tests that the adapters satisfy the core ports."""

import pytest

from perflog.adapters.delivery import LogDelivery
from perflog.adapters.storage import InMemorySink, RingBufferHistory
from perflog.core.ports import DeliveryPort, HistoryPort, SinkPort

pytestmark = pytest.mark.core


def test_ports_are_runtime_checkable() -> None:
    sink = InMemorySink()
    assert isinstance(sink, SinkPort)
    assert isinstance(RingBufferHistory(1), HistoryPort)
    assert isinstance(LogDelivery(sink), DeliveryPort)


def test_plain_object_does_not_satisfy_ports() -> None:
    assert not isinstance(object(), SinkPort)
    assert not isinstance(object(), DeliveryPort)
