"""Composition helpers wiring the core to concrete adapters."""

from pathlib import Path

from perflog.adapters.delivery import LogDelivery
from perflog.adapters.storage.file import FileSink
from perflog.adapters.storage.ring_buffer import RingBufferHistory
from perflog.core.config import PerformanceConfig
from perflog.core.manager import PerformanceManager
from perflog.core.ports import SinkPort
from perflog.core.registry import FormatterRegistry


def build_manager(
    config: PerformanceConfig | None = None,
    sink: SinkPort | None = None,
    log_dir: str | Path = "logs",
    registry: FormatterRegistry | None = None,
) -> PerformanceManager:
    """Build a PerformanceManager with buffered delivery and rolling windows.

    Args:
        config: Configuration; read from ``PERFLOG_*`` environment
            variables when omitted.
        sink: Where batches go; one file per destination under
            ``log_dir`` when omitted.
        log_dir: Directory of the default file sink.
        registry: Formatter registry; the built-ins when omitted.

    Returns:
        A manager whose delivery layer is not started yet.
    """
    config = config or PerformanceConfig.from_env()
    delivery = LogDelivery(
        sink or FileSink(log_dir),
        threshold=config.flush_threshold,
        flush_interval=config.flush_interval,
        max_pending=config.max_pending,
    )
    return PerformanceManager.from_config(
        config, delivery, registry=registry, history_factory=RingBufferHistory
    )
