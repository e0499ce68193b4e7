"""Aggregations over the rolling windows of the channels.

All functions are pure: the same entries always yield the same result.
"""

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from perflog.core.models import Channel, LogEntry


@dataclass(frozen=True)
class AccessStats:
    total_requests: int = 0
    error_requests: int = 0
    error_rate: float = 0.0
    average_response_time: float = 0.0
    slow_requests: int = 0
    status_codes: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorStats:
    total_errors: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EventStats:
    total_events: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricStats:
    total_samples: int = 0
    by_name: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Analytics:
    """Derived view over the recent entries of every channel."""

    access: AccessStats
    errors: ErrorStats
    events: EventStats
    metrics: MetricStats

    @property
    def total_errors(self) -> int:
        return self.errors.total_errors

    @property
    def error_rate(self) -> float:
        return self.access.error_rate

    @property
    def average_response_time(self) -> float:
        return self.access.average_response_time

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["totalErrors"] = self.total_errors
        data["errorRate"] = self.error_rate
        data["averageResponseTime"] = self.average_response_time
        return data


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def access_stats(entries: Iterable[LogEntry], slow_request_ms: float = 1000.0) -> AccessStats:
    """Request counts, error rate (percent) and mean duration."""
    total = errors = slow = 0
    durations: list[float] = []
    codes: Counter[str] = Counter()
    for entry in entries:
        total += 1
        status = entry.fields.get("status")
        codes[str(status if status is not None else "unknown")] += 1
        if isinstance(status, int) and status >= 400:
            errors += 1
        duration = _number(entry.fields.get("duration"))
        if duration is not None:
            durations.append(duration)
            if duration > slow_request_ms:
                slow += 1
        elif entry.fields.get("slowRequest"):
            slow += 1
    return AccessStats(
        total_requests=total,
        error_requests=errors,
        error_rate=(errors / total) * 100 if total else 0.0,
        average_response_time=sum(durations) / len(durations) if durations else 0.0,
        slow_requests=slow,
        status_codes=dict(sorted(codes.items())),
    )


def error_stats(entries: Iterable[LogEntry]) -> ErrorStats:
    """Error counts by type and severity."""
    types: Counter[str] = Counter()
    severities: Counter[str] = Counter()
    total = 0
    for entry in entries:
        total += 1
        types[str(entry.fields.get("errorType", "unknown"))] += 1
        severities[str(entry.fields.get("severity", "unknown"))] += 1
    return ErrorStats(
        total_errors=total,
        by_type=dict(sorted(types.items())),
        by_severity=dict(sorted(severities.items())),
    )


def event_stats(entries: Iterable[LogEntry]) -> EventStats:
    """Event counts by event type."""
    types = Counter(str(e.fields.get("eventType", "unknown")) for e in entries)
    return EventStats(total_events=sum(types.values()), by_type=dict(sorted(types.items())))


def metric_stats(entries: Iterable[LogEntry]) -> MetricStats:
    """Sample counts by metric name."""
    names = Counter(str(e.fields.get("metricName", "unnamed_metric")) for e in entries)
    return MetricStats(total_samples=sum(names.values()), by_name=dict(sorted(names.items())))


def compute_analytics(
    windows: Mapping[Channel, Iterable[LogEntry]], slow_request_ms: float = 1000.0
) -> Analytics:
    """Aggregate a snapshot of every channel window."""
    return Analytics(
        access=access_stats(windows.get(Channel.ACCESS, ()), slow_request_ms),
        errors=error_stats(windows.get(Channel.ERROR, ())),
        events=event_stats(windows.get(Channel.EVENT, ())),
        metrics=metric_stats(windows.get(Channel.METRICS, ())),
    )
