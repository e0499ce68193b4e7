"""Field builders for metrics-channel entries."""

from typing import Any


def _metric(
    name: str,
    value: float,
    unit: str,
    aggregation: str,
    tags: dict[str, Any] | None,
) -> dict[str, Any]:
    return {
        "metricName": name,
        "value": value,
        "unit": unit,
        "aggregationType": aggregation,
        "tags": {key: str(val) for key, val in (tags or {}).items()},
    }


def counter(
    name: str,
    value: float = 1,
    tags: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the fields of a counter metric.

    Args:
        name: Metric name (e.g., "http_requests_get_200")
        value: Increment value (default: 1)
        tags: Optional dimension tags

    Returns:
        Fields for a metrics-channel entry
    """
    fields = _metric(name, value, "count", "sum", tags)
    fields["metricType"] = "counter"
    return fields


def gauge(
    name: str,
    value: float,
    unit: str = "units",
    tags: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the fields of a gauge metric.

    Args:
        name: Metric name (e.g., "active_users")
        value: Current gauge value
        unit: Unit of the value
        tags: Optional dimension tags

    Returns:
        Fields for a metrics-channel entry
    """
    fields = _metric(name, value, unit, "instant", tags)
    fields["metricType"] = "gauge"
    return fields


def histogram(
    name: str,
    value: float,
    unit: str = "milliseconds",
    tags: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the fields of a histogram observation.

    Args:
        name: Metric name (e.g., "http_request_duration")
        value: Observed value
        unit: Unit of the value (default: milliseconds)
        tags: Optional dimension tags

    Returns:
        Fields for a metrics-channel entry
    """
    fields = _metric(name, value, unit, "histogram", tags)
    fields["metricType"] = "histogram"
    return fields


def timer(
    name: str,
    duration_ms: float,
    tags: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the fields of a completed timer."""
    fields = _metric(name, duration_ms, "milliseconds", "average", tags)
    fields["metricType"] = "timer"
    return fields
