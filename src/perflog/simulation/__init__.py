"""Virtual traffic generation for exercising the logging pipeline."""

from perflog.simulation.journeys import DEFAULT_JOURNEYS, Journey, JourneyStep
from perflog.simulation.traffic import (
    TrafficConfig,
    TrafficManager,
    TrafficTiming,
    VirtualUser,
)

__all__ = [
    "DEFAULT_JOURNEYS",
    "Journey",
    "JourneyStep",
    "TrafficConfig",
    "TrafficManager",
    "TrafficTiming",
    "VirtualUser",
]
