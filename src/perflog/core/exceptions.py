"""Exception hierarchy for perflog."""


class PerflogError(Exception):
    """Base class for perflog errors."""


class ConfigurationError(PerflogError, ValueError):
    """Raised by explicit configuration APIs given invalid input."""


class UnknownChannelError(ConfigurationError):
    """Raised when a channel name does not match any channel."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown logging channel: {name!r}")
        self.name = name


class DeliveryError(PerflogError):
    """Raised by a sink that could not deliver a batch."""

    def __init__(self, destination: str, reason: str) -> None:
        super().__init__(f"Delivery to {destination!r} failed: {reason}")
        self.destination = destination
        self.reason = reason
