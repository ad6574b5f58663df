"""
dmxnet - Exceptions
"""


class DmxnetError(Exception):
    """Base exception for dmxnet errors."""
    pass


class InvalidConfigurationError(DmxnetError, ValueError):
    """A configuration or call argument is outside its declared range."""
    pass


class OutOfRangeError(InvalidConfigurationError):
    """Channel index, channel value or fill range out of bounds."""

    def __init__(self, name: str, value: int, low: int, high: int):
        self.name = name
        self.value = value
        self.low = low
        self.high = high
        super().__init__(f"{name} must be between {low} and {high}, got {value}")


class TransportError(DmxnetError):
    """Sending a datagram failed."""

    def __init__(self, address: tuple[str, int], message: str):
        self.address = address
        super().__init__(f"Send to {address[0]}:{address[1]} failed: {message}")
