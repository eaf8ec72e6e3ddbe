# loggregator_consumer/errors.py


class ConsumerError(Exception):
    """Base class for every error raised or delivered by the consumer."""


class ConnectError(ConsumerError):
    """The WebSocket could not be established (bad endpoint, refused, TLS, handshake)."""


class DecodeError(ConsumerError):
    """A single frame could not be decoded into a LogRecord."""


class TransportError(ConsumerError):
    """The WebSocket failed after it was established."""


class NotOpenError(ConsumerError):
    def __init__(self, message: str = "connection does not exist"):
        super().__init__(message)
