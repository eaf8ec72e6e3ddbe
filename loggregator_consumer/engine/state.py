# loggregator_consumer/engine/state.py
from enum import Enum

from loggregator_consumer.errors import ConsumerError


class ConnectionState(str, Enum):
    UNOPENED = "unopened"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ConnectionLifecycle:
    """
    Lifecycle flag shared by the caller's close() and the two pumps.

    Every transition is a check-and-set with no await in between, so on the
    event loop thread it is atomic with respect to all other coroutines. The
    move to CLOSED succeeds for exactly one caller.
    """

    def __init__(self):
        self.state = ConnectionState.UNOPENED

    def begin_connecting(self) -> None:
        if self.state != ConnectionState.UNOPENED:
            raise ConsumerError(f"connection cannot be tailed while {self.state.value}")
        self.state = ConnectionState.CONNECTING

    def mark_open(self) -> bool:
        if self.state != ConnectionState.CONNECTING:
            return False
        self.state = ConnectionState.OPEN
        return True

    def try_close(self) -> bool:
        if not self.has_transport():
            return False
        self.state = ConnectionState.CLOSED
        return True

    def has_transport(self) -> bool:
        return self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN)

    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED
