# loggregator_consumer/engine/stream.py
import asyncio
import logging
from typing import Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class TailStream(Generic[T]):
    """
    Async sequence handed to the caller by LoggregatorConnection.tail().

    Single producer (the connection) and single consumer (the caller). At most
    ``maxsize`` undelivered items are buffered; when the consumer falls behind
    the oldest item is discarded and counted in ``dropped``, so the producer
    never blocks. ``maxsize=0`` buffers without limit.
    """

    def __init__(self, name: str, maxsize: int = 0):
        self.name = name
        self.maxsize = maxsize
        self.dropped = 0
        # one extra slot keeps room for the close marker
        self._queue: asyncio.Queue = asyncio.Queue(maxsize + 1 if maxsize else 0)
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, item: T) -> None:
        if self._closed:
            log.debug("Ignoring item pushed to closed %s stream", self.name)
            return
        if self.maxsize and self._queue.qsize() >= self.maxsize:
            self._queue.get_nowait()
            self.dropped += 1
            log.warning("%s stream full (%d); dropped oldest item (%d dropped so far)",
                        self.name, self.maxsize, self.dropped)
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "TailStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    async def drain(self) -> list[T]:
        """Collect every remaining item until the stream closes."""
        return [item async for item in self]

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<TailStream {self.name} {state} buffered={self._queue.qsize()}>"
