# loggregator_consumer/engine/connection.py
"""
LoggregatorConnection - tails one app's log stream over a WebSocket.

Responsibilities:
- Dial ``ws[s]://<endpoint>/tail/?app=<app_id>`` with the Authorization header.
- Run a read pump (frames -> records / decode errors) and a keepalive pump
  as two asyncio tasks sharing the WebSocket.
- Tear both down exactly once on close(), peer close or transport failure,
  then close the records and errors streams together.

There is no reconnection: once a connection ends its streams are finished.
"""

import asyncio
import ipaddress
import logging
import re
import ssl
import urllib.parse
from contextlib import suppress
from typing import Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from loggregator_consumer.codec.logmessage import decode_log_message
from loggregator_consumer.engine.state import ConnectionLifecycle, ConnectionState
from loggregator_consumer.engine.stream import TailStream
from loggregator_consumer.errors import ConnectError, DecodeError, NotOpenError, TransportError
from loggregator_consumer.schemas.record import LogRecord
from loggregator_consumer.schemas.settings import ConsumerSettings

log = logging.getLogger(__name__)

TAIL_PATH = "/tail/"
KEEPALIVE_FRAME = b"I'm alive!"

_HOSTNAME_RE = re.compile(r"[A-Za-z0-9._-]+")

def _validate_endpoint(endpoint: str) -> None:
    parts = urllib.parse.urlsplit(f"//{endpoint}")
    try:
        parts.port
    except ValueError as exc:
        raise ConnectError(f"malformed endpoint {endpoint!r}: {exc}") from exc

    host = parts.hostname
    if not host or parts.path or parts.query or parts.fragment or parts.username is not None:
        raise ConnectError(f"malformed endpoint {endpoint!r}")
    try:
        ipaddress.ip_address(host)
    except ValueError:
        if not _HOSTNAME_RE.fullmatch(host):
            raise ConnectError(f"malformed endpoint {endpoint!r}") from None


def _transport_error(exc: ConnectionClosed) -> Optional[TransportError]:
    """A clean close from the peer ends the stream silently; anything else is reported."""
    if isinstance(exc, ConnectionClosedOK):
        return None
    error = TransportError(f"connection lost: {exc}")
    error.__cause__ = exc
    return error


def _unexpected_error(pump: str, exc: Exception) -> TransportError:
    error = TransportError(f"{pump} pump failed: {exc!r}")
    error.__cause__ = exc
    return error


class LoggregatorConnection:
    """
    Client side of one tail subscription.

    Create it unopened, call tail() from a running event loop to get the
    (records, errors) streams, and close() it when done. The keepalive interval
    and buffering come from ``settings``.
    """

    def __init__(
        self,
        endpoint: str,
        tls: Optional[ssl.SSLContext] = None,
        proxy: Optional[str] = None,
        settings: Optional[ConsumerSettings] = None,
    ):
        self.endpoint = endpoint
        self.tls = tls
        self.proxy = proxy
        self.settings = settings or ConsumerSettings()
        self.lifecycle = ConnectionLifecycle()

        self._ws: Optional[ClientConnection] = None
        self._records: Optional[TailStream[LogRecord]] = None
        self._errors: Optional[TailStream[Exception]] = None
        self._dial_task: Optional[asyncio.Task] = None
        self._pumps: list[asyncio.Task] = []

    @property
    def state(self) -> ConnectionState:
        return self.lifecycle.state

    def tail_url(self, app_id: str) -> str:
        scheme = "wss" if self.tls is not None else "ws"
        return f"{scheme}://{self.endpoint}{TAIL_PATH}?app={urllib.parse.quote(app_id, safe='')}"

    # --- Public API -----------------------------------------------------------
    def tail(self, app_id: str, auth_token: str) -> tuple[TailStream[LogRecord], TailStream[Exception]]:
        """
        Start tailing ``app_id`` and return the (records, errors) streams.

        The streams are returned immediately; the WebSocket is dialed in the
        background. A dial failure arrives as a single ConnectError on the
        errors stream, after which both streams close.
        """
        self.lifecycle.begin_connecting()
        self._records = TailStream("records", self.settings.buffer_size)
        self._errors = TailStream("errors", self.settings.buffer_size)
        self._dial_task = asyncio.create_task(
            self._open(app_id, auth_token), name=f"loggregator-dial-{self.endpoint}"
        )
        return self._records, self._errors

    async def close(self) -> None:
        """
        Tear down the WebSocket, stop both pumps and close both streams.

        Raises NotOpenError when there is no active transport, including when
        the connection was already closed by the peer or a transport failure.
        """
        if not self.lifecycle.try_close():
            raise NotOpenError()
        log.info("Closing connection to %s", self.endpoint)
        await self._shutdown()

    async def __aenter__(self) -> "LoggregatorConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        with suppress(NotOpenError):
            await self.close()

    # --- Dial -------------------------------------------------------------------
    async def _open(self, app_id: str, auth_token: str) -> None:
        url = self.tail_url(app_id)
        try:
            _validate_endpoint(self.endpoint)
            log.info("Dialing %s", url)
            ws = await connect(
                url,
                additional_headers={"Authorization": auth_token},
                ssl=self.tls,
                proxy=self.proxy,
                open_timeout=self.settings.open_timeout,
                close_timeout=self.settings.close_timeout,
                max_size=self.settings.max_frame_size,
                ping_interval=None,
            )
        except Exception as exc:
            # refusal, DNS, TLS, handshake rejection, timeouts, missing proxy support
            log.warning("Unable to connect to %s: %s", url, exc)
            if self.lifecycle.try_close():
                error = exc if isinstance(exc, ConnectError) else ConnectError(f"unable to connect to {url}: {exc}")
                if error is not exc:
                    error.__cause__ = exc
                self._errors.push(error)
                self._close_streams()
            return

        if not self.lifecycle.mark_open():
            # close() won the race against the handshake
            await ws.close()
            return

        self._ws = ws
        log.info("Connected to %s", url)
        self._pumps = [
            asyncio.create_task(self._read_pump(ws), name="loggregator-read"),
            asyncio.create_task(self._keepalive_pump(ws), name="loggregator-keepalive"),
        ]

    # --- Pumps ------------------------------------------------------------------
    async def _read_pump(self, ws: ClientConnection) -> None:
        try:
            await self._read_frames(ws)
        except ConnectionClosed as exc:
            log.info("Connection to %s closed by peer (code=%s)", self.endpoint,
                     exc.rcvd.code if exc.rcvd else None)
            await self._terminate(_transport_error(exc))
        except Exception as exc:
            log.exception("Read pump for %s failed", self.endpoint)
            await self._terminate(_unexpected_error("read", exc))

    async def _read_frames(self, ws: ClientConnection) -> None:
        while True:
            frame = await ws.recv()
            try:
                record = decode_log_message(frame)
            except DecodeError as exc:
                log.debug("Skipping undecodable frame: %s", exc)
                self._errors.push(exc)
                continue
            self._records.push(record)

    async def _keepalive_pump(self, ws: ClientConnection) -> None:
        interval = self.settings.keepalive_interval
        try:
            while True:
                await asyncio.sleep(interval)
                if not self.lifecycle.is_open():
                    return
                await ws.send(KEEPALIVE_FRAME)
        except ConnectionClosed as exc:
            log.info("Keepalive to %s failed: %s", self.endpoint, exc)
            await self._terminate(_transport_error(exc))
        except Exception as exc:
            log.exception("Keepalive pump for %s failed", self.endpoint)
            await self._terminate(_unexpected_error("keepalive", exc))

    # --- Teardown -------------------------------------------------------------
    async def _terminate(self, error: Optional[Exception] = None) -> None:
        if self.lifecycle.try_close():
            if error is not None:
                log.warning("Transport failure on %s: %s", self.endpoint, error)
            await self._shutdown(error)

    async def _shutdown(self, error: Optional[Exception] = None) -> None:
        """Runs once, after the lifecycle has moved to CLOSED."""
        current = asyncio.current_task()
        others = [
            task for task in (self._dial_task, *self._pumps)
            if task is not None and task is not current and not task.done()
        ]
        try:
            for task in others:
                task.cancel()
            await asyncio.gather(*others, return_exceptions=True)
            if self._ws is not None:
                await self._ws.close()
        finally:
            if error is not None:
                self._errors.push(error)
            self._close_streams()

    def _close_streams(self) -> None:
        self._records.close()
        self._errors.close()
