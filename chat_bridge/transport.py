"""
chat_bridge.transport
---------------------

WebSocket client for the control channel.

One outbound connection is kept alive for the lifetime of the process: when
it closes, for whatever reason, a new attempt is made after a delay that
doubles on every closed cycle (up to a ceiling) and drops back to the base
value once a connection opens.  A heartbeat is sent on a fixed period while
the connection is open.

Nothing is queued: a message sent while the socket is not open is dropped
with a warning.

Example
-------
>>> client = TransportClient("ws://localhost:8765", controller.handle_envelope)
>>> await client.run()
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from .config import BridgeTimings
from .constants import ConnectionState, ConnectionStatus
from .models import Heartbeat, OutboundMessage

_LOG = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]
StatusCallback = Callable[[ConnectionStatus], None]

# Seconds allowed for the opening handshake.
_OPEN_TIMEOUT = 10.0


class Backoff:
    """Geometric reconnect delay: base, 2*base, 4*base, ... capped at ceiling."""

    def __init__(self, base: float, ceiling: float) -> None:
        self.base = base
        self.ceiling = ceiling
        self.current = base

    def next(self) -> float:
        """Return the delay to wait now and double the one after it."""
        delay = self.current
        self.current = min(self.current * 2, self.ceiling)
        return delay

    def reset(self) -> None:
        self.current = self.base


def _log_status(status: ConnectionStatus) -> None:
    if status is ConnectionStatus.CONNECTED:
        _LOG.info("Control channel connected")
    else:
        _LOG.warning("Control channel %s", status.value)


class TransportClient:
    """
    Reconnecting control-channel client.

    Parameters
    ----------
    url : str
        WebSocket URL of the transport server.
    on_message : coroutine function
        Receives every inbound record that parsed as a JSON object.  Each call
        runs in its own task so a long request never stalls the reader.
    on_status : callable, optional
        Receives ``connected`` / ``disconnected`` / ``error`` transitions.
    connect : callable, optional
        Factory with the signature of ``websockets.connect``.
    """

    def __init__(
        self,
        url: str,
        on_message: MessageHandler,
        *,
        timings: BridgeTimings | None = None,
        on_status: Optional[StatusCallback] = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.timings = timings or BridgeTimings()
        self.backoff = Backoff(
            self.timings.reconnect_base_delay, self.timings.reconnect_max_delay
        )
        self._on_message = on_message
        self._on_status = on_status or _log_status
        self._connect = connect
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        self._stopping = asyncio.Event()
        self._heartbeat_task: asyncio.Task | None = None
        self._dispatch_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN and self._ws is not None

    # ---------------- Lifecycle ---------------- #

    async def run(self) -> None:
        """Connect, read and reconnect until ``close()`` is called."""
        self._stopping.clear()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        try:
            while not self._stopping.is_set():
                await self.connect()
                if self._stopping.is_set():
                    break
                delay = self.backoff.next()
                _LOG.info("Reconnecting to %s in %.1fs", self.url, delay)
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self._stop_heartbeat()
            self._state = ConnectionState.CLOSED

    async def connect(self) -> None:
        """
        Open one connection and read from it until it closes.

        Errors are reported as status ``error``; the close that follows is
        reported as ``disconnected`` in every case.
        """
        self._state = ConnectionState.CONNECTING
        _LOG.info("Connecting to %s", self.url)
        try:
            async with self._connect(
                self.url, open_timeout=_OPEN_TIMEOUT
            ) as ws:
                self._ws = ws
                self._state = ConnectionState.OPEN
                self.backoff.reset()
                self._on_status(ConnectionStatus.CONNECTED)
                async for raw in ws:
                    self.handle_raw(raw)
        except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
            _LOG.error("Control channel error: %s (%s)", exc, type(exc).__name__)
            self._on_status(ConnectionStatus.ERROR)
        finally:
            self._ws = None
            self._state = ConnectionState.CLOSED
            self._on_status(ConnectionStatus.DISCONNECTED)

    async def close(self) -> None:
        """Stop reconnecting and close the socket."""
        self._stopping.set()
        ws = self._ws
        if ws is not None:
            self._state = ConnectionState.CLOSING
            await ws.close()
        await self._stop_heartbeat()
        for task in list(self._dispatch_tasks):
            task.cancel()

    # ---------------- Outbound ---------------- #

    async def send(self, message: OutboundMessage) -> bool:
        """Send *message* if the socket is open; never raises."""
        ws = self._ws
        if not self.is_open or ws is None:
            _LOG.warning("Control channel not open; dropping %s message", message.type)
            return False
        try:
            await ws.send(message.to_json())
        except (WebSocketException, OSError) as exc:
            _LOG.warning("Failed to send %s message: %s", message.type, exc)
            return False
        return True

    async def _heartbeat_loop(self) -> None:
        while not self._stopping.is_set():
            await asyncio.sleep(self.timings.heartbeat_interval)
            if self.is_open:
                _LOG.debug("Sending heartbeat")
                await self.send(Heartbeat())
            else:
                _LOG.debug("Skipping heartbeat, control channel not open")

    async def _stop_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # ---------------- Inbound ---------------- #

    def handle_raw(self, raw: str | bytes) -> Optional[asyncio.Task]:
        """
        Parse one inbound record and dispatch it.

        Malformed input is logged and dropped; returns the dispatch task when
        the record was accepted.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            _LOG.error("Dropping malformed control message: %s", exc)
            return None
        if not isinstance(data, dict):
            _LOG.error("Dropping control message that is not a JSON object")
            return None

        _LOG.debug("Control message received: id=%s", data.get("id"))
        task = asyncio.ensure_future(self._dispatch(data))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)
        return task

    async def _dispatch(self, data: dict[str, Any]) -> None:
        try:
            await self._on_message(data)
        except asyncio.CancelledError:
            raise
        except Exception:
            _LOG.exception("Control message handler failed")
