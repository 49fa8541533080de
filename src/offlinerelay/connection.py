"""Upstream relay connection state machine.

Owns the single duplex connection to the backend:

- ``disconnected`` → ``connecting`` on :meth:`RelayConnection.connect`,
- ``connecting`` → ``connected`` when the socket opens,
- ``connected`` → ``closing`` on a local :meth:`RelayConnection.close`,
- any state → ``disconnected`` when the socket closes or fails to open,
  followed by exactly one scheduled reconnect attempt.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from offlinerelay._redact import redact_for_log
from offlinerelay.clients import Broadcaster
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayConnectionError
from offlinerelay.models.messages import ErrorMessage, RelayMessage, StatusMessage

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class UpstreamSocket(Protocol):
    """The subset of :class:`aiohttp.ClientWebSocketResponse` the relay uses."""

    def __aiter__(self) -> AsyncIterator[aiohttp.WSMessage]:
        ...

    async def send_str(self, data: str) -> None:
        ...

    async def close(self) -> Any:
        ...

    def exception(self) -> BaseException | None:
        ...


Connector = Callable[[str], Awaitable[UpstreamSocket]]


def aiohttp_connector(http_session: aiohttp.ClientSession) -> Connector:
    """Open upstream sockets with ``http_session.ws_connect``."""

    async def _connect(url: str) -> UpstreamSocket:
        try:
            return await http_session.ws_connect(url)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise RelayConnectionError(f"WebSocket connection to {url} failed: {exc}") from exc

    return _connect


def _describe(error: BaseException | object) -> str:
    text = str(error)
    return text if text else type(error).__name__


class RelayConnection:
    """Single upstream connection with fixed-delay reconnect."""

    def __init__(
        self,
        config: RelayConfig,
        broadcaster: Broadcaster,
        connector: Connector,
    ) -> None:
        self._config = config
        self._broadcaster = broadcaster
        self._connector = connector
        self._url = config.relay_url
        self._state = ConnectionState.DISCONNECTED
        self._ws: UpstreamSocket | None = None
        self._task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._stopped = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        handle = self._reconnect_handle
        return handle is not None and not handle.cancelled()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Start a connect attempt unless one is running or a socket is open."""
        if self._state != ConnectionState.DISCONNECTED:
            return
        self._stopped = False
        self._state = ConnectionState.CONNECTING
        _logger.debug("Connecting to %s", self._url)
        self._task = asyncio.create_task(self._run())

    async def send(self, packet: RelayMessage | Mapping[str, Any]) -> bool:
        """Send *packet* upstream; ``False`` when not connected or the send failed."""
        ws = self._ws
        if self._state != ConnectionState.CONNECTED or ws is None:
            return False
        payload = packet.to_payload() if isinstance(packet, RelayMessage) else dict(packet)
        try:
            await ws.send_str(json.dumps(payload))
        except (ConnectionError, aiohttp.ClientError, RuntimeError) as exc:
            _logger.warning("Upstream send failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        """Close the open socket; the close signal drives the transition."""
        ws = self._ws
        if self._state != ConnectionState.CONNECTED or ws is None:
            return
        self._state = ConnectionState.CLOSING
        _logger.debug("Closing upstream connection")
        await ws.close()

    async def shutdown(self) -> None:
        """Close everything and stop reconnecting."""
        self._stopped = True
        self._cancel_reconnect()
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(ConnectionError, aiohttp.ClientError, RuntimeError):
                await ws.close()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._ws = None
        self._state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Socket lifecycle
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            ws = await self._connector(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._on_error(exc)
            await self._on_close()
            return

        self._ws = ws
        try:
            await self._on_open()
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._on_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    await self._on_message(bytes(msg.data).decode("utf-8", errors="replace"))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    await self._on_error(ws.exception() or msg.data)
        except asyncio.CancelledError:
            self._ws = None
            raise
        except Exception:
            _logger.warning("Relay reader failed, dropping connection to %s", self._url, exc_info=True)
            with contextlib.suppress(ConnectionError, aiohttp.ClientError, RuntimeError):
                await ws.close()
        self._ws = None
        await self._on_close()

    async def _on_open(self) -> None:
        self._state = ConnectionState.CONNECTED
        _logger.info("Relay connected to %s", self._url)
        await self._broadcaster.broadcast(StatusMessage(connected=True).to_payload())

    async def _on_message(self, data: str) -> None:
        try:
            message = json.loads(data)
        except (ValueError, RecursionError):
            _logger.warning("Dropping non-JSON upstream frame: %s", redact_for_log(data, max_string=64))
            return
        await self._broadcaster.broadcast(message)

    async def _on_close(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        _logger.info("Relay disconnected from %s", self._url)
        if not self._stopped:
            self._schedule_reconnect()
        await self._broadcaster.broadcast(StatusMessage(connected=False).to_payload())

    async def _on_error(self, error: BaseException | object) -> None:
        _logger.warning("Relay transport error: %s", error)
        await self._broadcaster.broadcast(ErrorMessage(error=_describe(error)).to_payload())

    # ------------------------------------------------------------------
    # Reconnect timer
    # ------------------------------------------------------------------

    def _cancel_reconnect(self) -> None:
        handle = self._reconnect_handle
        self._reconnect_handle = None
        if handle is not None:
            handle.cancel()

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._config.reconnect_delay, self._reconnect)
        _logger.debug("Reconnect scheduled in %.1fs", self._config.reconnect_delay)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if not self._stopped:
            self.connect()
