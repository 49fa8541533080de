"""Dispatch of messages received from execution contexts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from offlinerelay.clients import Broadcaster, ExecutionContext
from offlinerelay.connection import RelayConnection
from offlinerelay.exceptions import RelayError
from offlinerelay.models.messages import (
    CacheUpdatedMessage,
    CacheUpdateFailedMessage,
    MessageType,
    PongMessage,
    RelayEnvelope,
    message_type,
)

_logger = logging.getLogger(__name__)

Handler = Callable[[ExecutionContext, dict[str, Any]], Awaitable[None]]


class MessageDispatcher:
    """Route inbound context messages by ``type``.

    ``update_cache`` is the cache refresh operation; it raises on failure
    and the failure is reported back to the requesting context only.
    """

    def __init__(
        self,
        connection: RelayConnection,
        broadcaster: Broadcaster,
        update_cache: Callable[[], Awaitable[None]],
    ) -> None:
        self._connection = connection
        self._broadcaster = broadcaster
        self._update_cache = update_cache
        self._handlers: dict[str, Handler] = {
            MessageType.ONLINE: self._on_online,
            MessageType.OFFLINE: self._on_offline,
            MessageType.MESSAGE: self._on_message,
            MessageType.PING: self._on_ping,
            MessageType.UPDATE_CACHE: self._on_update_cache,
        }

    async def dispatch(self, source: ExecutionContext, payload: Any) -> bool:
        """Run the handler for *payload*; return ``False`` if there is none."""
        kind = message_type(payload)
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            _logger.debug("Ignoring message of type %r from %s", kind, source.id)
            return False
        await handler(source, payload)
        return True

    async def _on_online(self, _source: ExecutionContext, _payload: dict[str, Any]) -> None:
        self._connection.connect()

    async def _on_offline(self, _source: ExecutionContext, _payload: dict[str, Any]) -> None:
        if self._connection.connected:
            await self._connection.close()

    async def _on_message(self, source: ExecutionContext, payload: dict[str, Any]) -> None:
        packet = RelayEnvelope(content=payload.get("content")).to_payload()
        # Other contexts see the message without waiting for the upstream round trip.
        sent, _ = await asyncio.gather(
            self._connection.send(packet),
            self._broadcaster.broadcast(packet, exclude=source),
        )
        if not sent:
            _logger.debug("Message from %s not sent upstream (state=%s)", source.id, self._connection.state)

    async def _on_ping(self, source: ExecutionContext, _payload: dict[str, Any]) -> None:
        await self._broadcaster.post(source, PongMessage().to_payload())

    async def _on_update_cache(self, source: ExecutionContext, _payload: dict[str, Any]) -> None:
        try:
            await self._update_cache()
        except RelayError as exc:
            _logger.warning("Cache refresh requested by %s failed: %s", source.id, exc)
            await self._broadcaster.post(source, CacheUpdateFailedMessage(error=str(exc)).to_payload())
            return
        await self._broadcaster.post(source, CacheUpdatedMessage().to_payload())
