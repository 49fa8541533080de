"""Messages exchanged with execution contexts and the upstream relay.

Inbound payloads are opaque JSON objects; only ``type`` is inspected.
Outbound notifications are built from the models below and sent as the
dict produced by :meth:`RelayMessage.to_payload`.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from offlinerelay.models._base import RelayBaseModel


class MessageType(StrEnum):
    # Inbound from contexts
    ONLINE = "online"
    OFFLINE = "offline"
    MESSAGE = "message"
    PING = "ping"
    UPDATE_CACHE = "updateCache"
    # Outbound to contexts
    STATUS = "status"
    ERROR = "error"
    PONG = "pong"
    CACHE_UPDATED = "cacheUpdated"
    CACHE_UPDATE_FAILED = "cacheUpdateFailed"


class RelayMessage(RelayBaseModel):
    type: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class StatusMessage(RelayMessage):
    type: Literal["status"] = "status"
    connected: bool


class ErrorMessage(RelayMessage):
    type: Literal["error"] = "error"
    error: str


class RelayEnvelope(RelayMessage):
    """Wrapper carrying opaque application content between contexts and upstream."""

    type: Literal["message"] = "message"
    content: Any = None


class PongMessage(RelayMessage):
    type: Literal["pong"] = "pong"


class CacheUpdatedMessage(RelayMessage):
    type: Literal["cacheUpdated"] = "cacheUpdated"


class CacheUpdateFailedMessage(RelayMessage):
    type: Literal["cacheUpdateFailed"] = "cacheUpdateFailed"
    error: str


def message_type(payload: Any) -> str | None:
    """Return the ``type`` of an inbound payload, or ``None`` if it has none."""
    if not isinstance(payload, dict):
        return None
    value = payload.get("type")
    return value if isinstance(value, str) else None
