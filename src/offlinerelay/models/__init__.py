"""Value models for offlinerelay."""

from offlinerelay.models._base import RelayBaseModel
from offlinerelay.models.http import CachedResponse, FetchRequest, RequestMode
from offlinerelay.models.messages import (
    CacheUpdatedMessage,
    CacheUpdateFailedMessage,
    ErrorMessage,
    MessageType,
    PongMessage,
    RelayEnvelope,
    RelayMessage,
    StatusMessage,
    message_type,
)

__all__ = [
    "CacheUpdateFailedMessage",
    "CacheUpdatedMessage",
    "CachedResponse",
    "ErrorMessage",
    "FetchRequest",
    "MessageType",
    "PongMessage",
    "RelayBaseModel",
    "RelayEnvelope",
    "RelayMessage",
    "RequestMode",
    "StatusMessage",
    "message_type",
]
