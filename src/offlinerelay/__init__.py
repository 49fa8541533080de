"""offlinerelay - Offline asset cache and upstream WebSocket relay."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("offlinerelay")
except PackageNotFoundError:
    __version__ = "0+local"
from offlinerelay.clients import Broadcaster, ClientRegistry, ExecutionContext, InMemoryClientRegistry
from offlinerelay.config import RelayConfig
from offlinerelay.connection import ConnectionState, RelayConnection
from offlinerelay.exceptions import (
    RelayCacheError,
    RelayConfigError,
    RelayConnectionError,
    RelayError,
    RelayNetworkError,
)
from offlinerelay.models import CachedResponse, FetchRequest, MessageType, RequestMode
from offlinerelay.worker import RelayWorker

__all__ = [
    "__version__",
    "Broadcaster",
    "CachedResponse",
    "ClientRegistry",
    "ConnectionState",
    "ExecutionContext",
    "FetchRequest",
    "InMemoryClientRegistry",
    "MessageType",
    "RelayCacheError",
    "RelayConfig",
    "RelayConfigError",
    "RelayConnection",
    "RelayConnectionError",
    "RelayError",
    "RelayNetworkError",
    "RelayWorker",
    "RequestMode",
]
