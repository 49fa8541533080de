"""High-level background worker: offline cache plus upstream relay."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from offlinerelay._cache import CacheStorage
from offlinerelay._transport import Fetcher, OriginTransport
from offlinerelay.clients import Broadcaster, ClientRegistry, ExecutionContext, InMemoryClientRegistry
from offlinerelay.config import RelayConfig
from offlinerelay.connection import Connector, RelayConnection, aiohttp_connector
from offlinerelay.dispatch import MessageDispatcher
from offlinerelay.exceptions import RelayCacheError, RelayError
from offlinerelay.models.http import CachedResponse, FetchRequest
from offlinerelay.strategy import FetchStrategy

_logger = logging.getLogger(__name__)

_NOT_STARTED = "Worker not started. Use 'async with RelayWorker(...) as worker:'"


class RelayWorker:
    """Background worker attached to one application origin.

    Usage::

        async with RelayWorker(config) as worker:
            await worker.install()
            await worker.activate()
            worker.start()
            response = await worker.handle_fetch(request)

    ``fetcher``, ``registry`` and ``connector`` replace the aiohttp-backed
    defaults; tests pass fakes for all three.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        fetcher: Fetcher | None = None,
        registry: ClientRegistry | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._fetcher = fetcher
        self._connector = connector
        self._active_fetcher: Fetcher | None = None
        self.registry: ClientRegistry = registry if registry is not None else InMemoryClientRegistry()
        self.broadcaster = Broadcaster(self.registry)
        self._storage: CacheStorage | None = None
        self._strategy: FetchStrategy | None = None
        self._connection: RelayConnection | None = None
        self._dispatcher: MessageDispatcher | None = None
        self.installed = False
        self.activated = False

    @property
    def config(self) -> RelayConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RelayWorker:
        if (self._fetcher is None or self._connector is None) and self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        fetcher = self._fetcher
        if fetcher is None:
            assert self._http_session is not None  # noqa: S101
            fetcher = OriginTransport(self._config, self._http_session)
        connector = self._connector
        if connector is None:
            assert self._http_session is not None  # noqa: S101
            connector = aiohttp_connector(self._http_session)

        self._active_fetcher = fetcher
        self._storage = CacheStorage(self._config, fetcher)
        self._strategy = FetchStrategy(self._config, self._storage, fetcher)
        self._connection = RelayConnection(self._config, self.broadcaster, connector)
        self._dispatcher = MessageDispatcher(self._connection, self.broadcaster, self.update_cache)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._connection is not None:
            await self._connection.shutdown()
        await self.broadcaster.drain()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_storage(self) -> CacheStorage:
        if self._storage is None:
            raise RelayError(_NOT_STARTED)
        return self._storage

    @property
    def storage(self) -> CacheStorage:
        return self._require_storage()

    @property
    def fetcher(self) -> Fetcher:
        if self._active_fetcher is None:
            raise RelayError(_NOT_STARTED)
        return self._active_fetcher

    @property
    def connection(self) -> RelayConnection:
        if self._connection is None:
            raise RelayError(_NOT_STARTED)
        return self._connection

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    async def update_cache(self) -> None:
        """Populate the live generation with every manifest asset.

        Raises :class:`RelayCacheError` and commits nothing if any asset
        cannot be fetched.
        """
        cache = await self._require_storage().open(self._config.cache_name)
        await cache.add_all(self._config.assets)
        _logger.info("Cached %d asset(s) in %s", len(self._config.assets), self._config.cache_name)

    async def install(self) -> None:
        """Precache the asset manifest, then take over without waiting."""
        try:
            await self.update_cache()
        except RelayCacheError:
            self.installed = False
            raise
        self.skip_waiting()

    def skip_waiting(self) -> None:
        self.installed = True
        _logger.info("Worker installed (cache %s)", self._config.cache_name)

    async def cleanup_cache(self) -> list[str]:
        """Delete every cache generation except the live one."""
        storage = self._require_storage()
        stale = [name for name in await storage.keys() if name != self._config.cache_name]
        await asyncio.gather(*(storage.delete(name) for name in stale))
        return stale

    async def activate(self) -> None:
        """Evict stale generations and claim existing contexts, concurrently."""
        stale, _ = await asyncio.gather(self.cleanup_cache(), self.registry.claim())
        self.activated = True
        _logger.info("Worker activated (removed %d stale cache(s))", len(stale))

    def start(self) -> None:
        """Open the upstream relay connection."""
        self.connection.connect()

    # ------------------------------------------------------------------
    # Runtime events
    # ------------------------------------------------------------------

    async def handle_fetch(self, request: FetchRequest) -> CachedResponse | None:
        """Answer an intercepted request; ``None`` means default handling."""
        if self._strategy is None:
            raise RelayError(_NOT_STARTED)
        return await self._strategy.handle(request)

    async def handle_message(self, source: ExecutionContext, payload: Any) -> bool:
        """Dispatch a message received from *source*."""
        if self._dispatcher is None:
            raise RelayError(_NOT_STARTED)
        return await self._dispatcher.dispatch(source, payload)
