"""Cache-first resource strategy with network write-back and offline fallback."""

from __future__ import annotations

import logging

from offlinerelay._cache import CacheStorage
from offlinerelay._transport import Fetcher
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayNetworkError
from offlinerelay.models.http import CachedResponse, FetchRequest

_logger = logging.getLogger(__name__)


class FetchStrategy:
    """Answer intercepted GET requests.

    Order, first success wins:

    1. the live cache generation,
    2. the origin (status 200 responses are written back to the cache),
    3. on a transport failure only: the cache again, then the fallback
       document for navigations, then a 503 placeholder.
    """

    def __init__(self, config: RelayConfig, storage: CacheStorage, fetcher: Fetcher) -> None:
        self._config = config
        self._storage = storage
        self._fetcher = fetcher

    @staticmethod
    def applies_to(request: FetchRequest) -> bool:
        return request.method == "GET" and request.is_network

    async def handle(self, request: FetchRequest) -> CachedResponse | None:
        """Return the response for *request*, or ``None`` if it is not intercepted."""
        if not self.applies_to(request):
            return None
        try:
            cached = await self.serve_from_cache(request)
            if cached is not None:
                return cached
            return await self.fetch_from_network(request)
        except RelayNetworkError as exc:
            _logger.debug("Network unavailable for %s: %s", request.url, exc)
            return await self.offline_fallback(request)

    async def serve_from_cache(self, request: FetchRequest) -> CachedResponse | None:
        cache = await self._storage.open(self._config.cache_name)
        cached = cache.match(request)
        if cached is not None:
            _logger.debug("Cache hit %s", request.url)
        return cached

    async def fetch_from_network(self, request: FetchRequest) -> CachedResponse:
        response = await self._fetcher.fetch(request)
        if response.status == 200:
            cache = await self._storage.open(self._config.cache_name)
            cache.put(request, response.clone())
        return response

    async def offline_fallback(self, request: FetchRequest) -> CachedResponse:
        cached = await self.serve_from_cache(request)
        if cached is not None:
            return cached
        if request.is_navigation:
            cache = await self._storage.open(self._config.cache_name)
            fallback = cache.match(self._config.fallback_path)
            if fallback is not None:
                _logger.debug("Serving %s for offline navigation to %s", self._config.fallback_path, request.url)
                return fallback
        _logger.info("Offline and no cached copy of %s", request.url)
        return CachedResponse.offline(request.url)
