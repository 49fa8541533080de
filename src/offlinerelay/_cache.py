"""Versioned content cache: named generations of request → response entries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from offlinerelay._transport import Fetcher
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayCacheError, RelayNetworkError
from offlinerelay.models.http import CachedResponse, FetchRequest

_logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


class Cache:
    """One cache generation.

    Entries are keyed on :attr:`FetchRequest.cache_key`.  ``match`` and
    ``put`` hand out and store clones so callers can never mutate an
    entry in place.
    """

    def __init__(self, name: str, config: RelayConfig, fetcher: Fetcher) -> None:
        self.name = name
        self._config = config
        self._fetcher = fetcher
        self._entries: dict[CacheKey, CachedResponse] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _request(self, target: FetchRequest | str) -> FetchRequest:
        if isinstance(target, FetchRequest):
            return target
        return FetchRequest(url=self._config.resolve(target))

    def match(self, target: FetchRequest | str) -> CachedResponse | None:
        """Return the stored response for *target* (a request or a path)."""
        entry = self._entries.get(self._request(target).cache_key)
        return entry.clone() if entry is not None else None

    def put(self, target: FetchRequest | str, response: CachedResponse) -> None:
        request = self._request(target)
        self._entries[request.cache_key] = response.clone()
        _logger.debug("Cached %s %s in %s", request.method, request.url, self.name)

    def keys(self) -> list[FetchRequest]:
        return [FetchRequest(method=method, url=url) for method, url in self._entries]

    async def _fetch_for_add(self, request: FetchRequest) -> CachedResponse:
        try:
            response = await self._fetcher.fetch(request)
        except RelayNetworkError as exc:
            raise RelayCacheError(f"Failed to fetch {request.url}: {exc}", url=request.url) from exc
        if response.status != 200:
            raise RelayCacheError(
                f"Failed to fetch {request.url}: HTTP {response.status}",
                url=request.url,
                status_code=response.status,
            )
        return response

    async def add(self, target: FetchRequest | str) -> None:
        """Fetch *target* and store it; raise :class:`RelayCacheError` on failure."""
        request = self._request(target)
        response = await self._fetch_for_add(request)
        self.put(request, response)

    async def add_all(self, targets: Iterable[FetchRequest | str]) -> None:
        """Fetch every target, then store all of them.

        Nothing is written unless every fetch succeeded.
        """
        requests = [self._request(target) for target in targets]
        responses = await asyncio.gather(*(self._fetch_for_add(request) for request in requests))
        for request, response in zip(requests, responses, strict=True):
            self.put(request, response)


class CacheStorage:
    """All cache generations, by name, in creation order."""

    def __init__(self, config: RelayConfig, fetcher: Fetcher) -> None:
        self._config = config
        self._fetcher = fetcher
        self._caches: dict[str, Cache] = {}

    async def open(self, name: str) -> Cache:
        cache = self._caches.get(name)
        if cache is None:
            cache = Cache(name, self._config, self._fetcher)
            self._caches[name] = cache
            _logger.debug("Created cache generation %s", name)
        return cache

    async def has(self, name: str) -> bool:
        return name in self._caches

    async def keys(self) -> list[str]:
        return list(self._caches)

    async def delete(self, name: str) -> bool:
        removed = self._caches.pop(name, None) is not None
        if removed:
            _logger.info("Deleted cache generation %s", name)
        return removed

