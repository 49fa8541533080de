"""HTTP transport that fetches intercepted requests from the origin."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from offlinerelay._constants import HOP_BY_HOP_HEADERS
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayNetworkError
from offlinerelay.models.http import CachedResponse, FetchRequest

_logger = logging.getLogger(__name__)

# Request headers that describe the client connection, not the resource.
_DROPPED_REQUEST_HEADERS: frozenset[str] = HOP_BY_HOP_HEADERS | {"host"}


class Fetcher(Protocol):
    """Structural fetch interface used by the cache and the fetch strategy.

    Implementations raise :class:`RelayNetworkError` for transport-level
    failures and return any HTTP status as a normal response.
    """

    async def fetch(self, request: FetchRequest) -> CachedResponse:
        ...


class OriginTransport:
    """Fetch requests from the configured origin over aiohttp."""

    def __init__(self, config: RelayConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = (
            aiohttp.ClientTimeout(total=config.fetch_timeout) if config.fetch_timeout is not None else None
        )

    async def fetch(self, request: FetchRequest) -> CachedResponse:
        headers = {k: v for k, v in request.headers.items() if k.lower() not in _DROPPED_REQUEST_HEADERS}

        _logger.debug("%s %s", request.method, request.url)

        try:
            async with self._http.request(
                request.method,
                request.url,
                headers=headers,
                data=request.body or None,
                timeout=self._timeout,
                allow_redirects=True,
            ) as resp:
                body = await resp.read()
                response_headers = {
                    k: v for k, v in resp.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
                }
                return CachedResponse(
                    status=resp.status,
                    reason=resp.reason or "",
                    headers=response_headers,
                    body=body,
                    url=str(resp.url),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise RelayNetworkError(
                f"Request to {request.url} failed: {exc!r}",
                url=request.url,
            ) from exc
