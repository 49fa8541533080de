"""aiohttp host for :class:`offlinerelay.worker.RelayWorker`.

Every HTTP request to the host is an intercepted fetch and every
WebSocket session on ``config.context_path`` is one execution context.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from aiohttp import WSMsgType, web

from offlinerelay._constants import HOP_BY_HOP_HEADERS
from offlinerelay.clients import InMemoryClientRegistry
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayCacheError, RelayNetworkError
from offlinerelay.models.http import CachedResponse, FetchRequest, RequestMode
from offlinerelay.worker import RelayWorker

_logger = logging.getLogger(__name__)

WORKER_KEY = web.AppKey("worker", RelayWorker)
REGISTRY_KEY = web.AppKey("registry", InMemoryClientRegistry)


class WebSocketContext:
    """Execution context backed by one host WebSocket session."""

    def __init__(self, ws: web.WebSocketResponse, context_id: str | None = None) -> None:
        self._ws = ws
        self._id = context_id or uuid.uuid4().hex

    @property
    def id(self) -> str:
        return self._id

    async def post_message(self, message: Any) -> None:
        if self._ws.closed:
            raise ConnectionResetError(f"context {self._id} is closed")
        await self._ws.send_json(message)


def request_mode(request: web.BaseRequest) -> RequestMode:
    """Classify *request* the way a browser would label its fetch."""
    fetch_mode = request.headers.get("Sec-Fetch-Mode", "").strip().lower()
    if fetch_mode:
        try:
            return RequestMode(fetch_mode)
        except ValueError:
            return RequestMode.NO_CORS
    accept = request.headers.get("Accept", "")
    if request.method == "GET" and accept.split(",", 1)[0].strip().startswith("text/html"):
        return RequestMode.NAVIGATE
    return RequestMode.NO_CORS


def build_fetch_request(config: RelayConfig, request: web.BaseRequest) -> FetchRequest:
    return FetchRequest(
        url=config.resolve(request.path_qs),
        method=request.method,
        mode=request_mode(request),
        headers=dict(request.headers),
    )


def to_web_response(response: CachedResponse) -> web.Response:
    headers = {k: v for k, v in response.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}
    return web.Response(
        status=response.status,
        reason=response.reason or None,
        headers=headers,
        body=response.body,
    )


async def _intercept(request: web.Request) -> web.StreamResponse:
    worker = request.app[WORKER_KEY]
    fetch_request = build_fetch_request(worker.config, request)
    response = await worker.handle_fetch(fetch_request)
    if response is not None:
        return to_web_response(response)

    # Not intercepted: plain pass-through to the origin.
    body = await request.read()
    try:
        response = await worker.fetcher.fetch(fetch_request.model_copy(update={"body": body}))
    except RelayNetworkError as exc:
        _logger.warning("Pass-through %s %s failed: %s", request.method, fetch_request.url, exc)
        raise web.HTTPBadGateway(text="Origin unreachable") from exc
    return to_web_response(response)


async def _context_session(request: web.Request) -> web.WebSocketResponse:
    worker = request.app[WORKER_KEY]
    registry = request.app[REGISTRY_KEY]

    ws = web.WebSocketResponse()
    await ws.prepare(request)
    context = WebSocketContext(ws)
    registry.register(context)
    try:
        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            try:
                payload = json.loads(msg.data)
            except (ValueError, RecursionError):
                _logger.debug("Ignoring non-JSON frame from context %s", context.id)
                continue
            await worker.handle_message(context, payload)
    finally:
        registry.unregister(context)
    return ws


def create_app(worker: RelayWorker) -> web.Application:
    """Build the host application around an entered *worker*."""
    registry = worker.registry
    if not isinstance(registry, InMemoryClientRegistry):
        raise TypeError("the aiohttp host needs an InMemoryClientRegistry")

    app = web.Application()
    app[WORKER_KEY] = worker
    app[REGISTRY_KEY] = registry
    app.router.add_get(worker.config.context_path, _context_session)
    app.router.add_route("*", "/{tail:.*}", _intercept)
    return app


async def serve(config: RelayConfig, stop: asyncio.Event) -> None:
    """Install, activate and run the host until *stop* is set."""
    async with RelayWorker(config) as worker:
        try:
            await worker.install()
        except RelayCacheError as exc:
            _logger.warning("Install failed, serving without precached assets: %s", exc)
        await worker.activate()
        worker.start()

        runner = web.AppRunner(create_app(worker))
        await runner.setup()
        site = web.TCPSite(runner, config.listen_host, config.listen_port)
        await site.start()
        _logger.info(
            "Serving %s on http://%s:%d (contexts at %s)",
            config.origin,
            config.listen_host,
            config.listen_port,
            config.context_path,
        )
        try:
            await stop.wait()
        finally:
            await runner.cleanup()
