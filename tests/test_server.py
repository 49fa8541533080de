from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

import pytest
from aiohttp.test_utils import TestClient, TestServer, make_mocked_request

from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayNetworkError
from offlinerelay.models.http import CachedResponse, FetchRequest, RequestMode
from offlinerelay.server import build_fetch_request, create_app
from offlinerelay.worker import RelayWorker

ORIGIN = "https://app.example.com"
ASSETS = ("/index.html", "/application.js")


@dataclass
class FakeOrigin:
    resources: dict[str, bytes] = field(
        default_factory=lambda: {
            "/index.html": b"<html>shell</html>",
            "/application.js": b"console.log('app')",
        }
    )
    online: bool = True
    requests: list[FetchRequest] = field(default_factory=list)

    async def fetch(self, request: FetchRequest) -> CachedResponse:
        self.requests.append(request)
        if not self.online:
            raise RelayNetworkError("connection refused", url=request.url)
        if request.method != "GET":
            return CachedResponse(
                status=201,
                reason="Created",
                headers={"Content-Type": "application/json"},
                body=b'{"echo": "' + request.body + b'"}',
                url=request.url,
            )
        body = self.resources.get(urlsplit(request.url).path)
        if body is None:
            return CachedResponse(status=404, reason="Not Found", url=request.url)
        return CachedResponse(status=200, reason="OK", body=body, url=request.url)


async def _unused_connector(url: str) -> Any:
    raise AssertionError(f"relay should not connect to {url}")


async def _client(origin: FakeOrigin) -> tuple[RelayWorker, TestClient]:
    config = RelayConfig(origin=ORIGIN, assets=ASSETS)
    worker = RelayWorker(config, fetcher=origin, connector=_unused_connector)
    await worker.__aenter__()
    await worker.install()
    await worker.activate()
    client = TestClient(TestServer(create_app(worker)))
    await client.start_server()
    return worker, client


async def _close(worker: RelayWorker, client: TestClient) -> None:
    await client.close()
    await worker.__aexit__(None, None, None)


@pytest.mark.asyncio
async def test_cached_asset_is_served_without_network() -> None:
    origin = FakeOrigin()
    worker, client = await _client(origin)
    try:
        origin.requests.clear()
        resp = await client.get("/application.js")
        assert resp.status == 200
        assert await resp.read() == b"console.log('app')"
        assert origin.requests == []
    finally:
        await _close(worker, client)


@pytest.mark.asyncio
async def test_offline_navigation_and_subresource() -> None:
    origin = FakeOrigin()
    worker, client = await _client(origin)
    try:
        origin.online = False

        page = await client.get("/settings/profile", headers={"Accept": "text/html,application/xhtml+xml"})
        assert page.status == 200
        assert await page.text() == "<html>shell</html>"

        image = await client.get("/logo.png", headers={"Accept": "image/png"})
        assert image.status == 503
        assert image.headers["Content-Type"].startswith("text/plain")
        assert await image.text() == "Offline - Content not available"
    finally:
        await _close(worker, client)


@pytest.mark.asyncio
async def test_post_is_passed_through_to_origin() -> None:
    origin = FakeOrigin()
    worker, client = await _client(origin)
    try:
        resp = await client.post("/api/items", data=b"abc")
        assert resp.status == 201
        assert await resp.json() == {"echo": "abc"}
        assert origin.requests[-1].method == "POST"
        assert origin.requests[-1].body == b"abc"
    finally:
        await _close(worker, client)


@pytest.mark.asyncio
async def test_pass_through_failure_is_bad_gateway() -> None:
    origin = FakeOrigin(online=False)
    config = RelayConfig(origin=ORIGIN, assets=ASSETS)
    async with RelayWorker(config, fetcher=origin, connector=_unused_connector) as worker:
        async with TestClient(TestServer(create_app(worker))) as client:
            resp = await client.delete("/api/items/1")
            assert resp.status == 502


@pytest.mark.asyncio
async def test_context_ping_pong() -> None:
    worker, client = await _client(FakeOrigin())
    try:
        ws = await client.ws_connect("/_relay")
        await ws.send_json({"type": "ping"})
        assert await ws.receive_json(timeout=1) == {"type": "pong"}
        await ws.close()
    finally:
        await _close(worker, client)


@pytest.mark.asyncio
async def test_message_is_relayed_between_contexts() -> None:
    worker, client = await _client(FakeOrigin())
    try:
        sender = await client.ws_connect("/_relay")
        receiver = await client.ws_connect("/_relay")
        for ws in (sender, receiver):
            await ws.send_json({"type": "ping"})
            assert await ws.receive_json(timeout=1) == {"type": "pong"}

        await sender.send_json({"type": "message", "content": {"text": "hello"}})
        assert await receiver.receive_json(timeout=1) == {"type": "message", "content": {"text": "hello"}}

        await sender.send_json({"type": "ping"})
        assert await sender.receive_json(timeout=1) == {"type": "pong"}

        await sender.close()
        await receiver.close()
    finally:
        await _close(worker, client)


@pytest.mark.asyncio
async def test_malformed_context_frames_keep_session_open() -> None:
    worker, client = await _client(FakeOrigin())
    try:
        ws = await client.ws_connect("/_relay")
        await ws.send_str("[" * 100_000 + "]" * 100_000)
        await ws.send_str("not json")
        await ws.send_json({"type": "ping"})
        assert await ws.receive_json(timeout=1) == {"type": "pong"}
        await ws.close()
    finally:
        await _close(worker, client)


def test_build_fetch_request_classifies_navigation() -> None:
    config = RelayConfig(origin=ORIGIN)
    nav = build_fetch_request(config, make_mocked_request("GET", "/a?b=1", headers={"Sec-Fetch-Mode": "navigate"}))
    html = build_fetch_request(config, make_mocked_request("GET", "/a", headers={"Accept": "text/html"}))
    script = build_fetch_request(config, make_mocked_request("GET", "/a.js", headers={"Accept": "*/*"}))

    assert nav.url == f"{ORIGIN}/a?b=1"
    assert nav.mode == RequestMode.NAVIGATE
    assert html.mode == RequestMode.NAVIGATE
    assert script.mode == RequestMode.NO_CORS
