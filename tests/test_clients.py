from __future__ import annotations

from typing import Any

import pytest

from offlinerelay.clients import Broadcaster, InMemoryClientRegistry


class FakeContext:
    def __init__(self, context_id: str, *, fail: bool = False) -> None:
        self._id = context_id
        self.fail = fail
        self.received: list[Any] = []

    @property
    def id(self) -> str:
        return self._id

    async def post_message(self, message: Any) -> None:
        if self.fail:
            raise ConnectionResetError("context went away")
        self.received.append(message)


@pytest.mark.asyncio
async def test_broadcast_excludes_only_the_given_context() -> None:
    registry = InMemoryClientRegistry()
    a, b, c = FakeContext("a"), FakeContext("b"), FakeContext("c")
    for ctx in (a, b, c):
        registry.register(ctx)
    broadcaster = Broadcaster(registry)

    await broadcaster.broadcast({"type": "message", "content": "hi"}, exclude=a)
    await broadcaster.drain()

    assert a.received == []
    assert b.received == [{"type": "message", "content": "hi"}]
    assert c.received == [{"type": "message", "content": "hi"}]


@pytest.mark.asyncio
async def test_failed_delivery_does_not_stop_others() -> None:
    registry = InMemoryClientRegistry()
    broken, healthy = FakeContext("broken", fail=True), FakeContext("healthy")
    registry.register(broken)
    registry.register(healthy)
    broadcaster = Broadcaster(registry)

    tasks = await broadcaster.broadcast({"type": "pong"})
    await broadcaster.drain()

    assert len(tasks) == 2
    assert all(task.done() and task.exception() is None for task in tasks)
    assert healthy.received == [{"type": "pong"}]


@pytest.mark.asyncio
async def test_broadcast_queries_registry_each_time() -> None:
    registry = InMemoryClientRegistry()
    early, late = FakeContext("early"), FakeContext("late")
    registry.register(early)
    broadcaster = Broadcaster(registry)

    await broadcaster.broadcast(1)
    registry.register(late)
    registry.unregister(early)
    await broadcaster.broadcast(2)
    await broadcaster.drain()

    assert early.received == [1]
    assert late.received == [2]


@pytest.mark.asyncio
async def test_broadcast_includes_uncontrolled_contexts() -> None:
    registry = InMemoryClientRegistry()
    ctx = FakeContext("a")
    registry.register(ctx)
    assert not registry.is_controlled(ctx)

    broadcaster = Broadcaster(registry)
    await broadcaster.broadcast({"type": "status", "connected": True})
    await broadcaster.drain()

    assert ctx.received == [{"type": "status", "connected": True}]
    assert await registry.list_active(include_uncontrolled=False) == []
    assert await registry.list_active() == [ctx]


@pytest.mark.asyncio
async def test_claim_controls_existing_and_future_contexts() -> None:
    registry = InMemoryClientRegistry()
    before, after = FakeContext("before"), FakeContext("after")
    registry.register(before)

    await registry.claim()
    registry.register(after)

    assert registry.is_controlled(before)
    assert registry.is_controlled(after)
    assert await registry.list_active(include_uncontrolled=False) == [before, after]


class _BrokenRegistry:
    async def list_active(self, *, include_uncontrolled: bool = True) -> list[FakeContext]:
        raise RuntimeError("registry unavailable")

    async def claim(self) -> None:
        return None


@pytest.mark.asyncio
async def test_registry_failure_drops_broadcast_without_raising() -> None:
    broadcaster = Broadcaster(_BrokenRegistry())

    tasks = await broadcaster.broadcast({"type": "status", "connected": False})
    await broadcaster.drain()

    assert tasks == []
