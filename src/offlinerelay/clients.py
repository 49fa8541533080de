"""Execution context registry and broadcast fan-out.

The core only depends on the :class:`ClientRegistry` and
:class:`ExecutionContext` protocols; the host decides what a context is
(the aiohttp host uses one WebSocket session per context).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol

from offlinerelay._redact import redact_for_log

_logger = logging.getLogger(__name__)


class ExecutionContext(Protocol):
    """One foreground instance of the application."""

    @property
    def id(self) -> str:
        ...

    async def post_message(self, message: Any) -> None:
        ...


class ClientRegistry(Protocol):
    """Capability interface for enumerating and claiming contexts."""

    async def list_active(self, *, include_uncontrolled: bool = True) -> list[ExecutionContext]:
        ...

    async def claim(self) -> None:
        ...


class InMemoryClientRegistry:
    """Registry backed by the host's own set of live contexts.

    Contexts registered before :meth:`claim` are uncontrolled; after the
    first claim every new context is controlled on registration.
    """

    def __init__(self) -> None:
        self._contexts: dict[str, ExecutionContext] = {}
        self._controlled: set[str] = set()
        self._claimed = False

    def __len__(self) -> int:
        return len(self._contexts)

    def register(self, context: ExecutionContext) -> None:
        self._contexts[context.id] = context
        if self._claimed:
            self._controlled.add(context.id)
        _logger.debug("Context %s registered (%d active)", context.id, len(self._contexts))

    def unregister(self, context: ExecutionContext) -> None:
        self._contexts.pop(context.id, None)
        self._controlled.discard(context.id)
        _logger.debug("Context %s unregistered (%d active)", context.id, len(self._contexts))

    def is_controlled(self, context: ExecutionContext) -> bool:
        return context.id in self._controlled

    async def list_active(self, *, include_uncontrolled: bool = True) -> list[ExecutionContext]:
        if include_uncontrolled:
            return list(self._contexts.values())
        return [ctx for ctx_id, ctx in self._contexts.items() if ctx_id in self._controlled]

    async def claim(self) -> None:
        self._claimed = True
        self._controlled.update(self._contexts)
        _logger.debug("Claimed %d context(s)", len(self._contexts))


class Broadcaster:
    """Deliver messages to every active context, each delivery independent."""

    def __init__(self, registry: ClientRegistry) -> None:
        self._registry = registry
        self._pending: set[asyncio.Task[None]] = set()

    async def broadcast(self, message: Any, exclude: ExecutionContext | None = None) -> list[asyncio.Task[None]]:
        """Schedule delivery of *message* to all contexts except *exclude*.

        The registry is queried on every call.  Returns the delivery tasks;
        callers do not need to await them.  A registry failure is logged and
        nothing is delivered.
        """
        try:
            contexts = await self._registry.list_active(include_uncontrolled=True)
        except Exception:
            _logger.warning("Listing active contexts failed, broadcast dropped", exc_info=True)
            return []
        excluded_id = exclude.id if exclude is not None else None
        targets = [ctx for ctx in contexts if ctx is not exclude and ctx.id != excluded_id]
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("Broadcast to %d context(s): %s", len(targets), redact_for_log(message))
        return self._spawn(targets, message)

    def _spawn(self, targets: Iterable[ExecutionContext], message: Any) -> list[asyncio.Task[None]]:
        tasks: list[asyncio.Task[None]] = []
        for context in targets:
            task = asyncio.create_task(self._deliver(context, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        return tasks

    async def post(self, context: ExecutionContext, message: Any) -> None:
        """Deliver *message* to one context, logging instead of raising on failure."""
        await self._deliver(context, message)

    async def _deliver(self, context: ExecutionContext, message: Any) -> None:
        try:
            await context.post_message(message)
        except Exception:
            _logger.warning("Delivery to context %s failed", context.id, exc_info=True)

    async def drain(self) -> None:
        """Wait for every outstanding delivery."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
