"""
Realtime Broadcaster.

A single Broadcaster is constructed at startup and handed to every service
that publishes events. emit() is synchronous, never raises and never waits
for delivery: the send is scheduled on the application's event loop, from
the loop thread or from a worker thread alike.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from datetime import datetime, timezone
from typing import Any, Coroutine

from pydantic import BaseModel

from shared.config.constants import EVENT_AUDIENCES
from shared.config.logging import get_logger
from shared.utils.schemas import EventEnvelope
from ws_gateway.connection_manager import ConnectionManager
from ws_gateway.redis_relay import RedisEventRelay

logger = get_logger(__name__)


def build_envelope(event: str, data: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """Wrap an event payload in the JSON envelope pushed to clients."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    envelope = EventEnvelope(event=event, data=data, timestamp=datetime.now(timezone.utc))
    return envelope.model_dump(mode="json")


class Broadcaster:
    """
    Fan-out of domain events to connected realtime clients.

    With a relay configured, events go through Redis and come back to every
    worker via dispatch(); otherwise they are dispatched to local clients
    directly.
    """

    def __init__(self, manager: ConnectionManager, relay: RedisEventRelay | None = None):
        self.manager = manager
        self.relay = relay
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Future | concurrent.futures.Future] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Attach the event loop that owns the WebSocket connections."""
        self._loop = loop

    def emit(self, event: str, data: BaseModel | dict[str, Any]) -> None:
        """
        Schedule delivery of an event. Failures are logged, never raised.

        Usage:
            broadcaster.emit(Events.ORDER_CREATED, order_output)
        """
        try:
            envelope = build_envelope(event, data)
            if self.relay is not None:
                coro = self.relay.publish(envelope)
            else:
                coro = self.dispatch(envelope)
            self._schedule(event, coro)
        except Exception as e:
            logger.error("Failed to schedule realtime event", event=event, error=str(e), exc_info=True)

    async def dispatch(self, envelope: dict[str, Any]) -> int:
        """Deliver an envelope to the local clients in its audience."""
        audience = EVENT_AUDIENCES.get(envelope["event"])
        if audience is None:
            sent = await self.manager.broadcast(envelope)
        else:
            sent = await self.manager.send_to_roles(audience, envelope)
        logger.debug("Realtime event dispatched", event=envelope["event"], recipients=sent)
        return sent

    def _schedule(self, event: str, coro: Coroutine[Any, Any, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            logger.debug("Realtime loop not running, event dropped", event=event)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            future: asyncio.Future | concurrent.futures.Future = loop.create_task(coro)
        else:
            future = asyncio.run_coroutine_threadsafe(coro, loop)

        self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(event, f))

    def _on_done(self, event: str, future: asyncio.Future | concurrent.futures.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Realtime event delivery failed", event=event, error=str(exc))

    async def drain(self, timeout: float = 2.0) -> None:
        """Wait briefly for in-flight deliveries, used on shutdown and in tests."""
        pending = [asyncio.wrap_future(f) if isinstance(f, concurrent.futures.Future) else f
                   for f in list(self._pending)]
        if pending:
            await asyncio.wait(pending, timeout=timeout)
