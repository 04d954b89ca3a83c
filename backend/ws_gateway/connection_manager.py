"""
WebSocket connection manager.
Tracks active realtime connections indexed by client role.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


def _is_ws_connected(ws: WebSocket) -> bool:
    """True when the connection is ready to send messages."""
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class ConnectionManager:
    """
    Registry of connected realtime clients.

    Connections are indexed by role so that role-restricted events can be
    delivered without scanning every socket. Dict mutations happen under an
    asyncio.Lock; sends iterate over snapshots.
    """

    def __init__(self, heartbeat_timeout: int | None = None):
        self._shutdown = False
        self.by_role: dict[str, set[WebSocket]] = {}
        self._ws_to_role: dict[WebSocket, str] = {}
        self._ws_to_user: dict[WebSocket, int | None] = {}
        self._last_heartbeat: dict[WebSocket, float] = {}
        self._lock = asyncio.Lock()
        self.heartbeat_timeout = heartbeat_timeout or settings.ws_heartbeat_timeout

    async def connect(
        self,
        websocket: WebSocket,
        role: str,
        user_id: int | None = None,
        timeout: float = 5.0,
    ) -> None:
        """
        Accept a WebSocket connection and register it.

        Raises:
            ConnectionError: If the manager is shutting down or the handshake times out.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")

        async with self._lock:
            self._last_heartbeat[websocket] = time.time()
            self.by_role.setdefault(role, set()).add(websocket)
            self._ws_to_role[websocket] = role
            self._ws_to_user[websocket] = user_id

        logger.info("Realtime client connected", role=role, user_id=user_id)

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection from all registrations."""
        async with self._lock:
            self._last_heartbeat.pop(websocket, None)
            self._ws_to_user.pop(websocket, None)
            role = self._ws_to_role.pop(websocket, None)
            if role is not None and role in self.by_role:
                self.by_role[role].discard(websocket)
                if not self.by_role[role]:
                    del self.by_role[role]

        if role is not None:
            logger.info("Realtime client disconnected", role=role)

    async def _send_all(self, connections: Iterable[WebSocket], payload: dict[str, Any]) -> int:
        sent = 0
        for ws in connections:
            if not _is_ws_connected(ws):
                logger.debug("Skipping send to disconnected socket")
                continue
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as e:
                logger.warning(
                    "Failed to send realtime message",
                    event=payload.get("event"),
                    role=self._ws_to_role.get(ws),
                    error=str(e),
                )
        return sent

    async def send_to_roles(self, roles: Iterable[str], payload: dict[str, Any]) -> int:
        """
        Send a message to every connection whose role is in roles.

        Returns:
            Number of connections that received the message.
        """
        targets: set[WebSocket] = set()
        for role in roles:
            targets.update(self.by_role.get(role, set()))
        return await self._send_all(targets, payload)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send a message to all connected clients."""
        return await self._send_all(list(self._ws_to_role), payload)

    @property
    def total_connections(self) -> int:
        return len(self._ws_to_role)

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": self.total_connections,
            "by_role": {role: len(conns) for role, conns in self.by_role.items()},
        }

    # =========================================================================
    # Heartbeat tracking
    # =========================================================================

    def record_heartbeat(self, websocket: WebSocket) -> None:
        self._last_heartbeat[websocket] = time.time()

    def get_stale_connections(self) -> list[WebSocket]:
        """Connections that have been silent longer than the heartbeat timeout."""
        now = time.time()
        return [
            ws
            for ws, last_time in list(self._last_heartbeat.items())
            if now - last_time > self.heartbeat_timeout
        ]

    async def cleanup_stale_connections(self) -> int:
        """
        Close and remove stale connections.

        Returns:
            Number of connections cleaned up.
        """
        stale = self.get_stale_connections()
        for ws in stale:
            try:
                await ws.close(code=1001, reason="Heartbeat timeout")
            except Exception as e:
                logger.warning("Failed to close stale connection", error=str(e))
            await self.disconnect(ws)
        if stale:
            logger.info("Stale realtime connections removed", count=len(stale))
        return len(stale)

    async def shutdown(self) -> int:
        """
        Close all connections and reject new ones.

        Returns:
            Number of connections closed.
        """
        self._shutdown = True

        async with self._lock:
            connections = list(self._ws_to_role)

        closed = 0
        for ws in connections:
            try:
                await ws.close(code=1001, reason="Server shutdown")
                closed += 1
            except Exception as e:
                logger.warning("Failed to close connection during shutdown", error=str(e))
            await self.disconnect(ws)

        logger.info("Realtime shutdown complete", closed=closed)
        return closed

    def is_shutting_down(self) -> bool:
        return self._shutdown
