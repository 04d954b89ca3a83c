"""
Realtime WebSocket endpoint.

Clients connect to /ws, optionally passing ?token=<jwt>. Staff tokens put
the connection in the staff member's role; anonymous customers connect as
guests. The server only pushes events; the only client message handled is
the text "ping", answered with "pong".

Clients must send "ping" at least every `ws_heartbeat_timeout` seconds
(90 by default). A connection silent for longer is closed with code 1001
by the periodic stale-connection sweep, even if it only listens.
"""

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from shared.config.constants import GUEST_ROLE
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.security.auth import verify_jwt
from shared.utils.exceptions import AuthenticationError
from ws_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])

CLOSE_INVALID_TOKEN = 4001
CLOSE_SHUTTING_DOWN = 1012


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str | None = Query(default=None)):
    manager: ConnectionManager = websocket.app.state.connection_manager

    role = GUEST_ROLE
    user_id = None
    if token:
        try:
            claims = verify_jwt(token)
        except AuthenticationError:
            await websocket.close(code=CLOSE_INVALID_TOKEN, reason="Invalid token")
            return
        role = claims["role"]
        user_id = int(claims["sub"])

    try:
        await manager.connect(websocket, role, user_id=user_id, timeout=settings.ws_accept_timeout)
    except ConnectionError as e:
        logger.warning("Realtime connection rejected", role=role, reason=str(e))
        if manager.is_shutting_down():
            await websocket.close(code=CLOSE_SHUTTING_DOWN)
        return

    try:
        while True:
            message = await websocket.receive_text()
            manager.record_heartbeat(websocket)
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
