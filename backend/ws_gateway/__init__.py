"""
Realtime package: WebSocket connection registry, the Broadcaster service
and the optional Redis relay used when several workers serve clients.
"""

from ws_gateway.broadcaster import Broadcaster, build_envelope
from ws_gateway.connection_manager import ConnectionManager
from ws_gateway.redis_relay import RedisEventRelay

__all__ = [
    "Broadcaster",
    "build_envelope",
    "ConnectionManager",
    "RedisEventRelay",
]
