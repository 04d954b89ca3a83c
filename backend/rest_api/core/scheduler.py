"""
Periodic background jobs started by the application lifespan.

- Session sweep: deactivates idle and settled customer sessions.
- Realtime cleanup: drops WebSocket connections that stopped answering.

Each loop waits one interval before its first run, logs failures and
keeps going; only cancellation stops it.
"""

import asyncio

from rest_api.services.domain.session_service import SessionService
from shared.config.logging import get_logger
from shared.infrastructure.db import get_db_context
from ws_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


def sweep_sessions_once() -> int:
    """Run one sweep in its own DB session. Returns sessions deactivated."""
    with get_db_context() as db:
        return SessionService(db).sweep()


async def run_session_sweeper(interval_seconds: float) -> None:
    """Sweep expired sessions every interval_seconds."""
    logger.info("Session sweeper started", interval_seconds=interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            # DB work is blocking; keep it off the event loop
            count = await asyncio.to_thread(sweep_sessions_once)
            if count:
                logger.info("Session sweep completed", deactivated=count)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Session sweep failed", error=str(e), exc_info=True)


async def run_connection_cleanup(manager: ConnectionManager, interval_seconds: float) -> None:
    """Close realtime connections whose heartbeat went stale."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await manager.cleanup_stale_connections()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Realtime connection cleanup failed", error=str(e), exc_info=True)
