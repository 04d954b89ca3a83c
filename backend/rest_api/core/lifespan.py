"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rest_api.core.scheduler import run_connection_cleanup, run_session_sweeper
from rest_api.models import Base
from rest_api.seed import seed
from shared.config.logging import setup_logging, rest_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import engine, SessionLocal
from ws_gateway.broadcaster import Broadcaster
from ws_gateway.connection_manager import ConnectionManager
from ws_gateway.redis_relay import RedisEventRelay


def _check_configuration() -> None:
    secret_errors = settings.validate_production_secrets()
    if not secret_errors:
        return
    for error in secret_errors:
        logger.error("Configuration error", error=error)
    if settings.is_production:
        raise RuntimeError(
            f"Production configuration errors: {'; '.join(secret_errors)}. "
            "Server will not start with insecure configuration."
        )
    logger.warning("Running with insecure defaults (acceptable for development only)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: logging, configuration check, schema creation, demo seed,
    realtime wiring (connection manager, broadcaster, optional Redis relay)
    and the periodic jobs. Shutdown reverses it.
    """
    setup_logging()
    _check_configuration()

    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    if settings.seed_demo_data:
        with SessionLocal() as db:
            seed(db)

    manager = ConnectionManager()
    relay = RedisEventRelay() if settings.realtime_redis_enabled else None
    broadcaster = Broadcaster(manager, relay)
    broadcaster.bind_loop(asyncio.get_running_loop())
    app.state.connection_manager = manager
    app.state.broadcaster = broadcaster

    tasks = [
        asyncio.create_task(run_session_sweeper(settings.session_sweep_interval_seconds)),
        asyncio.create_task(run_connection_cleanup(manager, settings.ws_cleanup_interval_seconds)),
    ]
    if relay is not None:
        tasks.append(asyncio.create_task(relay.run(broadcaster.dispatch)))
        logger.info("Realtime Redis relay started", channel=relay.channel)

    yield

    logger.info("Shutting down REST API")
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)

    await broadcaster.drain()
    broadcaster.bind_loop(None)
    await manager.shutdown()
    if relay is not None:
        await relay.close()
    logger.info("REST API stopped")
