"""
REST API main application.
Entry point for the FastAPI server: REST routes under /api and the
realtime WebSocket at /ws.

Run with:
    uvicorn rest_api.main:app --app-dir backend --port 8000
"""

from datetime import datetime, timezone

from fastapi import FastAPI
from slowapi.middleware import SlowAPIMiddleware

from rest_api.core.cors import configure_cors
from rest_api.core.errors import register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.assignments import router as assignments_router
from rest_api.routers.auth import router as auth_router
from rest_api.routers.menu import router as menu_router
from rest_api.routers.orders import router as orders_router
from rest_api.routers.sessions import router as sessions_router
from rest_api.routers.tables import router as tables_router
from shared.config.settings import settings
from shared.security.rate_limit import limiter
from shared.utils.schemas import HealthOutput
from ws_gateway.endpoints import router as realtime_router


app = FastAPI(
    title="Tableside REST API",
    description="Restaurant table ordering: sessions, orders, payment and realtime staff updates",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)
register_middlewares(app)
configure_cors(app)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health", response_model=HealthOutput, tags=["health"])
def health_check() -> HealthOutput:
    """Liveness check."""
    return HealthOutput(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(auth_router)
app.include_router(menu_router)
app.include_router(tables_router)
app.include_router(sessions_router)
app.include_router(orders_router)
app.include_router(assignments_router)
app.include_router(realtime_router)
