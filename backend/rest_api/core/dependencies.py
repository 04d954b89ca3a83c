"""
Request-scoped dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Request

from ws_gateway.broadcaster import Broadcaster


def get_broadcaster(request: Request) -> Optional[Broadcaster]:
    """
    The application's Broadcaster, set up by the lifespan.

    Usage:
        @router.post("/orders")
        def create_order(
            db: Session = Depends(get_db),
            broadcaster: Broadcaster = Depends(get_broadcaster),
        ):
            OrderService(db, broadcaster).create_order(...)
    """
    return getattr(request.app.state, "broadcaster", None)
