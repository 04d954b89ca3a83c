"""
Base class for domain services.

Routers stay thin: they build a service with the request's DB session and
the application's Broadcaster, then call one method.

Usage:
    class OrderService(BaseService):
        def create_order(...):
            ...
            self._emit(Events.ORDER_CREATED, output)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from sqlalchemy.orm import Session

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from ws_gateway.broadcaster import Broadcaster

logger = get_logger(__name__)


class BaseService:
    """Holds the DB session and the optional event publisher."""

    def __init__(self, db: Session, broadcaster: Broadcaster | None = None):
        self._db = db
        self._broadcaster = broadcaster

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    def _emit(self, event: str, data: BaseModel | dict[str, Any]) -> None:
        """Publish an event after a committed change. Never raises."""
        if self._broadcaster is None:
            logger.debug("No broadcaster configured, event not published", event=event)
            return
        self._broadcaster.emit(event, data)
