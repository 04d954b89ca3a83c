"""
Menu Service - read-only catalog lookups.
"""

from __future__ import annotations

from sqlalchemy import select

from rest_api.models import MenuItem
from rest_api.services.base_service import BaseService
from rest_api.services.mappers import menu_item_to_output
from shared.infrastructure.db import translate_store_errors
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import MenuItemOutput


class MenuService(BaseService):
    """Menu items grouped by category, ordered for display."""

    def list_items(self, category: str | None = None) -> list[MenuItemOutput]:
        stmt = select(MenuItem).order_by(MenuItem.category, MenuItem.name)
        if category:
            stmt = stmt.where(MenuItem.category == category)
        with translate_store_errors("list menu"):
            items = self._db.execute(stmt).scalars().all()
        return [menu_item_to_output(item) for item in items]

    def list_categories(self) -> list[str]:
        stmt = select(MenuItem.category).distinct().order_by(MenuItem.category)
        with translate_store_errors("list menu categories"):
            return list(self._db.execute(stmt).scalars().all())

    def get_item(self, item_id: int) -> MenuItemOutput:
        with translate_store_errors("get menu item"):
            item = self._db.get(MenuItem, item_id)
        if item is None:
            raise NotFoundError("Menu item", item_id)
        return menu_item_to_output(item)
