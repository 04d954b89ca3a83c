"""
Menu router.
Read-only access to the menu catalog; no authentication required.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rest_api.services.domain import MenuService
from shared.infrastructure.db import get_db
from shared.utils.schemas import MenuItemOutput


router = APIRouter(prefix="/api/menu", tags=["menu"])


@router.get("", response_model=list[MenuItemOutput])
def list_menu(
    category: str | None = Query(None, description="Only items in this category"),
    db: Session = Depends(get_db),
) -> list[MenuItemOutput]:
    """Menu items ordered by category, then name."""
    return MenuService(db).list_items(category=category)


@router.get("/categories", response_model=list[str])
def list_categories(db: Session = Depends(get_db)) -> list[str]:
    return MenuService(db).list_categories()


@router.get("/{item_id}", response_model=MenuItemOutput)
def get_menu_item(item_id: int, db: Session = Depends(get_db)) -> MenuItemOutput:
    return MenuService(db).get_item(item_id)
