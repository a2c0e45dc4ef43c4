import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InventoryError
from db.database import get_async_session
from db.inventory.bom import BomEntry as BomEntryModel
from routers.deps import http_error
from schemas.recipes import BomEntryOut, BomEntryUpdate, RecipeIngredientIn, RecipeSetRequest
from services import bom

logger = logging.getLogger(__name__)

router = APIRouter()


def _entry_out(e: BomEntryModel) -> BomEntryOut:
    it = e.inventory_item
    return BomEntryOut(
        id=e.id,
        menu_item_id=e.menu_item_id,
        inventory_item_id=e.inventory_item_id,
        inventory_item_name=it.name,
        inventory_unit=it.unit,
        current_stock=float(it.quantity or 0),
        quantity_required=float(e.quantity_required),
        unit=e.unit,
        position=int(e.position or 0),
        created_at=e.created_at,
    )


@router.get("/{menu_item_id}", response_model=List[BomEntryOut])
async def get_recipe(
    menu_item_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        entries = await bom.entries_for(db, menu_item_id)
    except InventoryError as e:
        raise http_error(e)
    return [_entry_out(e) for e in entries]


@router.put("/{menu_item_id}", response_model=List[BomEntryOut])
async def set_recipe(
    menu_item_id: str,
    payload: RecipeSetRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Replace the menu item's recipe with exactly the given ingredients.

    Sending the same list twice leaves the recipe unchanged.
    """
    try:
        entries = await bom.set_recipe(db, menu_item_id, payload.ingredients)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[recipes] set_recipe failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to set recipe: {e}")
    return [_entry_out(e) for e in entries]


@router.post("/{menu_item_id}/entries", response_model=BomEntryOut, status_code=status.HTTP_201_CREATED)
async def add_recipe_entry(
    menu_item_id: str,
    payload: RecipeIngredientIn,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        entry = await bom.upsert(
            db,
            menu_item_id,
            payload.inventory_item_id,
            payload.quantity_required,
            payload.unit,
        )
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[recipes] add_recipe_entry failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to create BOM entry: {e}")
    return _entry_out(entry)


@router.patch("/entries/{entry_id}", response_model=BomEntryOut)
async def update_recipe_entry(
    entry_id: UUID,
    payload: BomEntryUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        entry = await bom.update_entry(db, entry_id, quantity_required=payload.quantity_required, unit=payload.unit)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[recipes] update_recipe_entry failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update BOM entry: {e}")
    return _entry_out(entry)


@router.delete("/entries/{entry_id}")
async def delete_recipe_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        await bom.remove(db, entry_id)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[recipes] delete_recipe_entry failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to delete BOM entry: {e}")
    return {"ok": True}


@router.delete("/{menu_item_id}")
async def delete_recipe(
    menu_item_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Remove the whole recipe, e.g. when the menu item itself is deleted."""
    try:
        removed = await bom.remove_all(db, menu_item_id)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[recipes] delete_recipe failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to delete recipe: {e}")
    return {"ok": True, "removed": removed}
