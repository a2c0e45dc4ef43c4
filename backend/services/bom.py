"""
Bill-of-materials registry: which inventory items a menu item consumes.

Menu item ids belong to product management and are handled as opaque
string keys (integer and UUID ids both normalize to their string form).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.errors import DuplicateMappingError, NotFoundError, ValidationError
from core.units import convert, normalize_unit, quantize_quantity, to_decimal, unit_family
from db.inventory.bom import BomEntry
from db.inventory.item import InventoryItem

logger = logging.getLogger(__name__)

MenuItemKey = Union[str, int, UUID]


@dataclass(frozen=True)
class Ingredient:
    inventory_item_id: UUID
    quantity_required: Decimal
    unit: str


def menu_item_key(value: MenuItemKey) -> str:
    key = str(value if value is not None else "").strip()
    if not key:
        raise ValidationError("menu_item_id is required", field="menu_item_id")
    if len(key) > 64:
        raise ValidationError("menu_item_id must be at most 64 characters", field="menu_item_id")
    return key


def _quantity_required(value: Any) -> Decimal:
    try:
        q = to_decimal(value)
    except Exception:
        raise ValidationError("quantity_required must be a number", field="quantity_required")
    if not q.is_finite() or q <= 0:
        raise ValidationError("quantity_required must be greater than 0", field="quantity_required")
    q = quantize_quantity(q)
    if q <= 0:
        raise ValidationError("quantity_required is below the stored precision", field="quantity_required")
    return q


async def entries_for(db: AsyncSession, menu_item_id: MenuItemKey) -> List[BomEntry]:
    """Recipe lines for a menu item in recipe order."""
    key = menu_item_key(menu_item_id)
    res = await db.execute(
        select(BomEntry)
        .options(selectinload(BomEntry.inventory_item))
        .where(BomEntry.menu_item_id == key)
        .order_by(BomEntry.position.asc(), BomEntry.created_at.asc(), BomEntry.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def get_entry(db: AsyncSession, entry_id: UUID) -> BomEntry:
    res = await db.execute(
        select(BomEntry).options(selectinload(BomEntry.inventory_item)).where(BomEntry.id == entry_id)
    )
    entry = res.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("BOM entry", entry_id)
    return entry


async def _next_position(db: AsyncSession, key: str) -> int:
    current = (
        await db.execute(select(func.max(BomEntry.position)).where(BomEntry.menu_item_id == key))
    ).scalar_one_or_none()
    return 0 if current is None else int(current) + 1


async def upsert(
    db: AsyncSession,
    menu_item_id: MenuItemKey,
    inventory_item_id: UUID,
    quantity_required: Any,
    unit: str,
    *,
    position: Optional[int] = None,
) -> BomEntry:
    """Map one inventory item into a menu item's recipe.

    An existing (menu item, inventory item) pair is rejected; replacing a
    whole recipe goes through `set_recipe`.
    """
    key = menu_item_key(menu_item_id)
    qty = _quantity_required(quantity_required)
    unit = normalize_unit(unit)

    item = (
        await db.execute(select(InventoryItem).where(InventoryItem.id == inventory_item_id))
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item", inventory_item_id)

    existing = (
        await db.execute(
            select(BomEntry.id).where(
                BomEntry.menu_item_id == key,
                BomEntry.inventory_item_id == inventory_item_id,
            )
        )
    ).first()
    if existing is not None:
        raise DuplicateMappingError(key, inventory_item_id)

    if unit_family(unit) == unit_family(item.unit) and quantize_quantity(convert(qty, unit, item.unit)) == 0:
        # Stock is kept to 3 decimals; a single sale of this item deducts nothing.
        logger.warning(
            "Recipe entry for menu item %s: %s %s of %s rounds to 0 %s per unit sold",
            key, qty, unit, item.name, item.unit,
        )

    entry = BomEntry(
        menu_item_id=key,
        inventory_item_id=inventory_item_id,
        quantity_required=qty,
        unit=unit,
        position=position if position is not None else await _next_position(db, key),
    )
    entry.inventory_item = item
    db.add(entry)
    await db.flush()
    return entry


async def update_entry(
    db: AsyncSession,
    entry_id: UUID,
    *,
    quantity_required: Any,
    unit: Optional[str] = None,
) -> BomEntry:
    entry = await get_entry(db, entry_id)
    entry.quantity_required = _quantity_required(quantity_required)
    if unit is not None:
        entry.unit = normalize_unit(unit)
    await db.flush()
    return entry


async def remove(db: AsyncSession, entry_id: UUID) -> None:
    entry = await get_entry(db, entry_id)
    await db.delete(entry)
    await db.flush()


async def remove_all(db: AsyncSession, menu_item_id: MenuItemKey) -> int:
    """Drop a menu item's whole recipe. Also the hook for menu item deletion."""
    entries = await entries_for(db, menu_item_id)
    for entry in entries:
        await db.delete(entry)
    await db.flush()
    return len(entries)


def _coerce_ingredients(ingredients: Iterable[Any]) -> List[Ingredient]:
    out: List[Ingredient] = []
    seen = set()
    for raw in ingredients:
        if isinstance(raw, dict):
            inventory_item_id = raw.get("inventory_item_id")
            quantity_required = raw.get("quantity_required")
            unit = raw.get("unit")
        else:
            inventory_item_id = getattr(raw, "inventory_item_id", None)
            quantity_required = getattr(raw, "quantity_required", None)
            unit = getattr(raw, "unit", None)

        if inventory_item_id is None:
            raise ValidationError("inventory_item_id is required", field="inventory_item_id")
        if inventory_item_id in seen:
            raise ValidationError(
                f"Inventory item {inventory_item_id} appears more than once in the recipe",
                field="inventory_item_id",
            )
        seen.add(inventory_item_id)
        out.append(
            Ingredient(
                inventory_item_id=inventory_item_id,
                quantity_required=_quantity_required(quantity_required),
                unit=normalize_unit(unit),
            )
        )
    return out


async def set_recipe(db: AsyncSession, menu_item_id: MenuItemKey, ingredients: Iterable[Any]) -> List[BomEntry]:
    """Replace a menu item's recipe wholesale. Calling it twice with the same list is a no-op."""
    key = menu_item_key(menu_item_id)
    wanted = _coerce_ingredients(ingredients)

    if wanted:
        ids = [i.inventory_item_id for i in wanted]
        found = set(
            (await db.execute(select(InventoryItem.id).where(InventoryItem.id.in_(ids)))).scalars().all()
        )
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError("Inventory item", missing[0])

    removed = await remove_all(db, key)
    for position, ing in enumerate(wanted):
        await upsert(
            db,
            key,
            ing.inventory_item_id,
            ing.quantity_required,
            ing.unit,
            position=position,
        )

    logger.info("Recipe for menu item %s replaced: %d -> %d entries", key, removed, len(wanted))
    return await entries_for(db, key)
