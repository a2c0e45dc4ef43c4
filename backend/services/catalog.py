"""
Inventory catalog: raw-material items and their on-hand quantity.

Quantity changes go through `adjust_quantity`, a single storage-level
decrement/increment with a zero floor. The catalog does not write the ledger;
the administrative operations below and the consumption processor pair every
adjustment with exactly one ledger entry.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InsufficientStockError, NotFoundError, ValidationError
from core.units import convert, normalize_unit, quantize_quantity, to_decimal, unit_family
from db.base import utcnow
from db.inventory.item import InventoryItem
from services import ledger

logger = logging.getLogger(__name__)

# Inventory item ids are UUIDs in this schema; engine code only compares them.
ItemKey = Union[UUID, int, str]

_UPDATABLE_FIELDS = (
    "name",
    "unit",
    "quantity",
    "low_stock_threshold",
    "expire_date",
    "category",
    "cost_per_unit",
)


@dataclass(frozen=True)
class StockChange:
    inventory_item_id: ItemKey
    requested: Decimal
    previous: Decimal
    current: Decimal

    @property
    def applied(self) -> Decimal:
        """Signed delta actually applied; smaller in magnitude than requested when clamped."""
        return self.current - self.previous

    @property
    def clamped(self) -> bool:
        return self.applied != self.requested


def _clean_name(name: Optional[str]) -> str:
    v = (name or "").strip()
    if not v:
        raise ValidationError("Name is required", field="name")
    if len(v) > 100:
        raise ValidationError("Name must be at most 100 characters", field="name")
    return v


def _non_negative(value: Any, field: str) -> Decimal:
    try:
        d = to_decimal(value)
    except Exception:
        raise ValidationError(f"{field} must be a number", field=field)
    if not d.is_finite() or d < 0:
        raise ValidationError(f"{field} must be >= 0", field=field)
    return d


def _positive(value: Any, field: str) -> Decimal:
    d = _non_negative(value, field)
    if d == 0:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    return d


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[ItemKey] = None) -> bool:
    stmt = select(InventoryItem.id).where(func.lower(InventoryItem.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(InventoryItem.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def get(db: AsyncSession, item_id: ItemKey, *, lock: bool = False) -> InventoryItem:
    stmt = select(InventoryItem).where(InventoryItem.id == item_id).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item", item_id)
    return item


async def list_items(
    db: AsyncSession,
    *,
    category: Optional[str] = None,
    q: Optional[str] = None,
) -> List[InventoryItem]:
    stmt = select(InventoryItem).execution_options(populate_existing=True)
    if category:
        stmt = stmt.where(InventoryItem.category == category)
    if q:
        stmt = stmt.where(func.lower(InventoryItem.name).like(f"%{q.strip().lower()}%"))
    res = await db.execute(stmt.order_by(func.lower(InventoryItem.name).asc()))
    return list(res.scalars().all())


async def adjust_quantity(db: AsyncSession, item_id: ItemKey, delta: Any) -> StockChange:
    """Apply a signed delta, never letting quantity drop below zero.

    The row is locked first, then changed with one UPDATE whose new value is
    computed by the database, so concurrent orders serialize on the item.
    """
    delta = quantize_quantity(delta)
    tbl = InventoryItem.__table__

    before = (
        await db.execute(select(tbl.c.quantity).where(tbl.c.id == item_id).with_for_update())
    ).scalar_one_or_none()
    if before is None:
        raise NotFoundError("Inventory item", item_id)

    new_quantity = tbl.c.quantity + delta
    stmt = (
        update(tbl)
        .where(tbl.c.id == item_id)
        .values(
            quantity=case((new_quantity < 0, 0), else_=new_quantity),
            updated_at=utcnow(),
        )
        .returning(tbl.c.quantity)
    )
    after = (await db.execute(stmt)).scalar_one()

    return StockChange(
        inventory_item_id=item_id,
        requested=delta,
        previous=quantize_quantity(before),
        current=quantize_quantity(after),
    )


async def create(
    db: AsyncSession,
    *,
    name: str,
    unit: str = "grams",
    quantity: Any = 0,
    low_stock_threshold: Any = 0,
    expire_date: Optional[date] = None,
    category: Optional[str] = None,
    cost_per_unit: Any = None,
    actor: str = "SYSTEM",
) -> InventoryItem:
    name = _clean_name(name)
    unit = normalize_unit(unit)
    quantity = quantize_quantity(_non_negative(quantity, "quantity"))
    threshold = quantize_quantity(_non_negative(low_stock_threshold or 0, "low_stock_threshold"))
    cost = _non_negative(cost_per_unit, "cost_per_unit") if cost_per_unit is not None else None

    if await _name_taken(db, name):
        raise ValidationError(f"An inventory item named '{name}' already exists", field="name")

    item = InventoryItem(
        name=name,
        unit=unit,
        quantity=quantity,
        low_stock_threshold=threshold,
        expire_date=expire_date,
        category=(category or "").strip() or None,
        cost_per_unit=cost,
    )
    db.add(item)
    await db.flush()

    if quantity > 0:
        await ledger.append(
            db,
            inventory_item_id=item.id,
            item_name=item.name,
            kind="ADD",
            change=quantity,
            unit=unit,
            reference_type="ADJUSTMENT",
            note="Initial stock",
            actor=actor,
        )
    logger.info("Created inventory item %s (%s) with %s %s", item.name, item.id, quantity, unit)
    return item


async def update_item(
    db: AsyncSession,
    item_id: ItemKey,
    data: Dict[str, Any],
    *,
    actor: str = "SYSTEM",
) -> InventoryItem:
    """Partial update. A changed quantity is applied as a logged ADJUST."""
    unknown = set(data) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    item = await get(db, item_id, lock=True)

    if "name" in data:
        name = _clean_name(data["name"])
        if name != item.name and await _name_taken(db, name, exclude_id=item.id):
            raise ValidationError(f"An inventory item named '{name}' already exists", field="name")
        item.name = name

    if data.get("unit") is not None:
        new_unit = normalize_unit(data["unit"])
        if new_unit != item.unit:
            if unit_family(new_unit) != unit_family(item.unit):
                raise ValidationError(
                    f"Cannot change unit from '{item.unit}' to '{new_unit}': different unit family",
                    field="unit",
                )
            # Same physical stock, expressed in the new unit.
            item.quantity = quantize_quantity(convert(item.quantity, item.unit, new_unit))
            item.low_stock_threshold = quantize_quantity(convert(item.low_stock_threshold, item.unit, new_unit))
            item.unit = new_unit

    if data.get("low_stock_threshold") is not None:
        item.low_stock_threshold = quantize_quantity(_non_negative(data["low_stock_threshold"], "low_stock_threshold"))
    if "expire_date" in data:
        item.expire_date = data["expire_date"]
    if "category" in data:
        item.category = (data["category"] or "").strip() or None
    if "cost_per_unit" in data:
        cp = data["cost_per_unit"]
        item.cost_per_unit = _non_negative(cp, "cost_per_unit") if cp is not None else None

    await db.flush()

    if data.get("quantity") is not None:
        target = quantize_quantity(_non_negative(data["quantity"], "quantity"))
        diff = target - quantize_quantity(item.quantity)
        if diff != 0:
            change = await adjust_quantity(db, item.id, diff)
            await ledger.append(
                db,
                inventory_item_id=item.id,
                item_name=item.name,
                kind="ADJUST",
                change=change.applied,
                unit=item.unit,
                reference_type="ADJUSTMENT",
                note="Stock adjustment (increase)" if diff > 0 else "Stock adjustment (decrease)",
                actor=actor,
            )
            await db.refresh(item)

    return item


async def delete_item(db: AsyncSession, item_id: ItemKey) -> None:
    """Delete an item together with its recipe entries. Ledger rows survive with a null item reference."""
    item = await get(db, item_id)
    await db.delete(item)
    await db.flush()
    logger.info("Deleted inventory item %s (%s)", item.name, item_id)


async def add_stock(
    db: AsyncSession,
    item_id: ItemKey,
    quantity: Any,
    *,
    note: Optional[str] = None,
    actor: str = "SYSTEM",
) -> StockChange:
    qty = quantize_quantity(_positive(quantity, "quantity"))
    item = await get(db, item_id, lock=True)
    change = await adjust_quantity(db, item.id, qty)
    await ledger.append(
        db,
        inventory_item_id=item.id,
        item_name=item.name,
        kind="ADD",
        change=change.applied,
        unit=item.unit,
        reference_type="ADJUSTMENT",
        note=note or "Stock added",
        actor=actor,
    )
    return change


async def remove_stock(
    db: AsyncSession,
    item_id: ItemKey,
    quantity: Any,
    *,
    note: Optional[str] = None,
    actor: str = "SYSTEM",
) -> StockChange:
    """Administrative removal; unlike a sale it refuses to remove more than is on hand."""
    qty = quantize_quantity(_positive(quantity, "quantity"))
    item = await get(db, item_id, lock=True)
    available = quantize_quantity(item.quantity)
    if available < qty:
        raise InsufficientStockError(item.name, qty, available, item.unit)

    change = await adjust_quantity(db, item.id, -qty)
    await ledger.append(
        db,
        inventory_item_id=item.id,
        item_name=item.name,
        kind="REMOVE",
        change=change.applied,
        unit=item.unit,
        reference_type="ADJUSTMENT",
        note=note or "Stock removed",
        actor=actor,
    )
    return change


async def adjust_stock(
    db: AsyncSession,
    item_id: ItemKey,
    delta: Any,
    *,
    reason: Optional[str] = None,
    actor: str = "SYSTEM",
) -> StockChange:
    """Manual correction by a signed delta (clamped at zero), logged as ADJUST."""
    try:
        d = quantize_quantity(delta)
    except Exception:
        raise ValidationError("delta must be a number", field="delta")
    if not d.is_finite() or d == 0:
        raise ValidationError("delta must be a non-zero number", field="delta")

    item = await get(db, item_id, lock=True)
    change = await adjust_quantity(db, item.id, d)
    note = (reason or "").strip() or ("Stock adjustment (increase)" if d > 0 else "Stock adjustment (decrease)")
    await ledger.append(
        db,
        inventory_item_id=item.id,
        item_name=item.name,
        kind="ADJUST",
        change=change.applied,
        unit=item.unit,
        reference_type="ADJUSTMENT",
        note=note,
        actor=actor,
    )
    if change.clamped:
        logger.warning(
            "Adjustment of %s %s on %s clamped to %s",
            d, item.unit, item.name, change.applied,
        )
    return change


async def write_off_expired(
    db: AsyncSession,
    item_id: ItemKey,
    *,
    today: Optional[date] = None,
    actor: str = "SYSTEM",
) -> StockChange:
    """Zero the stock of an expired item and record it as EXPIRED."""
    today = today or date.today()
    item = await get(db, item_id, lock=True)
    if item.expire_date is None or item.expire_date >= today:
        raise ValidationError(f"'{item.name}' is not expired", field="expire_date")
    on_hand = quantize_quantity(item.quantity)
    if on_hand <= 0:
        raise ValidationError(f"'{item.name}' has no stock to write off", field="quantity")

    change = await adjust_quantity(db, item.id, -on_hand)
    await ledger.append(
        db,
        inventory_item_id=item.id,
        item_name=item.name,
        kind="EXPIRED",
        change=change.applied,
        unit=item.unit,
        reference_type="EXPIRY",
        note=f"Expired on {item.expire_date.isoformat()}",
        actor=actor,
    )
    return change
