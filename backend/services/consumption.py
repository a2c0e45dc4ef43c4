"""
Order consumption: turn the lines of a placed order into stock deductions.

For every order line the menu item's recipe is looked up, each recipe entry is
scaled by the quantity sold, converted to the inventory item's stock unit and
deducted with a zero floor. Every deduction is paired with one SALE ledger
entry that records what was actually taken.

This module never commits. The caller owns the transaction so the order row,
all deductions and all ledger entries land together or not at all.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import EngineConfig
from core.errors import InsufficientStockError, UnitMismatchError
from core.units import convert, quantize_quantity, to_decimal
from db.order import Order
from services import bom, catalog, ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Deduction:
    menu_item_id: str
    inventory_item_id: UUID
    item_name: str
    requested: Decimal  # in the item's stock unit
    deducted: Decimal  # what was actually taken, <= requested
    unit: str
    ledger_entry_id: int

    @property
    def clamped(self) -> bool:
        return self.deducted < self.requested

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted


@dataclass(frozen=True)
class SkippedEntry:
    menu_item_id: str
    bom_entry_id: UUID
    inventory_item_id: UUID
    reason: str


@dataclass
class ConsumptionResult:
    order_id: UUID
    deductions: List[Deduction] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)

    @property
    def clamped(self) -> List[Deduction]:
        return [d for d in self.deductions if d.clamped]

    def totals_by_item(self) -> Dict[UUID, Decimal]:
        out: Dict[UUID, Decimal] = {}
        for d in self.deductions:
            out[d.inventory_item_id] = out.get(d.inventory_item_id, Decimal("0")) + d.deducted
        return out


async def consume(
    db: AsyncSession,
    order: Order,
    *,
    config: EngineConfig,
    actor: Optional[str] = None,
) -> ConsumptionResult:
    """Deduct the ingredients of every line of ``order``.

    Raises InsufficientStockError / UnitMismatchError only under the "reject"
    policies; storage errors propagate untouched.
    """
    result = ConsumptionResult(order_id=order.id)

    for line in order.lines:
        entries = await bom.entries_for(db, line.menu_item_id)
        if not entries:
            # Not every menu item tracks ingredients.
            continue

        for entry in entries:
            item = entry.inventory_item
            needed = to_decimal(entry.quantity_required) * line.qty

            try:
                required = quantize_quantity(convert(needed, entry.unit, item.unit))
            except UnitMismatchError as e:
                if config.unit_mismatch_policy == "reject":
                    raise
                logger.warning(
                    "Skipping recipe entry %s for menu item %s on order %s: %s",
                    entry.id, line.menu_item_id, order.id, e.message,
                )
                result.skipped.append(
                    SkippedEntry(
                        menu_item_id=line.menu_item_id,
                        bom_entry_id=entry.id,
                        inventory_item_id=item.id,
                        reason=e.message,
                    )
                )
                continue

            if config.insufficient_stock_policy == "reject":
                locked = await catalog.get(db, item.id, lock=True)
                available = quantize_quantity(locked.quantity)
                if available < required:
                    raise InsufficientStockError(item.name, required, available, item.unit)

            change = await catalog.adjust_quantity(db, item.id, -required)
            deducted = -change.applied

            note = f"Order #{order.id} - Menu item: {line.menu_item_id}"
            if deducted < required:
                logger.warning(
                    "Insufficient inventory for %s (%s). Required: %s %s, deducted: %s %s",
                    item.name, item.id, required, item.unit, deducted, item.unit,
                )
                note += f" (required {required} {item.unit}, only {deducted} available)"

            row = await ledger.append(
                db,
                inventory_item_id=item.id,
                item_name=item.name,
                kind="SALE",
                change=change.applied,
                unit=item.unit,
                reference_type="ORDER",
                reference_id=str(order.id),
                note=note,
                actor=actor,
            )
            result.deductions.append(
                Deduction(
                    menu_item_id=line.menu_item_id,
                    inventory_item_id=item.id,
                    item_name=item.name,
                    requested=required,
                    deducted=deducted,
                    unit=item.unit,
                    ledger_entry_id=row.id,
                )
            )

    return result
