"""
Stock ledger: the append-only audit trail of every quantity change.

Entries are written in the same transaction as the quantity change they
describe and are never updated or deleted afterwards (see db/immutability.py).
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationError
from core.units import convert, normalize_unit, to_decimal
from db.inventory.item import InventoryItem
from db.inventory.ledger import LEDGER_KINDS, LedgerEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


async def append(
    db: AsyncSession,
    *,
    inventory_item_id: UUID,
    item_name: str,
    kind: str,
    change: Decimal,
    unit: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    note: Optional[str] = None,
    actor: Optional[str] = None,
) -> LedgerEntry:
    if kind not in LEDGER_KINDS:
        raise ValidationError(f"Unknown ledger kind '{kind}'", field="kind")

    entry = LedgerEntry(
        inventory_item_id=inventory_item_id,
        item_name=item_name,
        kind=kind,
        change=to_decimal(change),
        unit=normalize_unit(unit),
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        note=note,
        created_by=actor or "SYSTEM",
    )
    db.add(entry)
    await db.flush()
    logger.debug("ledger %s %s %s %s for %s", entry.id, kind, entry.change, entry.unit, item_name)
    return entry


async def history(
    db: AsyncSession,
    inventory_item_id: UUID,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
    kind: Optional[str] = None,
) -> List[LedgerEntry]:
    """Entries for one item, newest first."""
    if limit <= 0:
        raise ValidationError("limit must be > 0", field="limit")
    stmt = select(LedgerEntry).where(LedgerEntry.inventory_item_id == inventory_item_id)
    if kind:
        stmt = stmt.where(LedgerEntry.kind == kind)
    res = await db.execute(stmt.order_by(LedgerEntry.id.desc()).limit(limit))
    return list(res.scalars().all())


async def entries_for_reference(db: AsyncSession, reference_type: str, reference_id: str) -> List[LedgerEntry]:
    res = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.reference_type == reference_type, LedgerEntry.reference_id == str(reference_id))
        .order_by(LedgerEntry.id.asc())
    )
    return list(res.scalars().all())


async def summarize(
    db: AsyncSession,
    inventory_item_id: UUID,
    *,
    kind: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> Decimal:
    """Net signed change for an item, converted to the item's current stock unit.

    With no manual adjustments in the window, the SALE total equals the
    observed decrease of the item's quantity.
    """
    item = (
        await db.execute(select(InventoryItem).where(InventoryItem.id == inventory_item_id))
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item", inventory_item_id)

    stmt = select(LedgerEntry.change, LedgerEntry.unit).where(LedgerEntry.inventory_item_id == inventory_item_id)
    if kind:
        stmt = stmt.where(LedgerEntry.kind == kind)
    if since is not None:
        stmt = stmt.where(LedgerEntry.created_at >= since)
    if until is not None:
        stmt = stmt.where(LedgerEntry.created_at < until)

    total = Decimal("0")
    for change, unit in (await db.execute(stmt)).all():
        total += convert(change, unit, item.unit)
    return total
