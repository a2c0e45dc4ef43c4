"""
Alert evaluation over a snapshot of the catalog.

Nothing here writes anything: alerts are recomputed from current state on
every call so polling clients can ask as often as they like.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import EngineConfig
from core.units import to_decimal
from db.inventory.item import InventoryItem


NORMAL = "normal"
LOW_STOCK = "low_stock"
EXPIRING_SOON = "expiring_soon"
EXPIRED = "expired"


@dataclass(frozen=True)
class ItemSnapshot:
    id: UUID
    name: str
    unit: str
    quantity: Decimal
    low_stock_threshold: Decimal
    expire_date: Optional[date] = None
    category: Optional[str] = None


@dataclass
class AlertReport:
    low_stock: List[ItemSnapshot] = field(default_factory=list)
    expiring_soon: List[ItemSnapshot] = field(default_factory=list)
    expired: List[ItemSnapshot] = field(default_factory=list)

    def notifications(self) -> List[dict]:
        """Flat feed for the POS notification banner."""
        out = []
        for it in self.low_stock:
            out.append({
                "id": f"low-{it.id}",
                "type": "LOW_STOCK",
                "inventory_item_id": it.id,
                "name": it.name,
                "message": f"{it.name} is running low ({it.quantity} {it.unit} left, threshold {it.low_stock_threshold})",
            })
        for it in self.expiring_soon:
            out.append({
                "id": f"expiry-{it.id}",
                "type": "EXPIRY",
                "inventory_item_id": it.id,
                "name": it.name,
                "message": f"{it.name} expires on {it.expire_date.isoformat()}",
            })
        for it in self.expired:
            out.append({
                "id": f"expired-{it.id}",
                "type": "EXPIRED",
                "inventory_item_id": it.id,
                "name": it.name,
                "message": f"{it.name} expired on {it.expire_date.isoformat()}",
            })
        return out


def snapshot(item: InventoryItem) -> ItemSnapshot:
    return ItemSnapshot(
        id=item.id,
        name=item.name,
        unit=item.unit,
        quantity=to_decimal(item.quantity or 0),
        low_stock_threshold=to_decimal(item.low_stock_threshold or 0),
        expire_date=item.expire_date,
        category=item.category,
    )


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def is_low_stock(item: ItemSnapshot) -> bool:
    return item.low_stock_threshold > 0 and item.quantity <= item.low_stock_threshold


def is_expired(item: ItemSnapshot, today: date) -> bool:
    return item.expire_date is not None and item.expire_date < today


def is_expiring_soon(item: ItemSnapshot, today: date, lookahead_days: int) -> bool:
    if item.expire_date is None:
        return False
    return today <= item.expire_date <= today + timedelta(days=lookahead_days)


def classify(item: ItemSnapshot, now: Union[date, datetime], config: EngineConfig) -> str:
    """Single status for list views; expiry outranks low stock."""
    today = _as_date(now)
    if is_expired(item, today):
        return EXPIRED
    if is_expiring_soon(item, today, config.expiry_lookahead_days):
        return EXPIRING_SOON
    if is_low_stock(item):
        return LOW_STOCK
    return NORMAL


def evaluate(items: Iterable[ItemSnapshot], now: Union[date, datetime], config: EngineConfig) -> AlertReport:
    today = _as_date(now)
    report = AlertReport()
    for it in items:
        if is_low_stock(it):
            report.low_stock.append(it)
        if is_expired(it, today):
            report.expired.append(it)
        elif is_expiring_soon(it, today, config.expiry_lookahead_days):
            report.expiring_soon.append(it)

    # Most depleted first, soonest expiry first.
    report.low_stock.sort(key=lambda it: (it.quantity / it.low_stock_threshold, it.name.lower()))
    report.expiring_soon.sort(key=lambda it: (it.expire_date, it.name.lower()))
    report.expired.sort(key=lambda it: (it.expire_date, it.name.lower()))
    return report


async def load_snapshot(db: AsyncSession) -> List[ItemSnapshot]:
    """Plain read of the catalog; no locks, may be slightly stale."""
    res = await db.execute(
        select(
            InventoryItem.id,
            InventoryItem.name,
            InventoryItem.unit,
            InventoryItem.quantity,
            InventoryItem.low_stock_threshold,
            InventoryItem.expire_date,
            InventoryItem.category,
        ).order_by(func.lower(InventoryItem.name).asc())
    )
    return [
        ItemSnapshot(
            id=row.id,
            name=row.name,
            unit=row.unit,
            quantity=to_decimal(row.quantity or 0),
            low_stock_threshold=to_decimal(row.low_stock_threshold or 0),
            expire_date=row.expire_date,
            category=row.category,
        )
        for row in res.all()
    ]


async def current_alerts(db: AsyncSession, config: EngineConfig, now: Optional[Union[date, datetime]] = None) -> AlertReport:
    return evaluate(await load_snapshot(db), now or date.today(), config)
