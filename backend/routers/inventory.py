import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import EngineConfig, get_engine_config
from core.errors import InventoryError
from db.database import get_async_session
from db.inventory.item import InventoryItem as InventoryItemModel
from routers.deps import get_actor, http_error
from schemas.inventory import (
    AlertItemOut,
    AlertNotificationOut,
    AlertsOut,
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    LedgerEntryOut,
    LedgerKind,
    ReconciliationOut,
    StockAdjustRequest,
    StockChangeOut,
    StockQuantityRequest,
)
from services import alerts, catalog, ledger
from services.catalog import StockChange

logger = logging.getLogger(__name__)

router = APIRouter()


def _item_out(it: InventoryItemModel, config: EngineConfig, today: date) -> InventoryItemOut:
    return InventoryItemOut(
        id=it.id,
        name=it.name,
        unit=it.unit,
        quantity=float(it.quantity or 0),
        low_stock_threshold=float(it.low_stock_threshold or 0),
        expire_date=it.expire_date,
        category=it.category,
        cost_per_unit=float(it.cost_per_unit) if it.cost_per_unit is not None else None,
        status=alerts.classify(alerts.snapshot(it), today, config),
        created_at=it.created_at,
        updated_at=it.updated_at,
    )


def _change_out(change: StockChange) -> StockChangeOut:
    return StockChangeOut(
        inventory_item_id=change.inventory_item_id,
        requested=float(change.requested),
        applied=float(change.applied),
        previous=float(change.previous),
        current=float(change.current),
        clamped=change.clamped,
    )


@router.get("/alerts", response_model=AlertsOut)
async def get_alerts(
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    """
    Low stock, expiring soon and expired items, computed from current state.

    Safe to poll; nothing is written.
    """
    report = await alerts.current_alerts(db, config)
    return AlertsOut(
        lookahead_days=config.expiry_lookahead_days,
        lowStock=[AlertItemOut.model_validate(it) for it in report.low_stock],
        expiringSoon=[AlertItemOut.model_validate(it) for it in report.expiring_soon],
        expired=[AlertItemOut.model_validate(it) for it in report.expired],
        notifications=[AlertNotificationOut(**n) for n in report.notifications()],
    )


@router.get("/items", response_model=List[InventoryItemOut])
async def list_inventory_items(
    category: Optional[str] = None,
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    items = await catalog.list_items(db, category=category, q=q)
    today = date.today()
    return [_item_out(it, config, today) for it in items]


@router.post("/items", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    payload: InventoryItemCreate,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    try:
        item = await catalog.create(db, **payload.model_dump(), actor=actor)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[inventory] create_inventory_item failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to create inventory item: {e}")
    return _item_out(item, config, date.today())


@router.get("/items/{item_id}", response_model=InventoryItemOut)
async def get_inventory_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    try:
        item = await catalog.get(db, item_id)
    except InventoryError as e:
        raise http_error(e)
    return _item_out(item, config, date.today())


@router.patch("/items/{item_id}", response_model=InventoryItemOut)
async def update_inventory_item(
    item_id: UUID,
    payload: InventoryItemUpdate,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    try:
        item = await catalog.update_item(db, item_id, payload.model_dump(exclude_unset=True), actor=actor)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[inventory] update_inventory_item failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update inventory item: {e}")
    return _item_out(item, config, date.today())


@router.delete("/items/{item_id}")
async def delete_inventory_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        await catalog.delete_item(db, item_id)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[inventory] delete_inventory_item failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to delete inventory item: {e}")
    return {"ok": True}


async def _stock_operation(db: AsyncSession, op, *args, **kwargs) -> StockChangeOut:
    try:
        change = await op(db, *args, **kwargs)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        raise http_error(e)
    except Exception as e:
        await db.rollback()
        logger.exception("[inventory] %s failed", op.__name__)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update stock: {e}")
    return _change_out(change)


@router.post("/items/{item_id}/add", response_model=StockChangeOut)
async def add_stock(
    item_id: UUID,
    payload: StockQuantityRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
):
    return await _stock_operation(db, catalog.add_stock, item_id, payload.quantity, note=payload.note, actor=actor)


@router.post("/items/{item_id}/remove", response_model=StockChangeOut)
async def remove_stock(
    item_id: UUID,
    payload: StockQuantityRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
):
    return await _stock_operation(db, catalog.remove_stock, item_id, payload.quantity, note=payload.note, actor=actor)


@router.post("/items/{item_id}/adjust", response_model=StockChangeOut)
async def adjust_stock(
    item_id: UUID,
    payload: StockAdjustRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
):
    """Manual correction by a signed delta. Logged as ADJUST with the given reason."""
    return await _stock_operation(db, catalog.adjust_stock, item_id, payload.delta, reason=payload.reason, actor=actor)


@router.post("/items/{item_id}/expire", response_model=StockChangeOut)
async def write_off_expired(
    item_id: UUID,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
):
    return await _stock_operation(db, catalog.write_off_expired, item_id, actor=actor)


@router.get("/items/{item_id}/ledger", response_model=List[LedgerEntryOut])
async def get_item_ledger(
    item_id: UUID,
    limit: int = Query(100, ge=1, le=1000),
    kind: Optional[LedgerKind] = None,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        await catalog.get(db, item_id)
        return await ledger.history(db, item_id, limit=limit, kind=kind)
    except InventoryError as e:
        raise http_error(e)


@router.get("/items/{item_id}/reconciliation", response_model=ReconciliationOut)
async def get_item_reconciliation(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Ledger totals in the item's stock unit, next to the on-hand quantity."""
    try:
        item = await catalog.get(db, item_id)
        by_kind = {}
        for kind in ("ADD", "REMOVE", "ADJUST", "SALE", "EXPIRED"):
            by_kind[kind] = float(await ledger.summarize(db, item_id, kind=kind))
    except InventoryError as e:
        raise http_error(e)
    return ReconciliationOut(
        inventory_item_id=item.id,
        unit=item.unit,
        quantity=float(item.quantity or 0),
        sale_total=by_kind["SALE"],
        net_change=sum(by_kind.values()),
        by_kind=by_kind,
    )
