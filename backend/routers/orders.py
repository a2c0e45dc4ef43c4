import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import EngineConfig, get_engine_config
from core.errors import InventoryError
from db.database import get_async_session
from db.order import Order as OrderModel
from routers.deps import get_actor, http_error
from schemas.orders import (
    ConsumptionRead,
    DeductionRead,
    OrderCreate,
    OrderLineRead,
    OrderPlacedResponse,
    OrderRead,
    SkippedEntryRead,
)
from services import orders
from services.consumption import ConsumptionResult

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize_order(o: OrderModel) -> OrderRead:
    return OrderRead(
        id=o.id,
        total=float(o.total),
        payment_method=o.payment_method,
        order_type=o.order_type,
        created_by=o.created_by,
        created_at=o.created_at,
        lines=[
            OrderLineRead(id=ln.id, menu_item_id=ln.menu_item_id, qty=ln.qty, price=float(ln.price))
            for ln in (o.lines or [])
        ],
    )


def _serialize_consumption(result: ConsumptionResult) -> ConsumptionRead:
    return ConsumptionRead(
        deductions=[
            DeductionRead(
                menu_item_id=d.menu_item_id,
                inventory_item_id=d.inventory_item_id,
                item_name=d.item_name,
                requested=float(d.requested),
                deducted=float(d.deducted),
                unit=d.unit,
                clamped=d.clamped,
                ledger_entry_id=d.ledger_entry_id,
            )
            for d in result.deductions
        ],
        skipped=[
            SkippedEntryRead(
                menu_item_id=s.menu_item_id,
                bom_entry_id=s.bom_entry_id,
                inventory_item_id=s.inventory_item_id,
                reason=s.reason,
            )
            for s in result.skipped
        ],
    )


@router.post("", response_model=OrderPlacedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_async_session),
    config: EngineConfig = Depends(get_engine_config),
):
    """
    Record a sale and deduct the ingredients of every sold item.

    - Order, stock deductions and ledger entries are committed together.
    - Short stock is clamped or rejected depending on the configured policy.
    """
    try:
        order, result = await orders.place_order(
            db,
            total=payload.total,
            payment_method=payload.payment_method,
            order_type=payload.order_type,
            lines=payload.items,
            actor=actor,
            config=config,
        )
    except InventoryError as e:
        raise http_error(e)
    except Exception:
        logger.exception("[orders] create_order failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create order")
    return OrderPlacedResponse(id=order.id, consumption=_serialize_consumption(result))


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        order = await orders.get_order(db, order_id)
    except InventoryError as e:
        raise http_error(e)
    return _serialize_order(order)
