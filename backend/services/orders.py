"""
Order intake. `place_order` is the transaction boundary for a sale: the order
row, every stock deduction and every ledger entry commit together, or the
whole thing is rolled back.
"""

import logging
from typing import Any, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import EngineConfig
from core.errors import InventoryError, NotFoundError, OrderNotCompletedError, ValidationError
from core.units import to_decimal
from db.order import Order, OrderLine
from services import consumption
from services.bom import menu_item_key
from services.consumption import ConsumptionResult

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("CASH", "CARD", "QR")
ORDER_TYPES = ("DINE-IN", "TAKEAWAY", "DELIVERY")


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def _build_lines(lines: Iterable[Any]) -> List[OrderLine]:
    out: List[OrderLine] = []
    for position, raw in enumerate(lines):
        qty = _field(raw, "qty")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError("Line quantity must be a positive integer", field="qty")
        try:
            price = to_decimal(_field(raw, "price"))
        except Exception:
            raise ValidationError("Line price must be a number", field="price")
        if not price.is_finite() or price < 0:
            raise ValidationError("Line price must be >= 0", field="price")
        out.append(
            OrderLine(
                menu_item_id=menu_item_key(_field(raw, "menu_item_id")),
                qty=qty,
                price=price,
                position=position,
            )
        )
    if not out:
        raise ValidationError("Total, payment method, and items are required", field="lines")
    return out


async def place_order(
    db: AsyncSession,
    *,
    total: Any,
    payment_method: str,
    lines: Iterable[Any],
    order_type: str = "DINE-IN",
    actor: Optional[str] = None,
    config: EngineConfig,
) -> Tuple[Order, ConsumptionResult]:
    try:
        total_d = to_decimal(total)
    except Exception:
        raise ValidationError("Total must be a number", field="total")
    if not total_d.is_finite() or total_d <= 0:
        raise ValidationError("Total must be greater than 0", field="total")

    method = (payment_method or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            "Invalid payment method. Must be one of: " + ", ".join(PAYMENT_METHODS),
            field="payment_method",
        )
    kind = (order_type or "DINE-IN").strip().upper()
    if kind not in ORDER_TYPES:
        raise ValidationError("Invalid order type. Must be one of: " + ", ".join(ORDER_TYPES), field="order_type")

    order_lines = _build_lines(lines)

    try:
        order = Order(
            total=total_d,
            payment_method=method,
            order_type=kind,
            created_by=actor or "SYSTEM",
        )
        order.lines = order_lines
        db.add(order)
        await db.flush()

        result = await consumption.consume(db, order, config=config, actor=actor)
        await db.commit()
    except InventoryError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Order creation failed, rolled back: %r", e)
        raise OrderNotCompletedError() from e

    logger.info(
        "Order %s placed: %d line(s), %d deduction(s), %d clamped, %d skipped",
        order.id,
        len(order_lines),
        len(result.deductions),
        len(result.clamped),
        len(result.skipped),
    )
    return order, result


async def get_order(db: AsyncSession, order_id: UUID) -> Order:
    res = await db.execute(select(Order).options(selectinload(Order.lines)).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order
