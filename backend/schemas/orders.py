from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


PaymentMethod = Literal["CASH", "CARD", "QR"]
OrderType = Literal["DINE-IN", "TAKEAWAY", "DELIVERY"]


class OrderLineIn(BaseModel):
    menu_item_id: str
    qty: int
    price: float

    @field_validator("menu_item_id", mode="before")
    @classmethod
    def _opaque_key(cls, v):
        # Product ids are integers in some deployments and UUIDs in others.
        if v is None:
            raise ValueError("menu_item_id is required")
        v = str(v).strip()
        if not v:
            raise ValueError("menu_item_id is required")
        return v

    @field_validator("qty")
    @classmethod
    def _qty_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("qty must be > 0")
        return v

    @field_validator("price")
    @classmethod
    def _price_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("price must be >= 0")
        return v


class OrderCreate(BaseModel):
    total: float
    payment_method: PaymentMethod
    order_type: OrderType = "DINE-IN"
    items: List[OrderLineIn]

    @field_validator("payment_method", "order_type", mode="before")
    @classmethod
    def _upper(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("total")
    @classmethod
    def _total_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("total must be > 0")
        return v

    @field_validator("items")
    @classmethod
    def _items_required(cls, v: List[OrderLineIn]) -> List[OrderLineIn]:
        if not v:
            raise ValueError("Total, payment method, and items are required")
        return v


class OrderLineRead(BaseModel):
    id: UUID
    menu_item_id: str
    qty: int
    price: float


class OrderRead(BaseModel):
    id: UUID
    total: float
    payment_method: PaymentMethod
    order_type: OrderType
    created_by: Optional[str] = None
    created_at: datetime
    lines: List[OrderLineRead]


class DeductionRead(BaseModel):
    menu_item_id: str
    inventory_item_id: UUID
    item_name: str
    requested: float
    deducted: float
    unit: str
    clamped: bool
    ledger_entry_id: int


class SkippedEntryRead(BaseModel):
    menu_item_id: str
    bom_entry_id: UUID
    inventory_item_id: UUID
    reason: str


class ConsumptionRead(BaseModel):
    deductions: List[DeductionRead]
    skipped: List[SkippedEntryRead]


class OrderPlacedResponse(BaseModel):
    id: UUID
    consumption: ConsumptionRead
