from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


StockUnit = Literal["grams", "kilograms", "pieces", "liters", "ml"]
LedgerKind = Literal["ADD", "REMOVE", "ADJUST", "SALE", "EXPIRED"]
AlertStatus = Literal["normal", "low_stock", "expiring_soon", "expired"]


class InventoryItemCreate(BaseModel):
    name: str
    unit: StockUnit = "grams"
    quantity: float = 0
    low_stock_threshold: float = 0
    expire_date: Optional[date] = None
    category: Optional[str] = None
    cost_per_unit: Optional[float] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("quantity", "low_stock_threshold")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("category")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    unit: Optional[StockUnit] = None
    quantity: Optional[float] = None
    low_stock_threshold: Optional[float] = None
    expire_date: Optional[date] = None
    category: Optional[str] = None
    cost_per_unit: Optional[float] = None

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = (v or "").strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class StockQuantityRequest(BaseModel):
    quantity: float
    note: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Quantity must be greater than 0")
        return v


class StockAdjustRequest(BaseModel):
    delta: float
    reason: Optional[str] = None

    @field_validator("delta")
    @classmethod
    def _delta_non_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("delta must be non-zero")
        return v

    @field_validator("reason")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class InventoryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    unit: StockUnit
    quantity: float
    low_stock_threshold: float
    expire_date: Optional[date] = None
    category: Optional[str] = None
    cost_per_unit: Optional[float] = None
    status: AlertStatus = "normal"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockChangeOut(BaseModel):
    inventory_item_id: UUID
    requested: float
    applied: float
    previous: float
    current: float
    clamped: bool


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    inventory_item_id: Optional[UUID] = None
    item_name: str
    kind: LedgerKind
    change: float
    unit: StockUnit
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    created_by: Optional[str] = None


class ReconciliationOut(BaseModel):
    inventory_item_id: UUID
    unit: StockUnit
    quantity: float
    sale_total: float
    net_change: float
    by_kind: dict


class AlertItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    unit: StockUnit
    quantity: float
    low_stock_threshold: float
    expire_date: Optional[date] = None
    category: Optional[str] = None


class AlertNotificationOut(BaseModel):
    id: str
    type: Literal["LOW_STOCK", "EXPIRY", "EXPIRED"]
    inventory_item_id: UUID
    name: str
    message: str


class AlertsOut(BaseModel):
    lookahead_days: int
    lowStock: List[AlertItemOut]
    expiringSoon: List[AlertItemOut]
    expired: List[AlertItemOut]
    notifications: List[AlertNotificationOut]
