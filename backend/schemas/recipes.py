from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from schemas.inventory import StockUnit


class RecipeIngredientIn(BaseModel):
    inventory_item_id: UUID
    quantity_required: float
    unit: StockUnit

    @field_validator("quantity_required")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("quantity_required must be greater than 0")
        return v


class RecipeSetRequest(BaseModel):
    ingredients: List[RecipeIngredientIn]


class BomEntryUpdate(BaseModel):
    quantity_required: float
    unit: Optional[StockUnit] = None

    @field_validator("quantity_required")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("quantity_required must be greater than 0")
        return v


class BomEntryOut(BaseModel):
    id: UUID
    menu_item_id: str
    inventory_item_id: UUID
    inventory_item_name: str
    inventory_unit: StockUnit
    current_stock: float
    quantity_required: float
    unit: StockUnit
    position: int
    created_at: Optional[datetime] = None
