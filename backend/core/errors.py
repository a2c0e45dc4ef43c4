"""
Typed errors raised by the inventory engine.

Every error carries a machine-readable ``code`` so routers can map it to an
HTTP status without matching on message text.

    InventoryError
    +-- ValidationError          bad input, rejected before any mutation
    +-- NotFoundError            unknown inventory item / recipe entry / order
    +-- UnitMismatchError        conversion across unit families
    +-- DuplicateMappingError    (menu item, inventory item) pair already mapped
    +-- InsufficientStockError   only under the "reject" stock policy
    +-- ImmutableLedgerError     attempt to update or delete a ledger row
    +-- OrderNotCompletedError   storage failure, order rolled back
"""

from decimal import Decimal
from typing import Any, Optional


class InventoryError(Exception):
    code = "INVENTORY_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(InventoryError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


class NotFoundError(InventoryError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found: {identifier}", resource=resource, identifier=str(identifier))
        self.resource = resource
        self.identifier = identifier


class UnitMismatchError(InventoryError):
    code = "UNIT_MISMATCH"

    def __init__(self, from_unit: str, to_unit: str):
        super().__init__(
            f"Cannot convert '{from_unit}' to '{to_unit}': different unit families",
            from_unit=from_unit,
            to_unit=to_unit,
        )
        self.from_unit = from_unit
        self.to_unit = to_unit


class DuplicateMappingError(InventoryError):
    code = "DUPLICATE_MAPPING"

    def __init__(self, menu_item_id: Any, inventory_item_id: Any):
        super().__init__(
            "This inventory item is already mapped to this menu item",
            menu_item_id=str(menu_item_id),
            inventory_item_id=str(inventory_item_id),
        )
        self.menu_item_id = menu_item_id
        self.inventory_item_id = inventory_item_id


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_name: str, required: Decimal, available: Decimal, unit: str):
        super().__init__(
            f"Insufficient stock for '{item_name}': required {required} {unit}, available {available} {unit}",
            item=item_name,
            required=str(required),
            available=str(available),
            unit=unit,
        )
        self.item_name = item_name
        self.required = required
        self.available = available
        self.unit = unit


class ImmutableLedgerError(InventoryError):
    code = "LEDGER_IMMUTABLE"


class OrderNotCompletedError(InventoryError):
    code = "ORDER_NOT_COMPLETED"

    def __init__(self, message: str = "Order could not be completed"):
        super().__init__(message)
