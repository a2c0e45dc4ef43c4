from typing import Optional

from fastapi import Header, HTTPException, status

from core.errors import (
    DuplicateMappingError,
    InsufficientStockError,
    InventoryError,
    NotFoundError,
    OrderNotCompletedError,
    UnitMismatchError,
    ValidationError,
)


def get_actor(x_actor: Optional[str] = Header(default=None)) -> str:
    """Acting user as forwarded by the auth layer in front of this service."""
    actor = (x_actor or "").strip()
    return actor[:50] or "SYSTEM"


def http_error(e: InventoryError) -> HTTPException:
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (DuplicateMappingError, InsufficientStockError, UnitMismatchError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, OrderNotCompletedError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail={"code": e.code, "message": e.message, **e.details})
