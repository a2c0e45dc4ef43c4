from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..base import Base, utcnow


LEDGER_KINDS = ("ADD", "REMOVE", "ADJUST", "SALE", "EXPIRED")


class LedgerEntry(Base):
    """Append-only stock movement. `change` is signed and expressed in `unit`."""

    __tablename__ = "stock_ledger"

    # Monotonic id doubles as the newest-first ordering key.
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    inventory_item_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    item_name = Column(String(100), nullable=False)

    kind = Column(String(20), nullable=False, index=True)  # ADD|REMOVE|ADJUST|SALE|EXPIRED
    change = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False)

    reference_type = Column(String(50), nullable=True)  # ORDER|ADJUSTMENT|EXPIRY ...
    reference_id = Column(String(64), nullable=True, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    created_by = Column(String(50), nullable=True)

    inventory_item = relationship("InventoryItem")
