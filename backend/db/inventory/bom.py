import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..base import Base, utcnow


class BomEntry(Base):
    """One recipe line: how much of an inventory item a single sold menu item consumes."""

    __tablename__ = "bom_entries"
    __table_args__ = (
        UniqueConstraint("menu_item_id", "inventory_item_id", name="ux_bom_entries_menu_item_inventory_item"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Menu items are owned by product management; the key is opaque here.
    menu_item_id = Column(String(64), nullable=False, index=True)
    inventory_item_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quantity_required = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False)  # may differ from the item's stock unit
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    inventory_item = relationship("InventoryItem", back_populates="bom_entries")
