import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..base import Base, utcnow


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        CheckConstraint("low_stock_threshold >= 0", name="ck_inventory_items_threshold_non_negative"),
        CheckConstraint(
            "unit IN ('grams', 'kilograms', 'pieces', 'liters', 'ml')",
            name="ck_inventory_items_unit",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False, unique=True)
    unit = Column(Text, nullable=False, default="grams")  # stock unit
    quantity = Column(Numeric(12, 3), nullable=False, default=0)

    low_stock_threshold = Column(Numeric(12, 3), nullable=False, default=0)  # 0 = disabled
    expire_date = Column(Date, nullable=True, index=True)
    category = Column(String(50), nullable=True, index=True)
    cost_per_unit = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    bom_entries = relationship("BomEntry", back_populates="inventory_item", cascade="all, delete-orphan")
