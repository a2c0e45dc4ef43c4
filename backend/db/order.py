import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Order(Base):
    """A completed sale. Written once at checkout and never modified."""

    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)  # CASH|CARD|QR
    order_type = Column(String(20), nullable=False, default="DINE-IN", index=True)  # DINE-IN|TAKEAWAY|DELIVERY
    created_by = Column(String(50), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
    )


class OrderLine(Base):
    __tablename__ = "order_lines"
    __table_args__ = (CheckConstraint("qty > 0", name="ck_order_lines_qty_positive"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(String(64), nullable=False, index=True)
    qty = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="lines")
