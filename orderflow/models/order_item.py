from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from orderflow.core.database import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    menu_item_id = Column(String(64), nullable=True)

    # snapshots: later menu edits never rewrite history
    name_snapshot = Column(String, nullable=False)
    price_snapshot = Column(Integer, nullable=False)
    qty = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    line_total = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="order_items")
