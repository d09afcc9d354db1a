from sqlalchemy import Column, Date, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from orderflow.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_orders_tenant_idempotency_key"),
    )

    id = Column(Integer, primary_key=True)
    order_code = Column(String(32), unique=True, index=True, nullable=False)
    tenant_id = Column(Integer, index=True, nullable=False)

    customer_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    pickup_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)

    # valores em Rupiah inteiros
    subtotal = Column(Integer, nullable=False)
    discount = Column(Integer, nullable=False, default=0)
    service_fee = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)

    payment_method = Column(String(10), nullable=False)  # TRANSFER / QRIS / COD
    status = Column(String(20), nullable=False, default="BELUM_BAYAR")
    source = Column(String(10), nullable=False, default="checkout")  # checkout / cashier
    idempotency_key = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
