from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from orderflow.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Pricing configuration (smallest currency unit, Rupiah)
    minimum_order_amount = Column(Integer, nullable=False, default=0)
    delivery_fee = Column(Integer, nullable=False, default=0)
    free_delivery_threshold = Column(Integer, nullable=False, default=0)  # 0 = disabled

    order_code_prefix = Column(String(4), nullable=True)

    # Staff notifications
    telegram_bot_token = Column(String, nullable=True)
    telegram_notify_checkout = Column(Boolean, nullable=False, default=True)
    telegram_notify_cashier = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
