from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from orderflow.core.database import Base


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    payment_type = Column(String(10), nullable=False, default="TRANSFER")  # TRANSFER / QRIS / COD
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    # Bank transfer details
    bank_name = Column(String, nullable=True)
    account_number = Column(String, nullable=True)
    account_holder = Column(String, nullable=True)

    # QRIS details
    qris_image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
