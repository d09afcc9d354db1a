from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint, func

from orderflow.core.database import Base


class TelegramSubscriber(Base):
    __tablename__ = "telegram_subscribers"
    __table_args__ = (UniqueConstraint("tenant_id", "chat_id", name="uq_telegram_subscribers_tenant_chat"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    chat_id = Column(String(64), nullable=False)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
