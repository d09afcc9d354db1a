from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from orderflow.core.database import Base


class PlatformAdmin(Base):
    __tablename__ = "platform_admins"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
