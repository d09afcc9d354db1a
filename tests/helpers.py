from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderflow.core.database import Base
import orderflow.models  # noqa: F401
from orderflow.models.payment_method import PaymentMethod
from orderflow.models.tenant import Tenant
from orderflow.services.actor import AccessStatus
from orderflow.services.cart import Cart, CartLine


def build_session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def seed_tenant(db, data: dict, payment_types=("COD", "TRANSFER")) -> Tenant:
    tenant = Tenant(**data)
    db.add(tenant)
    db.flush()
    for position, payment_type in enumerate(payment_types):
        db.add(
            PaymentMethod(
                tenant_id=tenant.id,
                name=payment_type.title(),
                payment_type=payment_type,
                is_active=True,
                sort_order=position,
            )
        )
    db.commit()
    return tenant


def cart_from(lines: list[dict]) -> Cart:
    return Cart.from_lines(CartLine(**line) for line in lines)


class StaticAccessSource:
    """Access-status source answering from a dict, counting calls."""

    def __init__(self, statuses: dict[str, dict] | None = None, error: Exception | None = None):
        self.statuses = statuses or {}
        self.error = error
        self.calls: list[str] = []

    def fetch(self, user_id: str) -> AccessStatus:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return AccessStatus.from_payload(self.statuses.get(user_id, {"is_super_admin": False, "memberships": []}))
