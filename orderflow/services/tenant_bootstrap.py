from __future__ import annotations

from typing import Iterable

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from orderflow.models.payment_method import PaymentMethod
from orderflow.models.tenant import Tenant
from orderflow.models.tenant_user import TenantUser
from orderflow.services.actor import TENANT_ROLES, normalize_role
from orderflow.services.payment_methods import KNOWN_PAYMENT_TYPES
from utils.slug import normalize_slug

REQUIRED_TABLES = ("tenants", "tenant_users", "payment_methods")


def ensure_tenant_tables(engine: Engine) -> None:
    inspector = inspect(engine)
    missing = [table for table in REQUIRED_TABLES if not inspector.has_table(table)]
    if missing:
        raise RuntimeError(
            f"Tabelas ausentes: {', '.join(missing)}. Rode `alembic upgrade head` primeiro."
        )


def upsert_tenant(
    db: Session,
    *,
    slug: str,
    name: str,
    minimum_order_amount: int = 0,
    delivery_fee: int = 0,
    free_delivery_threshold: int = 0,
    order_code_prefix: str | None = None,
) -> tuple[Tenant, bool]:
    normalized = normalize_slug(slug)
    if not normalized:
        raise ValueError("Slug inválido.")

    tenant = db.query(Tenant).filter(Tenant.slug == normalized).first()
    created = tenant is None
    if created:
        tenant = Tenant(slug=normalized, is_active=True)
        db.add(tenant)

    tenant.name = name
    tenant.minimum_order_amount = int(minimum_order_amount)
    tenant.delivery_fee = int(delivery_fee)
    tenant.free_delivery_threshold = int(free_delivery_threshold)
    tenant.order_code_prefix = order_code_prefix
    db.commit()
    db.refresh(tenant)
    return tenant, created


def ensure_payment_methods(db: Session, *, tenant_id: int, payment_types: Iterable[str]) -> list[PaymentMethod]:
    rows: list[PaymentMethod] = []
    for position, raw_type in enumerate(payment_types):
        payment_type = (raw_type or "").strip().upper()
        if payment_type not in KNOWN_PAYMENT_TYPES:
            raise ValueError(f"Tipo de pagamento inválido: {raw_type}")
        row = (
            db.query(PaymentMethod)
            .filter(PaymentMethod.tenant_id == tenant_id, PaymentMethod.payment_type == payment_type)
            .first()
        )
        if row is None:
            row = PaymentMethod(tenant_id=tenant_id, payment_type=payment_type, name=payment_type)
            db.add(row)
        row.is_active = True
        row.sort_order = position
        rows.append(row)
    db.commit()
    return rows


def upsert_membership(
    db: Session,
    *,
    tenant_id: int,
    user_id: str,
    email: str,
    role: str,
) -> tuple[TenantUser, bool]:
    normalized_role = normalize_role(role)
    if normalized_role not in TENANT_ROLES:
        raise ValueError(f"Role inválido: {role}")

    membership = (
        db.query(TenantUser)
        .filter(TenantUser.tenant_id == tenant_id, TenantUser.user_id == user_id)
        .first()
    )
    created = membership is None
    if created:
        membership = TenantUser(tenant_id=tenant_id, user_id=user_id)
        db.add(membership)
    membership.user_email = email
    membership.role = normalized_role
    membership.is_active = True
    db.commit()
    db.refresh(membership)
    return membership, created
