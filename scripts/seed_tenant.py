#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from orderflow.core.config import DEFAULT_TENANT_SLUG, IS_DEV  # noqa: E402
from orderflow.core.database import SessionLocal, engine  # noqa: E402
from orderflow.services.auth import create_access_token  # noqa: E402
from orderflow.services.tenant_bootstrap import (  # noqa: E402
    ensure_payment_methods,
    ensure_tenant_tables,
    upsert_membership,
    upsert_tenant,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed de tenant para DEV.")
    parser.add_argument("--slug", default=DEFAULT_TENANT_SLUG, help="Slug do tenant")
    parser.add_argument("--name", default="Kopi Pendekar", help="Nome da loja")
    parser.add_argument("--minimum", type=int, default=0, help="Pedido mínimo (Rupiah)")
    parser.add_argument("--delivery-fee", type=int, default=0, help="Ongkir (Rupiah)")
    parser.add_argument("--free-threshold", type=int, default=0, help="Gratis ongkir a partir de (0 = off)")
    parser.add_argument("--prefix", default=None, help="Prefixo do código do pedido (2-4 chars)")
    parser.add_argument("--payments", default="TRANSFER,QRIS,COD", help="Tipos ativos, separados por vírgula")
    parser.add_argument("--user-id", help="Identity id do staff a vincular")
    parser.add_argument("--email", default="", help="Email do staff")
    parser.add_argument("--role", default="admin", help="super_admin | admin | manager | cashier")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        ensure_tenant_tables(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        tenant, created = upsert_tenant(
            db,
            slug=args.slug,
            name=args.name,
            minimum_order_amount=args.minimum,
            delivery_fee=args.delivery_fee,
            free_delivery_threshold=args.free_threshold,
            order_code_prefix=args.prefix,
        )
        tenant_id, tenant_slug = tenant.id, tenant.slug
        ensure_payment_methods(db, tenant_id=tenant_id, payment_types=args.payments.split(","))
        if args.user_id:
            upsert_membership(db, tenant_id=tenant_id, user_id=args.user_id, email=args.email, role=args.role)
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Tenant {action}: id={tenant_id} slug={tenant_slug}")
    if IS_DEV and args.user_id:
        print(f"Token DEV -> {create_access_token(args.user_id, email=args.email or None)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
