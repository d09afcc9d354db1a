from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_create_ordering_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())

    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("slug", sa.String(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("minimum_order_amount", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("delivery_fee", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("free_delivery_threshold", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("order_code_prefix", sa.String(length=4), nullable=True),
            sa.Column("telegram_bot_token", sa.String(), nullable=True),
            sa.Column("telegram_notify_checkout", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("telegram_notify_cashier", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    if "tenant_users" not in existing:
        op.create_table(
            "tenant_users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("user_email", sa.String(), nullable=False, server_default=""),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="admin"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.UniqueConstraint("tenant_id", "user_id", name="uq_tenant_users_tenant_user"),
        )
        op.create_index("ix_tenant_users_tenant_id", "tenant_users", ["tenant_id"], unique=False)
        op.create_index("ix_tenant_users_user_id", "tenant_users", ["user_id"], unique=False)

    if "platform_admins" not in existing:
        op.create_table(
            "platform_admins",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
        )
        op.create_index("ix_platform_admins_user_id", "platform_admins", ["user_id"], unique=True)

    if "orders" not in existing:
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("order_code", sa.String(length=32), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("customer_name", sa.String(length=100), nullable=False),
            sa.Column("phone", sa.String(length=20), nullable=False),
            sa.Column("pickup_date", sa.Date(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("subtotal", sa.Integer(), nullable=False),
            sa.Column("discount", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("service_fee", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total", sa.Integer(), nullable=False),
            sa.Column("payment_method", sa.String(length=10), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="BELUM_BAYAR"),
            sa.Column("source", sa.String(length=10), nullable=False, server_default="checkout"),
            sa.Column("idempotency_key", sa.String(length=64), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("tenant_id", "idempotency_key", name="uq_orders_tenant_idempotency_key"),
        )
        op.create_index("ix_orders_order_code", "orders", ["order_code"], unique=True)
        op.create_index("ix_orders_tenant_id", "orders", ["tenant_id"], unique=False)

    if "order_items" not in existing:
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
            sa.Column("menu_item_id", sa.String(length=64), nullable=True),
            sa.Column("name_snapshot", sa.String(), nullable=False),
            sa.Column("price_snapshot", sa.Integer(), nullable=False),
            sa.Column("qty", sa.Integer(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("line_total", sa.Integer(), nullable=False),
            _created_at(),
        )
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
        op.create_index("ix_order_items_tenant_id", "order_items", ["tenant_id"], unique=False)

    if "payment_methods" not in existing:
        op.create_table(
            "payment_methods",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("payment_type", sa.String(length=10), nullable=False, server_default="TRANSFER"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("bank_name", sa.String(), nullable=True),
            sa.Column("account_number", sa.String(), nullable=True),
            sa.Column("account_holder", sa.String(), nullable=True),
            sa.Column("qris_image_url", sa.String(), nullable=True),
            _created_at(),
        )
        op.create_index("ix_payment_methods_tenant_id", "payment_methods", ["tenant_id"], unique=False)

    if "telegram_subscribers" not in existing:
        op.create_table(
            "telegram_subscribers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("chat_id", sa.String(length=64), nullable=False),
            sa.Column("username", sa.String(), nullable=True),
            sa.Column("first_name", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.UniqueConstraint("tenant_id", "chat_id", name="uq_telegram_subscribers_tenant_chat"),
        )
        op.create_index("ix_telegram_subscribers_tenant_id", "telegram_subscribers", ["tenant_id"], unique=False)


def downgrade() -> None:
    for table in (
        "telegram_subscribers",
        "payment_methods",
        "order_items",
        "orders",
        "platform_admins",
        "tenant_users",
        "tenants",
    ):
        op.drop_table(table)
