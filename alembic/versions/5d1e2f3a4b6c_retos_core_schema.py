"""retos_core_schema

Revision ID: 5d1e2f3a4b6c
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5d1e2f3a4b6c"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("sku", sa.String(16), nullable=False),
        sa.Column("provider", sa.String(16), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("raw", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("sku IN ('retos','agenda','combo')", name="ck_orders_sku"),
        sa.CheckConstraint("provider IN ('stripe','wompi')", name="ck_orders_provider"),
    )
    op.create_index("idx_orders_email", "orders", ["email"])
    op.create_index("idx_orders_created_at", "orders", ["created_at"])
    op.create_index("idx_orders_provider_created", "orders", ["provider", "created_at"])

    op.create_table(
        "entitlements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("product", sa.String(16), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("product IN ('retos','agenda')", name="ck_entitlements_product"),
        sa.UniqueConstraint("email", "product", name="uq_entitlements_email_product"),
    )

    op.create_table(
        "grant_outbox",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("product", sa.String(16), nullable=False, server_default=sa.text("'agenda'")),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("tries", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_try", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('pending','ok','error')", name="ck_grant_outbox_status"),
        sa.CheckConstraint("product = 'agenda'", name="ck_grant_outbox_product"),
        sa.CheckConstraint("tries >= 0", name="ck_grant_outbox_tries_non_negative"),
    )
    op.create_index(
        "idx_grant_outbox_pending_created",
        "grant_outbox",
        ["created_at", "id"],
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index("idx_grant_outbox_email", "grant_outbox", ["email"])

    op.create_table(
        "admin_actions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor", sa.String(128), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("target_email", sa.String(320), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_admin_actions_created_at", "admin_actions", ["created_at"])
    op.create_index("idx_admin_actions_target_email", "admin_actions", ["target_email"])


def downgrade() -> None:
    op.drop_index("idx_admin_actions_target_email", table_name="admin_actions")
    op.drop_index("idx_admin_actions_created_at", table_name="admin_actions")
    op.drop_table("admin_actions")

    op.drop_index("idx_grant_outbox_email", table_name="grant_outbox")
    op.drop_index("idx_grant_outbox_pending_created", table_name="grant_outbox")
    op.drop_table("grant_outbox")

    op.drop_table("entitlements")

    op.drop_index("idx_orders_provider_created", table_name="orders")
    op.drop_index("idx_orders_created_at", table_name="orders")
    op.drop_index("idx_orders_email", table_name="orders")
    op.drop_table("orders")
