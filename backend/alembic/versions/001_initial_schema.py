"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(length=40), nullable=False, unique=True),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("admin_candidate_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('user', 'admin')", name="chk_user_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_admin_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("business_name", sa.String(length=255), nullable=True),
        sa.Column("project_type", sa.String(length=100), nullable=False),
        sa.Column("budget", sa.String(length=100), nullable=False),
        sa.Column("timeline", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("items", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("tax_rate", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.CheckConstraint(
            "status IN ('pending', 'in-progress', 'needs-feedback', 'complete', 'cancelled')",
            name="chk_order_status",
        ),
        sa.CheckConstraint("discount_cents >= 0", name="chk_order_discount_non_negative"),
        sa.CheckConstraint("shipping_cents >= 0", name="chk_order_shipping_non_negative"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"], unique=False)
    op.create_index("ix_orders_assigned_admin_id", "orders", ["assigned_admin_id"], unique=False)
    op.create_index("ix_orders_email", "orders", ["email"], unique=False)
    op.create_index("ix_orders_project_type", "orders", ["project_type"], unique=False)
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_updated_at", "orders", ["updated_at"], unique=False)

    op.create_table(
        "order_updates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="web"),
        sa.Column("event_type", sa.String(length=20), nullable=False, server_default="comment"),
        sa.Column("requires_customer_response", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("source IN ('web', 'email', 'system')", name="chk_order_update_source"),
        sa.CheckConstraint("event_type IN ('comment', 'status', 'email')", name="chk_order_update_event_type"),
    )
    op.create_index("ix_order_updates_order_id", "order_updates", ["order_id"], unique=False)
    op.create_index("ix_order_updates_created_at", "order_updates", ["created_at"], unique=False)
    # One entry per author per order per UTC minute. NULL authors (system rows) never collide.
    op.execute(
        "CREATE UNIQUE INDEX idx_order_updates_rate_limit ON order_updates "
        "(order_id, author_user_id, date_trunc('minute', created_at AT TIME ZONE 'UTC'))"
    )

    op.create_table(
        "order_read_receipts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("order_id", "user_id", name="uq_order_read_receipts_order_user"),
    )
    op.create_index("ix_order_read_receipts_user_id", "order_read_receipts", ["user_id"], unique=False)

    op.create_table(
        "otp_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("otp_hash", sa.String(length=255), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_otp_tokens_email_created", "otp_tokens", ["email", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_otp_tokens_email_created", table_name="otp_tokens")
    op.drop_table("otp_tokens")

    op.drop_index("ix_order_read_receipts_user_id", table_name="order_read_receipts")
    op.drop_table("order_read_receipts")

    op.execute("DROP INDEX IF EXISTS idx_order_updates_rate_limit")
    op.drop_index("ix_order_updates_created_at", table_name="order_updates")
    op.drop_index("ix_order_updates_order_id", table_name="order_updates")
    op.drop_table("order_updates")

    op.drop_index("ix_orders_updated_at", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_project_type", table_name="orders")
    op.drop_index("ix_orders_email", table_name="orders")
    op.drop_index("ix_orders_assigned_admin_id", table_name="orders")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_table("orders")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
