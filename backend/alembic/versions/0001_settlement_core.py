from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_settlement_core"
down_revision = None
branch_labels = None
depends_on = None


JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
MONEY = sa.Numeric(10, 2)


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("slug", name="uq_tenant_slug"),
    )
    op.create_index("ix_tenants_id", "tenants", ["id"])
    op.create_index("ix_tenants_slug", "tenants", ["slug"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="operator"),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_code", sa.String(length=50), nullable=True),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])
    op.create_index("ix_users_customer_code", "users", ["customer_code"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "code", name="uq_customers_tenant_code"),
    )
    op.create_index("ix_customers_id", "customers", ["id"])
    op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"])
    op.create_index("ix_customers_code", "customers", ["code"])

    op.create_table(
        "folio_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tipo", sa.String(length=20), nullable=False),
        sa.Column("next_seq", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("tenant_id", "tipo", name="uq_folio_counters_tenant_tipo"),
    )
    op.create_index("ix_folio_counters_id", "folio_counters", ["id"])
    op.create_index("ix_folio_counters_tenant_id", "folio_counters", ["tenant_id"])
    op.create_index("ix_folio_counters_tipo", "folio_counters", ["tipo"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_number", sa.String(length=50), nullable=True),
        sa.Column("customer_code", sa.String(length=50), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("gross_value", MONEY, nullable=False, server_default="0"),
        sa.Column("discount_type", sa.String(length=20), nullable=False, server_default="fixed"),
        sa.Column("discount_value", MONEY, nullable=False, server_default="0"),
        sa.Column("return_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("return_note", sa.String(length=500), nullable=True),
        sa.Column("amount_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("remaining_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="open"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("commission_pct", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_tenant_id", "orders", ["tenant_id"])
    op.create_index("ix_orders_order_number", "orders", ["order_number"])
    op.create_index("ix_orders_customer_code", "orders", ["customer_code"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_deposits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("proof_ref", sa.String(length=1000), nullable=True),
        sa.Column("consumed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_order_deposits_id", "order_deposits", ["id"])
    op.create_index("ix_order_deposits_tenant_id", "order_deposits", ["tenant_id"])
    op.create_index("ix_order_deposits_order_id", "order_deposits", ["order_id"])

    op.create_table(
        "credits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("credit_number", sa.Integer(), nullable=False),
        sa.Column("customer_code", sa.String(length=50), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("origin", sa.String(length=500), nullable=False),
        sa.Column("justification", sa.String(length=1000), nullable=True),
        sa.Column("generation_type", sa.String(length=20), nullable=False, server_default="automatic"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("source_order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("consuming_order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("split_from_id", sa.Integer(), sa.ForeignKey("credits.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("tenant_id", "credit_number", name="uq_credits_tenant_number"),
    )
    op.create_index("ix_credits_id", "credits", ["id"])
    op.create_index("ix_credits_tenant_id", "credits", ["tenant_id"])
    op.create_index("ix_credits_credit_number", "credits", ["credit_number"])
    op.create_index("ix_credits_customer_code", "credits", ["customer_code"])
    op.create_index("ix_credits_status", "credits", ["status"])
    op.create_index("ix_credits_source_order_id", "credits", ["source_order_id"])
    op.create_index("ix_credits_consuming_order_id", "credits", ["consuming_order_id"])

    op.create_table(
        "settlement_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("record_number", sa.String(length=50), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("customer_code", sa.String(length=50), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("order_ids", JSON, nullable=False),
        sa.Column("payments", JSON, nullable=False),
        sa.Column("attachments", JSON, nullable=False),
        sa.Column("allocations", JSON, nullable=False),
        sa.Column("original_total", MONEY, nullable=False, server_default="0"),
        sa.Column("discount_total", MONEY, nullable=False, server_default="0"),
        sa.Column("return_total", MONEY, nullable=False, server_default="0"),
        sa.Column("credit_applied", MONEY, nullable=False, server_default="0"),
        sa.Column("credit_generated", MONEY, nullable=False, server_default="0"),
        sa.Column("total_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("operator_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("operator_email", sa.String(length=255), nullable=True),
        sa.Column("pending_settlement_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_settlement_records_id", "settlement_records", ["id"])
    op.create_index("ix_settlement_records_tenant_id", "settlement_records", ["tenant_id"])
    op.create_index("ix_settlement_records_record_number", "settlement_records", ["record_number"])
    op.create_index("ix_settlement_records_customer_code", "settlement_records", ["customer_code"])
    op.create_index("ix_settlement_records_pending_settlement_id", "settlement_records", ["pending_settlement_id"])

    op.create_table(
        "settlement_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("settlement_record_id", sa.Integer(), sa.ForeignKey("settlement_records.id"), nullable=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("payments", JSON, nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("credit_applied", MONEY, nullable=False, server_default="0"),
        sa.Column("credit_generated", MONEY, nullable=False, server_default="0"),
        sa.Column("credit_numbers", JSON, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("return_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("status_before", sa.String(length=30), nullable=True),
        sa.Column("status_after", sa.String(length=30), nullable=False),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_settlement_history_id", "settlement_history", ["id"])
    op.create_index("ix_settlement_history_tenant_id", "settlement_history", ["tenant_id"])
    op.create_index("ix_settlement_history_order_id", "settlement_history", ["order_id"])
    op.create_index("ix_settlement_history_settlement_record_id", "settlement_history", ["settlement_record_id"])

    op.create_table(
        "pending_settlements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("request_number", sa.Integer(), nullable=False),
        sa.Column("customer_code", sa.String(length=50), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("order_ids", JSON, nullable=False),
        sa.Column("original_total", MONEY, nullable=False, server_default="0"),
        sa.Column("discount_cascade", JSON, nullable=False),
        sa.Column("return_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("return_note", sa.String(length=500), nullable=True),
        sa.Column("attachments", JSON, nullable=False),
        sa.Column("payments", JSON, nullable=False),
        sa.Column("credit_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("proposed_total_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("allocations", JSON, nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("submitter_type", sa.String(length=30), nullable=False),
        sa.Column("submitted_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=1000), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settlement_record_id", sa.Integer(), sa.ForeignKey("settlement_records.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_pending_settlements_id", "pending_settlements", ["id"])
    op.create_index("ix_pending_settlements_tenant_id", "pending_settlements", ["tenant_id"])
    op.create_index("ix_pending_settlements_request_number", "pending_settlements", ["request_number"])
    op.create_index("ix_pending_settlements_customer_code", "pending_settlements", ["customer_code"])
    op.create_index("ix_pending_settlements_status", "pending_settlements", ["status"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("old_status", sa.String(length=50), nullable=True),
        sa.Column("new_status", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("user_email", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_status_history_id", "status_history", ["id"])
    op.create_index("ix_status_history_tenant_id", "status_history", ["tenant_id"])
    op.create_index("ix_status_history_entity_id", "status_history", ["entity_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.String(length=1000), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=True),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_tenant_id", "notifications", ["tenant_id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    for table in (
        "notifications",
        "status_history",
        "pending_settlements",
        "settlement_history",
        "settlement_records",
        "credits",
        "order_deposits",
        "orders",
        "folio_counters",
        "customers",
        "users",
        "tenants",
    ):
        op.drop_table(table)
