"""Initial database schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AUDIT_ACTIONS = (
    "login",
    "logout",
    "create_sale",
    "modify_sale",
    "cancel_sale",
    "restore_sale",
    "transfer_sale",
    "update_prim_status",
    "bulk_prim_status",
    "approve_deduction",
    "cancel_deduction",
    "cleanup_deductions",
    "carry_forward",
    "reassign_period",
    "create_period",
    "update_rate",
    "update_settings",
)


def upgrade() -> None:
    """Create all ledger tables."""

    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("admin", "salesperson", name="userrole"), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Commission periods
    op.create_table(
        "prim_periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("year", "month", name="uq_prim_periods_year_month"),
    )

    # Commission rate history
    op.create_table(
        "prim_rates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rate", sa.Numeric(6, 3), nullable=False),
        sa.Column("effective_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_prim_rates_effective_date", "prim_rates", ["effective_date"])

    # Administrator-defined sale kinds
    op.create_table(
        "sale_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(50), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(200), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("generates_commission", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("required_fields", sa.JSON(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sale_types_key", "sale_types", ["key"], unique=True)

    # Sales (cancellation_transaction_id FK added after prim_transactions)
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contract_no", sa.String(100), nullable=True, unique=True),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=True),
        sa.Column("sale_date", sa.Date(), nullable=False),
        sa.Column("list_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("discounted_list_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("activity_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("prim_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("base_prim_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("prim_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.Enum("active", "cancelled", name="salestatus"), nullable=False),
        sa.Column("prim_status", sa.Enum("paid", "unpaid", name="primstatus"), nullable=False),
        sa.Column("prim_status_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("prim_status_updated_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("salesperson_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("prim_period_id", sa.Integer(), sa.ForeignKey("prim_periods.id"), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancellation_transaction_id", sa.Integer(), nullable=True),
        sa.Column("transferred_from_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("transferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transferred_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sales_kind", "sales", ["kind"])
    op.create_index("ix_sales_status", "sales", ["status"])
    op.create_index("ix_sales_prim_status", "sales", ["prim_status"])
    op.create_index("ix_sales_salesperson_id", "sales", ["salesperson_id"])
    op.create_index("ix_sales_prim_period_id", "sales", ["prim_period_id"])

    # Commission ledger
    op.create_table(
        "prim_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("salesperson_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("prim_periods.id"), nullable=False),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=True),
        sa.Column("related_transaction_id", sa.Integer(), sa.ForeignKey("prim_transactions.id"), nullable=True),
        sa.Column(
            "kind",
            sa.Enum("earn", "deduction", "transfer_in", "transfer_out", name="transactionkind"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column(
            "deduction_state",
            sa.Enum("pending", "approved", "cancelled", name="deductionstate"),
            nullable=True,
        ),
        sa.Column("carried_forward", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_prim_transactions_period_id", "prim_transactions", ["period_id"])
    op.create_index("ix_prim_transactions_sale_id", "prim_transactions", ["sale_id"])
    op.create_index("ix_prim_transactions_kind", "prim_transactions", ["kind"])
    op.create_index("ix_prim_transactions_deduction_state", "prim_transactions", ["deduction_state"])
    op.create_index(
        "ix_prim_transactions_salesperson_period",
        "prim_transactions",
        ["salesperson_id", "period_id"],
    )

    op.create_foreign_key(
        "fk_sales_cancellation_transaction_id_prim_transactions",
        "sales",
        "prim_transactions",
        ["cancellation_transaction_id"],
        ["id"],
    )

    # Carry-forward references
    op.create_table(
        "carry_forward_markers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("deduction_id", sa.Integer(), sa.ForeignKey("prim_transactions.id"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("prim_periods.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("deduction_id", "period_id", name="uq_carry_forward_deduction_period"),
    )
    op.create_index("ix_carry_forward_markers_deduction_id", "carry_forward_markers", ["deduction_id"])
    op.create_index("ix_carry_forward_markers_period_id", "carry_forward_markers", ["period_id"])

    # Modification history
    op.create_table(
        "sale_modifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("previous_snapshot", sa.JSON(), nullable=False),
        sa.Column("new_snapshot", sa.JSON(), nullable=False),
        sa.Column("previous_commission", sa.Numeric(14, 2), nullable=False),
        sa.Column("new_commission", sa.Numeric(14, 2), nullable=False),
        sa.Column("commission_delta", sa.Numeric(14, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("linked_transaction_id", sa.Integer(), sa.ForeignKey("prim_transactions.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_sale_modifications_sale_id", "sale_modifications", ["sale_id"])

    # Audit logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("action", sa.Enum(*AUDIT_ACTIONS, name="auditaction"), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("action_metadata", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    # System settings table
    op.create_table(
        "system_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("system_settings")
    op.drop_table("audit_logs")
    op.drop_table("sale_modifications")
    op.drop_table("carry_forward_markers")
    op.drop_constraint(
        "fk_sales_cancellation_transaction_id_prim_transactions",
        "sales",
        type_="foreignkey",
    )
    op.drop_table("prim_transactions")
    op.drop_table("sales")
    op.drop_table("sale_types")
    op.drop_table("prim_rates")
    op.drop_table("prim_periods")
    op.drop_table("users")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS auditaction")
    op.execute("DROP TYPE IF EXISTS deductionstate")
    op.execute("DROP TYPE IF EXISTS transactionkind")
    op.execute("DROP TYPE IF EXISTS primstatus")
    op.execute("DROP TYPE IF EXISTS salestatus")
    op.execute("DROP TYPE IF EXISTS userrole")
