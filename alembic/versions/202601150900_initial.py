"""budget categories, income, savings goals, debts

Revision ID: 202601150900
Revises:
Create Date: 2026-01-15 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202601150900"
down_revision = None
branch_labels = None
depends_on = None

FREQUENCY = sa.Enum("daily", "weekly", "monthly", name="frequencytype")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "budget_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#3b82f6"),
        sa.Column("icon", sa.String(length=16), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "is_predetermined", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("budget_categories.id"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_budget_category_percentage_range",
        ),
    )
    op.create_index(
        "ix_budget_categories_parent_id", "budget_categories", ["parent_id"]
    )
    op.create_index(
        "ix_budget_categories_active_order",
        "budget_categories",
        ["is_active", "order"],
    )

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_income_amount_positive"),
    )

    op.create_table(
        "savings_goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "current_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#10b981"),
        sa.Column("icon", sa.String(length=16), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_goal_current_positive"
        ),
    )

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("principal_amount_cents", sa.Integer(), nullable=False),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False),
        sa.Column("interest_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "repayment_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("repayment_frequency", FREQUENCY, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("creditor", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#ef4444"),
        *_timestamps(),
        sa.CheckConstraint(
            "principal_amount_cents >= 0", name="ck_debt_principal_positive"
        ),
        sa.CheckConstraint(
            "current_balance_cents >= 0", name="ck_debt_balance_positive"
        ),
        sa.CheckConstraint("interest_rate >= 0", name="ck_debt_interest_positive"),
    )
    op.create_index("ix_debts_active_paid", "debts", ["is_active", "is_paid"])


def downgrade() -> None:
    op.drop_index("ix_debts_active_paid", table_name="debts")
    op.drop_table("debts")
    op.drop_table("savings_goals")
    op.drop_table("incomes")
    op.drop_index("ix_budget_categories_active_order", table_name="budget_categories")
    op.drop_index("ix_budget_categories_parent_id", table_name="budget_categories")
    op.drop_table("budget_categories")
    FREQUENCY.drop(op.get_bind(), checkfirst=True)
