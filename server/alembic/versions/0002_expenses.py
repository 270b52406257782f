"""expenses, project budgets and payment application flag

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-20 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0002_expenses"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


EXPENSE_CATEGORIES = (
    "software",
    "hardware",
    "labor",
    "utilities",
    "office-supplies",
    "travel",
    "marketing",
    "hosting",
    "subscription",
    "maintenance",
    "other",
)
EXPENSE_STATUSES = ("pending", "approved", "rejected", "paid")
PAYMENT_METHODS = ("cash", "bank-transfer", "credit-card", "check", "other")


def upgrade() -> None:
    op.add_column("projects", sa.Column("budget", sa.Numeric(14, 2)))
    op.add_column("projects", sa.Column("start_date", sa.Date()))
    op.add_column("projects", sa.Column("end_date", sa.Date()))

    op.add_column("payments", sa.Column("applied", sa.Boolean(), nullable=False, server_default=sa.false()))
    op.execute("UPDATE payments SET applied = true WHERE status = 'completed'")

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
        sa.Column("category", sa.Enum(*EXPENSE_CATEGORIES, name="expense_category"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("vendor", sa.String(length=200)),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Enum(*EXPENSE_STATUSES, name="expense_status"), nullable=False),
        sa.Column("payment_method", sa.Enum(*PAYMENT_METHODS, name="expense_payment_method")),
        sa.Column("receipt", sa.String(length=500)),
        sa.Column("notes", sa.Text()),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("tax_deductible", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expenses_user_id", "expenses", ["user_id"])
    op.create_index("ix_expenses_project_id", "expenses", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_expenses_project_id", table_name="expenses")
    op.drop_index("ix_expenses_user_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_column("payments", "applied")
    op.drop_column("projects", "end_date")
    op.drop_column("projects", "start_date")
    op.drop_column("projects", "budget")
