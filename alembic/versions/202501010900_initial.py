"""initial ledger schema

Revision ID: 202501010900
Revises:
Create Date: 2025-01-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202501010900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _amount(name: str, nullable: bool = True, **kwargs) -> sa.Column:
    return sa.Column(name, sa.String(length=32), nullable=nullable, **kwargs)


def upgrade():
    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "fund_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        _amount("amount"),
        sa.Column("sender_name", sa.String(length=200)),
        sa.Column("transfer_number", sa.String(length=100), unique=True),
        sa.Column("transfer_type", sa.String(length=50), nullable=False, server_default="cash"),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index(
        "ix_fund_transfers_project_date", "fund_transfers", ["project_id", "transfer_date"]
    )

    op.create_table(
        "material_purchases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("material_name", sa.String(length=200), nullable=False),
        _amount("quantity"),
        _amount("unit_price"),
        _amount("total_amount"),
        sa.Column("purchase_type", sa.String(length=20)),
        sa.Column("supplier_name", sa.String(length=200)),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index(
        "ix_material_purchases_project_date",
        "material_purchases",
        ["project_id", "purchase_date"],
    )

    op.create_table(
        "worker_attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_present", sa.Boolean(), nullable=False, server_default=sa.true()),
        _amount("work_days"),
        _amount("daily_wage"),
        _amount("actual_wage"),
        _amount("paid_amount"),
        *_timestamps(),
    )
    op.create_index(
        "ix_worker_attendance_project_date", "worker_attendance", ["project_id", "date"]
    )

    op.create_table(
        "transportation_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36)),
        _amount("amount"),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_transportation_expenses_project_date",
        "transportation_expenses",
        ["project_id", "date"],
    )

    op.create_table(
        "worker_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36), nullable=False),
        _amount("amount"),
        sa.Column("recipient_name", sa.String(length=200)),
        sa.Column("transfer_method", sa.String(length=50)),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_worker_transfers_project_date",
        "worker_transfers",
        ["project_id", "transfer_date"],
    )

    op.create_table(
        "worker_misc_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36)),
        _amount("amount"),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_worker_misc_expenses_project_date",
        "worker_misc_expenses",
        ["project_id", "date"],
    )

    op.create_table(
        "project_fund_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("from_project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("to_project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        _amount("amount"),
        sa.Column("transfer_reason", sa.Text()),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_project_fund_transfers_from_date",
        "project_fund_transfers",
        ["from_project_id", "transfer_date"],
    )
    op.create_index(
        "ix_project_fund_transfers_to_date",
        "project_fund_transfers",
        ["to_project_id", "transfer_date"],
    )

    op.create_table(
        "daily_expense_summaries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("summary_date", sa.Date(), nullable=False),
        _amount("carried_forward_amount", nullable=False),
        _amount("total_fund_transfers", nullable=False, server_default="0"),
        _amount("total_incoming_project_transfers", nullable=False, server_default="0"),
        _amount("total_worker_wages", nullable=False, server_default="0"),
        _amount("total_material_costs", nullable=False, server_default="0"),
        _amount("total_transportation_expenses", nullable=False, server_default="0"),
        _amount("total_worker_transfers", nullable=False, server_default="0"),
        _amount("total_worker_misc_expenses", nullable=False, server_default="0"),
        _amount("total_outgoing_project_transfers", nullable=False, server_default="0"),
        _amount("total_income", nullable=False),
        _amount("total_expenses", nullable=False),
        _amount("remaining_balance", nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("is_stale", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint(
            "project_id", "summary_date", name="uq_daily_summary_project_date"
        ),
    )
    op.create_index(
        "ix_daily_summary_project_date",
        "daily_expense_summaries",
        ["project_id", "summary_date"],
    )


def downgrade():
    op.drop_index("ix_daily_summary_project_date", table_name="daily_expense_summaries")
    op.drop_table("daily_expense_summaries")
    op.drop_index("ix_project_fund_transfers_to_date", table_name="project_fund_transfers")
    op.drop_index("ix_project_fund_transfers_from_date", table_name="project_fund_transfers")
    op.drop_table("project_fund_transfers")
    op.drop_index("ix_worker_misc_expenses_project_date", table_name="worker_misc_expenses")
    op.drop_table("worker_misc_expenses")
    op.drop_index("ix_worker_transfers_project_date", table_name="worker_transfers")
    op.drop_table("worker_transfers")
    op.drop_index(
        "ix_transportation_expenses_project_date", table_name="transportation_expenses"
    )
    op.drop_table("transportation_expenses")
    op.drop_index("ix_worker_attendance_project_date", table_name="worker_attendance")
    op.drop_table("worker_attendance")
    op.drop_index("ix_material_purchases_project_date", table_name="material_purchases")
    op.drop_table("material_purchases")
    op.drop_index("ix_fund_transfers_project_date", table_name="fund_transfers")
    op.drop_table("fund_transfers")
    op.drop_table("projects")
