import datetime as dt
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

AMOUNT = String(32)


def _new_id() -> str:
    return str(uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class FundTransfer(Base, TimestampMixin):
    __tablename__ = "fund_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    sender_name: Mapped[Optional[str]] = mapped_column(String(200))
    transfer_number: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    transfer_type: Mapped[str] = mapped_column(String(50), nullable=False, default="cash")
    transfer_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_fund_transfers_project_date", "project_id", "transfer_date"),
    )


class MaterialPurchase(Base, TimestampMixin):
    __tablename__ = "material_purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    material_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(AMOUNT)
    unit_price: Mapped[Optional[str]] = mapped_column(AMOUNT)
    total_amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    purchase_type: Mapped[Optional[str]] = mapped_column(String(20))
    supplier_name: Mapped[Optional[str]] = mapped_column(String(200))
    purchase_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_material_purchases_project_date", "project_id", "purchase_date"),
    )


class WorkerAttendance(Base, TimestampMixin):
    __tablename__ = "worker_attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    worker_id: Mapped[str] = mapped_column(String(36), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    work_days: Mapped[Optional[str]] = mapped_column(AMOUNT)
    daily_wage: Mapped[Optional[str]] = mapped_column(AMOUNT)
    actual_wage: Mapped[Optional[str]] = mapped_column(AMOUNT)
    paid_amount: Mapped[Optional[str]] = mapped_column(AMOUNT)

    __table_args__ = (
        Index("ix_worker_attendance_project_date", "project_id", "date"),
    )


class TransportationExpense(Base, TimestampMixin):
    __tablename__ = "transportation_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    worker_id: Mapped[Optional[str]] = mapped_column(String(36))
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    description: Mapped[Optional[str]] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_transportation_expenses_project_date", "project_id", "date"),
    )


class WorkerTransfer(Base, TimestampMixin):
    __tablename__ = "worker_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    worker_id: Mapped[str] = mapped_column(String(36), nullable=False)
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(200))
    transfer_method: Mapped[Optional[str]] = mapped_column(String(50))
    transfer_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_worker_transfers_project_date", "project_id", "transfer_date"),
    )


class WorkerMiscExpense(Base, TimestampMixin):
    __tablename__ = "worker_misc_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    worker_id: Mapped[Optional[str]] = mapped_column(String(36))
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    description: Mapped[Optional[str]] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_worker_misc_expenses_project_date", "project_id", "date"),
    )


class ProjectFundTransfer(Base, TimestampMixin):
    __tablename__ = "project_fund_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    from_project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id"), nullable=False
    )
    to_project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id"), nullable=False
    )
    amount: Mapped[Optional[str]] = mapped_column(AMOUNT)
    transfer_reason: Mapped[Optional[str]] = mapped_column(Text)
    transfer_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_project_fund_transfers_from_date", "from_project_id", "transfer_date"),
        Index("ix_project_fund_transfers_to_date", "to_project_id", "transfer_date"),
    )


class DailySummary(Base, TimestampMixin):
    __tablename__ = "daily_expense_summaries"
    __table_args__ = (
        UniqueConstraint(
            "project_id", "summary_date", name="uq_daily_summary_project_date"
        ),
        Index("ix_daily_summary_project_date", "project_id", "summary_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    summary_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    carried_forward_amount: Mapped[str] = mapped_column(AMOUNT, nullable=False)
    total_fund_transfers: Mapped[str] = mapped_column(AMOUNT, nullable=False, default="0")
    total_incoming_project_transfers: Mapped[str] = mapped_column(
        AMOUNT, nullable=False, default="0"
    )
    total_worker_wages: Mapped[str] = mapped_column(AMOUNT, nullable=False, default="0")
    total_material_costs: Mapped[str] = mapped_column(AMOUNT, nullable=False, default="0")
    total_transportation_expenses: Mapped[str] = mapped_column(
        AMOUNT, nullable=False, default="0"
    )
    total_worker_transfers: Mapped[str] = mapped_column(
        AMOUNT, nullable=False, default="0"
    )
    total_worker_misc_expenses: Mapped[str] = mapped_column(
        AMOUNT, nullable=False, default="0"
    )
    total_outgoing_project_transfers: Mapped[str] = mapped_column(
        AMOUNT, nullable=False, default="0"
    )
    total_income: Mapped[str] = mapped_column(AMOUNT, nullable=False)
    total_expenses: Mapped[str] = mapped_column(AMOUNT, nullable=False)
    remaining_balance: Mapped[str] = mapped_column(AMOUNT, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
