import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from money import format_amount


class ProjectIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    status: str = Field(default="active", max_length=20)


class FundTransferIn(BaseModel):
    project_id: str
    amount: Decimal = Field(..., ge=0)
    sender_name: Optional[str] = Field(default=None, max_length=200)
    transfer_number: Optional[str] = Field(default=None, max_length=100)
    transfer_type: str = Field(default="cash", max_length=50)
    transfer_date: dt.date
    notes: Optional[str] = None


class MaterialPurchaseIn(BaseModel):
    project_id: str
    material_name: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Decimal = Field(..., ge=0)
    purchase_type: str = Field(default="cash", max_length=20)
    supplier_name: Optional[str] = Field(default=None, max_length=200)
    purchase_date: dt.date
    notes: Optional[str] = None


class WorkerAttendanceIn(BaseModel):
    project_id: str
    worker_id: str
    date: dt.date
    is_present: bool = True
    work_days: Optional[Decimal] = Field(default=None, ge=0)
    daily_wage: Optional[Decimal] = Field(default=None, ge=0)
    actual_wage: Optional[Decimal] = Field(default=None, ge=0)
    paid_amount: Optional[Decimal] = Field(default=None, ge=0)


class TransportationExpenseIn(BaseModel):
    project_id: str
    worker_id: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    date: dt.date


class WorkerTransferIn(BaseModel):
    project_id: str
    worker_id: str
    amount: Decimal = Field(..., ge=0)
    recipient_name: Optional[str] = Field(default=None, max_length=200)
    transfer_method: Optional[str] = Field(default=None, max_length=50)
    transfer_date: dt.date


class WorkerMiscExpenseIn(BaseModel):
    project_id: str
    worker_id: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    date: dt.date


class ProjectFundTransferIn(BaseModel):
    from_project_id: str
    to_project_id: str
    amount: Decimal = Field(..., ge=0)
    transfer_reason: Optional[str] = None
    transfer_date: dt.date

    @model_validator(mode="after")
    def _distinct_projects(self) -> "ProjectFundTransferIn":
        if self.from_project_id == self.to_project_id:
            raise ValueError("A project cannot transfer funds to itself")
        return self


class CommitIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notes: Optional[str] = Field(default=None, max_length=1000)


class LegTotalOut(BaseModel):
    direction: str
    amount: str
    count: int


class DailyReportOut(BaseModel):
    project_id: str
    date: dt.date
    carried_forward: str
    carried_forward_source: str
    checkpoint_date: Optional[dt.date]
    total_income: str
    total_expenses: str
    remaining_balance: str
    breakdown: dict[str, LegTotalOut]

    @classmethod
    def from_report(cls, report) -> "DailyReportOut":
        return cls(
            project_id=report.project_id,
            date=report.day,
            carried_forward=format_amount(report.carried_forward.amount),
            carried_forward_source=report.carried_forward.source.value,
            checkpoint_date=report.carried_forward.checkpoint_date,
            total_income=format_amount(report.total_income),
            total_expenses=format_amount(report.total_expenses),
            remaining_balance=format_amount(report.remaining_balance),
            breakdown={
                key: LegTotalOut(
                    direction=leg.direction.value,
                    amount=format_amount(leg.amount),
                    count=leg.count,
                )
                for key, leg in report.breakdown.items()
            },
        )


class PreviousBalanceOut(BaseModel):
    project_id: str
    balance: str
    previous_date: dt.date
    current_date: dt.date
    source: str
    checkpoint_date: Optional[dt.date]

    @classmethod
    def from_carried_forward(
        cls, project_id: str, current_date: dt.date, carried
    ) -> "PreviousBalanceOut":
        return cls(
            project_id=project_id,
            balance=format_amount(carried.amount),
            previous_date=carried.previous_date,
            current_date=current_date,
            source=carried.source.value,
            checkpoint_date=carried.checkpoint_date,
        )


class DailySummaryOut(BaseModel):
    project_id: str
    date: dt.date
    is_empty: bool
    carried_forward: Optional[str] = None
    total_income: Optional[str] = None
    total_expenses: Optional[str] = None
    remaining_balance: Optional[str] = None
    breakdown: dict[str, str] = Field(default_factory=dict)
    notes: Optional[str] = None
    is_stale: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @classmethod
    def empty(cls, project_id: str, day: dt.date) -> "DailySummaryOut":
        return cls(project_id=project_id, date=day, is_empty=True)

    @classmethod
    def from_checkpoint(cls, checkpoint) -> "DailySummaryOut":
        return cls(
            project_id=checkpoint.project_id,
            date=checkpoint.summary_date,
            is_empty=False,
            carried_forward=format_amount(checkpoint.carried_forward),
            total_income=format_amount(checkpoint.total_income),
            total_expenses=format_amount(checkpoint.total_expenses),
            remaining_balance=format_amount(checkpoint.remaining_balance),
            breakdown={
                key: format_amount(value)
                for key, value in checkpoint.breakdown.items()
            },
            notes=checkpoint.notes,
            is_stale=checkpoint.is_stale,
            created_at=checkpoint.created_at,
            updated_at=checkpoint.updated_at,
        )


class RebuildOut(BaseModel):
    project_id: str
    rebuilt: int
