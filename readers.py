"""
Typed read access to the seven transaction categories.

Every category shares one shape for the ledger: an amount stored as a decimal
string, the calendar date it occurs on, and whatever columns its inclusion
rule needs. Readers never interpret amounts; that is the aggregator's job.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Mapping, Optional, Protocol, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import sessionmaker

from exceptions import TransientReadFailure
from models import (
    FundTransfer,
    MaterialPurchase,
    ProjectFundTransfer,
    TransportationExpense,
    WorkerAttendance,
    WorkerMiscExpense,
    WorkerTransfer,
)
from periods import DateRange


class LedgerCategory(str, Enum):
    fund_transfer = "fund_transfer"
    material_purchase = "material_purchase"
    worker_attendance = "worker_attendance"
    transportation_expense = "transportation_expense"
    worker_transfer = "worker_transfer"
    worker_misc_expense = "worker_misc_expense"
    project_fund_transfer = "project_fund_transfer"


@dataclass(frozen=True)
class LedgerRow:
    id: int
    amount: Optional[str]
    occurs_on: date
    fields: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class CategorySource:
    model: type
    date_column: str
    amount_column: str
    filter_columns: tuple[str, ...] = ()

    def project_columns(self) -> tuple[str, ...]:
        if self.model is ProjectFundTransfer:
            return ("from_project_id", "to_project_id")
        return ("project_id",)


CATEGORY_SOURCES: dict[LedgerCategory, CategorySource] = {
    LedgerCategory.fund_transfer: CategorySource(
        FundTransfer, "transfer_date", "amount"
    ),
    LedgerCategory.material_purchase: CategorySource(
        MaterialPurchase, "purchase_date", "total_amount", ("purchase_type",)
    ),
    LedgerCategory.worker_attendance: CategorySource(
        WorkerAttendance, "date", "paid_amount", ("worker_id", "is_present")
    ),
    LedgerCategory.transportation_expense: CategorySource(
        TransportationExpense, "date", "amount"
    ),
    LedgerCategory.worker_transfer: CategorySource(
        WorkerTransfer, "transfer_date", "amount"
    ),
    LedgerCategory.worker_misc_expense: CategorySource(
        WorkerMiscExpense, "date", "amount"
    ),
    LedgerCategory.project_fund_transfer: CategorySource(
        ProjectFundTransfer,
        "transfer_date",
        "amount",
        ("from_project_id", "to_project_id"),
    ),
}


class TransactionReader(Protocol):
    def query(
        self, category: LedgerCategory, project_id: str, date_range: DateRange
    ) -> Sequence[LedgerRow]:
        """Rows of one category touching ``project_id`` within ``date_range``."""
        ...


class SqlTransactionReader:
    """Reads through short-lived sessions so calls can run on worker threads."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def query(
        self, category: LedgerCategory, project_id: str, date_range: DateRange
    ) -> list[LedgerRow]:
        category = LedgerCategory(category)
        source = CATEGORY_SOURCES[category]
        model = source.model
        occurs_on = getattr(model, source.date_column)
        stmt = select(
            model.id,
            getattr(model, source.amount_column),
            occurs_on,
            *(getattr(model, name) for name in source.filter_columns),
        )
        stmt = stmt.where(
            or_(*(getattr(model, name) == project_id for name in source.project_columns()))
        )
        if date_range.start is not None:
            stmt = stmt.where(occurs_on >= date_range.start)
        stmt = stmt.where(occurs_on <= date_range.end).order_by(occurs_on, model.id)

        try:
            with self.session_factory() as session:
                result = session.execute(stmt).all()
        except DBAPIError as exc:
            raise TransientReadFailure(
                f"Failed to read {category.value} rows for project {project_id}",
                category=category.value,
            ) from exc

        return [
            LedgerRow(
                id=row[0],
                amount=row[1],
                occurs_on=row[2],
                fields=dict(zip(source.filter_columns, row[3:])),
            )
            for row in result
        ]
