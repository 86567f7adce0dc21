from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Mapping, Optional, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from exceptions import DataIntegrityError, TransientReadFailure
from models import DailySummary
from money import ZERO, amount_or_zero, parse_amount, to_storage

logger = logging.getLogger(__name__)

# Leg key -> checkpoint column holding that leg's same-day total.
BREAKDOWN_COLUMNS: dict[str, str] = {
    "fund_transfers": "total_fund_transfers",
    "incoming_project_transfers": "total_incoming_project_transfers",
    "worker_wages": "total_worker_wages",
    "material_costs": "total_material_costs",
    "transportation_expenses": "total_transportation_expenses",
    "worker_transfers": "total_worker_transfers",
    "worker_misc_expenses": "total_worker_misc_expenses",
    "outgoing_project_transfers": "total_outgoing_project_transfers",
}


@dataclass(frozen=True)
class Checkpoint:
    project_id: str
    summary_date: date
    carried_forward: Decimal
    total_income: Decimal
    total_expenses: Decimal
    remaining_balance: Decimal
    breakdown: Mapping[str, Decimal] = field(default_factory=dict)
    notes: Optional[str] = None
    is_stale: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckpointStore(Protocol):
    def find_latest_before(self, project_id: str, day: date) -> Optional[Checkpoint]:
        ...

    def find_exact(self, project_id: str, day: date) -> Optional[Checkpoint]:
        ...

    def upsert(self, checkpoint: Checkpoint) -> Checkpoint:
        ...

    def mark_stale(self, project_id: str, since: date) -> int:
        ...

    def stale_dates(self, project_id: str) -> list[date]:
        ...


def _stored_amount(row: DailySummary, column: str) -> Decimal:
    raw = getattr(row, column)
    amount = parse_amount(raw)
    if amount is None:
        raise DataIntegrityError(
            f"Checkpoint column {column} holds an unreadable amount: {raw!r}",
            project_id=row.project_id,
            on_date=row.summary_date,
        )
    return amount


def _to_checkpoint(row: DailySummary) -> Checkpoint:
    return Checkpoint(
        project_id=row.project_id,
        summary_date=row.summary_date,
        carried_forward=_stored_amount(row, "carried_forward_amount"),
        total_income=_stored_amount(row, "total_income"),
        total_expenses=_stored_amount(row, "total_expenses"),
        remaining_balance=_stored_amount(row, "remaining_balance"),
        breakdown={
            key: amount_or_zero(getattr(row, column))
            for key, column in BREAKDOWN_COLUMNS.items()
        },
        notes=row.notes,
        is_stale=bool(row.is_stale),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _single(rows: Sequence[DailySummary], project_id: str) -> Optional[DailySummary]:
    """First row, refusing two checkpoints that share a date."""
    if not rows:
        return None
    if len(rows) > 1 and rows[0].summary_date == rows[1].summary_date:
        raise DataIntegrityError(
            f"Duplicate checkpoints for project {project_id} "
            f"on {rows[0].summary_date.isoformat()}",
            project_id=project_id,
            on_date=rows[0].summary_date,
        )
    return rows[0]


class SqlCheckpointStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _candidates(
        self,
        project_id: str,
        *,
        before: Optional[date] = None,
        on: Optional[date] = None,
    ) -> list[DailySummary]:
        stmt = select(DailySummary).where(DailySummary.project_id == project_id)
        if before is not None:
            stmt = stmt.where(DailySummary.summary_date < before)
        if on is not None:
            stmt = stmt.where(DailySummary.summary_date == on)
        stmt = stmt.order_by(
            DailySummary.summary_date.desc(), DailySummary.id.desc()
        ).limit(2)
        try:
            return list(self.session.scalars(stmt).all())
        except DBAPIError as exc:
            raise TransientReadFailure(
                f"Failed to read checkpoints for project {project_id}"
            ) from exc

    def find_latest_before(self, project_id: str, day: date) -> Optional[Checkpoint]:
        row = _single(self._candidates(project_id, before=day), project_id)
        return _to_checkpoint(row) if row else None

    def find_exact(self, project_id: str, day: date) -> Optional[Checkpoint]:
        row = _single(self._candidates(project_id, on=day), project_id)
        return _to_checkpoint(row) if row else None

    def _apply(self, row: DailySummary, checkpoint: Checkpoint) -> None:
        row.carried_forward_amount = to_storage(checkpoint.carried_forward)
        row.total_income = to_storage(checkpoint.total_income)
        row.total_expenses = to_storage(checkpoint.total_expenses)
        row.remaining_balance = to_storage(checkpoint.remaining_balance)
        for key, column in BREAKDOWN_COLUMNS.items():
            setattr(row, column, to_storage(checkpoint.breakdown.get(key, ZERO)))
        row.notes = checkpoint.notes
        row.is_stale = False

    def _write(self, checkpoint: Checkpoint) -> DailySummary:
        row = _single(
            self._candidates(checkpoint.project_id, on=checkpoint.summary_date),
            checkpoint.project_id,
        )
        if row is None:
            row = DailySummary(
                project_id=checkpoint.project_id,
                summary_date=checkpoint.summary_date,
            )
            self.session.add(row)
        self._apply(row, checkpoint)
        self.session.commit()
        return row

    def _write_once_more_on_conflict(self, checkpoint: Checkpoint) -> DailySummary:
        try:
            return self._write(checkpoint)
        except IntegrityError:
            # Another writer inserted the same natural key first.
            self.session.rollback()
            return self._write(checkpoint)

    def upsert(self, checkpoint: Checkpoint) -> Checkpoint:
        """Insert or fully overwrite the row for (project, date)."""
        try:
            row = self._write_once_more_on_conflict(checkpoint)
            self.session.refresh(row)
        except DBAPIError as exc:
            self.session.rollback()
            raise TransientReadFailure(
                f"Failed to write checkpoint for project {checkpoint.project_id} "
                f"on {checkpoint.summary_date.isoformat()}"
            ) from exc
        return _to_checkpoint(row)

    def mark_stale(self, project_id: str, since: date) -> int:
        """Flag every checkpoint on or after ``since``; caller commits."""
        stmt = (
            update(DailySummary)
            .where(
                DailySummary.project_id == project_id,
                DailySummary.summary_date >= since,
                DailySummary.is_stale.is_(False),
            )
            .values(is_stale=True)
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = self.session.execute(stmt)
        except DBAPIError as exc:
            self.session.rollback()
            raise TransientReadFailure(
                f"Failed to mark checkpoints stale for project {project_id}"
            ) from exc
        count = result.rowcount or 0
        if count:
            logger.info(
                f"checkpoints_stale: project={project_id} since={since.isoformat()} "
                f"count={count}"
            )
        return count

    def stale_dates(self, project_id: str) -> list[date]:
        stmt = (
            select(DailySummary.summary_date)
            .where(
                DailySummary.project_id == project_id,
                DailySummary.is_stale.is_(True),
            )
            .order_by(DailySummary.summary_date)
        )
        try:
            return list(self.session.scalars(stmt).all())
        except DBAPIError as exc:
            raise TransientReadFailure(
                f"Failed to list stale checkpoints for project {project_id}"
            ) from exc
