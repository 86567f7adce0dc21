from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from aggregation import (
    CategoryAggregator,
    CumulativeBalanceCalculator,
    LegTotal,
    default_rules,
)
from checkpoints import Checkpoint, CheckpointStore, SqlCheckpointStore
from config import Settings, get_settings
from database import session_factory_for
from exceptions import (
    DataIntegrityError,
    LedgerError,
    ProjectNotFound,
    TransientReadFailure,
)
from models import DailySummary, Project, ProjectFundTransfer
from money import to_storage
from periods import DateRange, next_day, previous_day
from readers import (
    CATEGORY_SOURCES,
    LedgerCategory,
    SqlTransactionReader,
    TransactionReader,
)
from sanity import SanityGuard
from schemas import ProjectIn

logger = logging.getLogger(__name__)


class BalanceSource(str, Enum):
    checkpoint = "checkpoint"
    computed_from_checkpoint = "computed-from-checkpoint"
    computed_from_scratch = "computed-from-scratch"


@dataclass(frozen=True)
class CarriedForward:
    amount: Decimal
    source: BalanceSource
    previous_date: date
    checkpoint_date: Optional[date] = None


@dataclass(frozen=True)
class DailyReport:
    project_id: str
    day: date
    carried_forward: CarriedForward
    total_income: Decimal
    total_expenses: Decimal
    remaining_balance: Decimal
    breakdown: dict[str, LegTotal]


class CarriedForwardResolver:
    """Balance carried into a day: nearest prior checkpoint plus the gap."""

    def __init__(
        self,
        store: CheckpointStore,
        calculator: CumulativeBalanceCalculator,
    ) -> None:
        self.store = store
        self.calculator = calculator

    def resolve(self, project_id: str, day: date) -> CarriedForward:
        previous = previous_day(day)
        checkpoint = self.store.find_latest_before(project_id, day)

        if checkpoint is not None and checkpoint.is_stale:
            logger.warning(
                f"carried_forward: project={project_id} date={day.isoformat()} "
                f"skipping stale checkpoint={checkpoint.summary_date.isoformat()}"
            )
            checkpoint = None

        if checkpoint is None:
            amount = self.calculator.net_balance(project_id, DateRange.through(previous))
            source = BalanceSource.computed_from_scratch
            checkpoint_date = None
        elif checkpoint.summary_date == previous:
            amount = checkpoint.remaining_balance
            source = BalanceSource.checkpoint
            checkpoint_date = checkpoint.summary_date
        else:
            gap = self.calculator.net_balance(
                project_id, DateRange(next_day(checkpoint.summary_date), previous)
            )
            amount = checkpoint.remaining_balance + gap
            source = BalanceSource.computed_from_checkpoint
            checkpoint_date = checkpoint.summary_date

        logger.info(
            f"carried_forward: project={project_id} date={day.isoformat()} "
            f"source={source.value} amount={to_storage(amount)}"
        )
        return CarriedForward(
            amount=amount,
            source=source,
            previous_date=previous,
            checkpoint_date=checkpoint_date,
        )


class DailyLedgerService:
    def __init__(
        self,
        session: Session,
        settings: Optional[Settings] = None,
        *,
        reader: Optional[TransactionReader] = None,
        store: Optional[CheckpointStore] = None,
        guard: Optional[SanityGuard] = None,
    ) -> None:
        settings = settings or get_settings()
        self.session = session
        self.guard = guard or SanityGuard(settings)
        self.store = store or SqlCheckpointStore(session)
        reader = reader or SqlTransactionReader(session_factory_for(session))
        self.calculator = CumulativeBalanceCalculator(
            CategoryAggregator(reader, self.guard),
            default_rules(settings),
            timeout_secs=settings.aggregation_timeout_secs,
        )
        self.resolver = CarriedForwardResolver(self.store, self.calculator)

    def _ensure_project(self, project_id: str) -> None:
        ProjectService(self.session).get(project_id)

    def previous_balance(self, project_id: str, day: date) -> CarriedForward:
        self._ensure_project(project_id)
        return self.resolver.resolve(project_id, day)

    def report(self, project_id: str, day: date) -> DailyReport:
        self._ensure_project(project_id)
        carried = self.resolver.resolve(project_id, day)
        # Same-day figures always come from the rows, never from checkpoints.
        same_day = self.calculator.totals(project_id, DateRange.single_day(day))
        total_income = self.guard.total(same_day.income, field="total_income")
        total_expenses = self.guard.total(same_day.expenses, field="total_expenses")
        return DailyReport(
            project_id=project_id,
            day=day,
            carried_forward=carried,
            total_income=total_income,
            total_expenses=total_expenses,
            remaining_balance=carried.amount + total_income - total_expenses,
            breakdown=same_day.by_key(),
        )

    def commit(
        self,
        project_id: str,
        day: date,
        report: Optional[DailyReport] = None,
        *,
        notes: Optional[str] = None,
    ) -> Checkpoint:
        if report is None:
            report = self.report(project_id, day)
        elif report.project_id != project_id or report.day != day:
            raise ValueError("Report does not belong to the requested project and date")

        saved = self.store.upsert(
            Checkpoint(
                project_id=project_id,
                summary_date=day,
                carried_forward=report.carried_forward.amount,
                total_income=report.total_income,
                total_expenses=report.total_expenses,
                remaining_balance=report.remaining_balance,
                breakdown={key: leg.amount for key, leg in report.breakdown.items()},
                notes=notes,
            )
        )
        logger.info(
            f"checkpoint_commit: project={project_id} date={day.isoformat()} "
            f"remaining={to_storage(saved.remaining_balance)}"
        )
        return saved

    def saved_summary(self, project_id: str, day: date) -> Optional[Checkpoint]:
        self._ensure_project(project_id)
        return self.store.find_exact(project_id, day)

    def rebuild_stale_checkpoints(self, project_id: str) -> int:
        """Re-commit stale checkpoints oldest first so each builds on the last."""
        self._ensure_project(project_id)
        stale = self.store.stale_dates(project_id)
        for day in stale:
            existing = self.store.find_exact(project_id, day)
            self.commit(project_id, day, notes=existing.notes if existing else None)
        if stale:
            logger.info(f"checkpoint_rebuild: project={project_id} count={len(stale)}")
        return len(stale)


def rebuild_all_stale_checkpoints(
    session: Session, settings: Optional[Settings] = None
) -> int:
    project_ids = session.scalars(
        select(DailySummary.project_id)
        .where(DailySummary.is_stale.is_(True))
        .distinct()
        .order_by(DailySummary.project_id)
    ).all()
    service = DailyLedgerService(session, settings)
    rebuilt = 0
    for project_id in project_ids:
        try:
            rebuilt += service.rebuild_stale_checkpoints(project_id)
        except (DataIntegrityError, TransientReadFailure) as exc:
            # Each project rebuilds independently.
            session.rollback()
            logger.error(
                f"checkpoint_rebuild_failed: project={project_id} code={exc.code} "
                f"error={exc.message}"
            )
    return rebuilt


class ProjectService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: ProjectIn) -> Project:
        project = Project(**data.model_dump())
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        return project

    def get(self, project_id: str) -> Project:
        try:
            project = self.session.get(Project, project_id)
        except DBAPIError as exc:
            raise TransientReadFailure(f"Failed to load project {project_id}") from exc
        if project is None:
            raise ProjectNotFound(project_id)
        return project


class TransactionService:
    """Writes raw rows and flags every checkpoint they invalidate."""

    def __init__(self, session: Session, store: Optional[CheckpointStore] = None) -> None:
        self.session = session
        self.store = store or SqlCheckpointStore(session)

    @staticmethod
    def _columns(data: BaseModel) -> dict[str, object]:
        values = data.model_dump()
        return {
            key: to_storage(value) if isinstance(value, Decimal) else value
            for key, value in values.items()
        }

    @staticmethod
    def _occurs_on(category: LedgerCategory, row: object) -> date:
        return getattr(row, CATEGORY_SOURCES[category].date_column)

    @staticmethod
    def _projects_of(row: object) -> set[str]:
        if isinstance(row, ProjectFundTransfer):
            return {row.from_project_id, row.to_project_id}
        return {row.project_id}

    def _invalidate(self, projects: set[str], since: date) -> None:
        for project_id in sorted(projects):
            self.store.mark_stale(project_id, since)

    def _commit(self, category: LedgerCategory) -> None:
        try:
            self.session.commit()
        except DBAPIError as exc:
            self.session.rollback()
            raise TransientReadFailure(
                f"Failed to save {category.value}", category=category.value
            ) from exc

    def _get(self, category: LedgerCategory, row_id: int) -> object:
        model = CATEGORY_SOURCES[category].model
        try:
            row = self.session.get(model, row_id)
        except DBAPIError as exc:
            raise TransientReadFailure(
                f"Failed to load {category.value} {row_id}", category=category.value
            ) from exc
        if row is None:
            raise ValueError(f"{category.value} {row_id} not found")
        return row

    def record(self, category: LedgerCategory, data: BaseModel) -> object:
        category = LedgerCategory(category)
        row = CATEGORY_SOURCES[category].model(**self._columns(data))
        projects = ProjectService(self.session)
        for project_id in self._projects_of(row):
            projects.get(project_id)
        self.session.add(row)
        self._invalidate(self._projects_of(row), self._occurs_on(category, row))
        self._commit(category)
        self.session.refresh(row)
        return row

    def update(self, category: LedgerCategory, row_id: int, data: BaseModel) -> object:
        category = LedgerCategory(category)
        row = self._get(category, row_id)
        old_projects = self._projects_of(row)
        old_date = self._occurs_on(category, row)
        for key, value in self._columns(data).items():
            setattr(row, key, value)
        new_projects = self._projects_of(row)
        for project_id in new_projects - old_projects:
            try:
                ProjectService(self.session).get(project_id)
            except LedgerError:
                self.session.rollback()
                raise
        since = min(old_date, self._occurs_on(category, row))
        self._invalidate(old_projects | new_projects, since)
        self._commit(category)
        self.session.refresh(row)
        return row

    def delete(self, category: LedgerCategory, row_id: int) -> None:
        category = LedgerCategory(category)
        row = self._get(category, row_id)
        projects = self._projects_of(row)
        since = self._occurs_on(category, row)
        self.session.delete(row)
        self._invalidate(projects, since)
        self._commit(category)
