from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from config import Settings, get_settings
from exceptions import DataIntegrityError, TransientReadFailure
from money import ZERO, parse_amount, to_storage
from periods import DateRange
from readers import LedgerCategory, LedgerRow, TransactionReader
from sanity import SanityGuard

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    income = "income"
    expense = "expense"


class CategoryRule:
    """One aggregation leg: which rows count and which field holds the amount."""

    key: str
    category: LedgerCategory
    direction: Direction

    def includes(self, row: LedgerRow, project_id: str) -> bool:
        return True

    def raw_amount(self, row: LedgerRow) -> Optional[str]:
        return row.amount

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"


class FundTransferRule(CategoryRule):
    key = "fund_transfers"
    category = LedgerCategory.fund_transfer
    direction = Direction.income


class WorkerWageRule(CategoryRule):
    # The reader maps paid_amount into the row amount; presence is not consulted.
    key = "worker_wages"
    category = LedgerCategory.worker_attendance
    direction = Direction.expense


class MaterialCostRule(CategoryRule):
    key = "material_costs"
    category = LedgerCategory.material_purchase
    direction = Direction.expense

    def __init__(self, cash_purchase_types: tuple[str, ...]) -> None:
        self.cash_purchase_types = frozenset(
            value.strip().casefold() for value in cash_purchase_types
        )

    def includes(self, row: LedgerRow, project_id: str) -> bool:
        purchase_type = row.fields.get("purchase_type")
        if purchase_type is None:
            return False
        return str(purchase_type).strip().casefold() in self.cash_purchase_types


class TransportationRule(CategoryRule):
    key = "transportation_expenses"
    category = LedgerCategory.transportation_expense
    direction = Direction.expense


class WorkerTransferRule(CategoryRule):
    key = "worker_transfers"
    category = LedgerCategory.worker_transfer
    direction = Direction.expense


class WorkerMiscExpenseRule(CategoryRule):
    key = "worker_misc_expenses"
    category = LedgerCategory.worker_misc_expense
    direction = Direction.expense


class ProjectTransferRule(CategoryRule):
    """Inter-project transfers, read once per side.

    A row adds income to its receiving project and expense to its sending
    project, so for a given project it lands in exactly one of the two legs.
    """

    category = LedgerCategory.project_fund_transfer

    def __init__(self, direction: Direction) -> None:
        self.direction = Direction(direction)
        if self.direction == Direction.income:
            self.key = "incoming_project_transfers"
        else:
            self.key = "outgoing_project_transfers"

    def includes(self, row: LedgerRow, project_id: str) -> bool:
        from_id = row.fields.get("from_project_id")
        to_id = row.fields.get("to_project_id")
        if from_id == to_id:
            raise DataIntegrityError(
                f"Project fund transfer {row.id} sends to its own project",
                project_id=project_id,
                on_date=row.occurs_on,
            )
        if self.direction == Direction.income:
            return to_id == project_id
        return from_id == project_id


def default_rules(settings: Optional[Settings] = None) -> tuple[CategoryRule, ...]:
    settings = settings or get_settings()
    return (
        FundTransferRule(),
        ProjectTransferRule(Direction.income),
        WorkerWageRule(),
        MaterialCostRule(settings.cash_purchase_types),
        TransportationRule(),
        WorkerTransferRule(),
        WorkerMiscExpenseRule(),
        ProjectTransferRule(Direction.expense),
    )


@dataclass(frozen=True)
class LegTotal:
    key: str
    direction: Direction
    amount: Decimal
    count: int


@dataclass(frozen=True)
class LedgerTotals:
    legs: tuple[LegTotal, ...]

    @property
    def income(self) -> Decimal:
        return sum(
            (leg.amount for leg in self.legs if leg.direction == Direction.income),
            ZERO,
        )

    @property
    def expenses(self) -> Decimal:
        return sum(
            (leg.amount for leg in self.legs if leg.direction == Direction.expense),
            ZERO,
        )

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses

    def by_key(self) -> dict[str, LegTotal]:
        return {leg.key: leg for leg in self.legs}


class CategoryAggregator:
    """Sums one leg over a date range. Read-only.

    Each stored amount is sanitized before it is added, so a range sum is
    always the plain sum of its days.
    """

    def __init__(self, reader: TransactionReader, guard: SanityGuard) -> None:
        self.reader = reader
        self.guard = guard

    def sum(
        self, rule: CategoryRule, project_id: str, date_range: DateRange
    ) -> LegTotal:
        rows = self.reader.query(rule.category, project_id, date_range)
        total = ZERO
        count = 0
        skipped = 0
        for row in rows:
            if not rule.includes(row, project_id):
                continue
            count += 1
            raw = rule.raw_amount(row)
            amount = parse_amount(raw)
            if amount is None or amount < 0:
                # A bad row is counted as zero instead of failing the report.
                if raw is not None and str(raw).strip():
                    skipped += 1
                    logger.warning(
                        f"malformed_amount: leg={rule.key} row_id={row.id} "
                        f"project={project_id} value={raw!r}"
                    )
                continue
            total += self.guard.row_amount(amount, field=rule.key)

        if skipped:
            logger.info(
                f"leg_sum: leg={rule.key} project={project_id} "
                f"range={date_range.label()} skipped_rows={skipped}"
            )
        return LegTotal(
            key=rule.key,
            direction=rule.direction,
            amount=total,
            count=self.guard.count(count, field=f"{rule.key}_count"),
        )


class CumulativeBalanceCalculator:
    """Fans the legs out to a thread pool and combines them once all finish.

    Any failing or late leg fails the whole call; partial totals are never
    returned.
    """

    def __init__(
        self,
        aggregator: CategoryAggregator,
        rules: tuple[CategoryRule, ...],
        *,
        timeout_secs: float,
    ) -> None:
        if not rules:
            raise ValueError("At least one aggregation rule is required")
        self.aggregator = aggregator
        self.rules = rules
        self.timeout_secs = timeout_secs

    def totals(self, project_id: str, date_range: DateRange) -> LedgerTotals:
        pool = ThreadPoolExecutor(
            max_workers=len(self.rules), thread_name_prefix="ledger-leg"
        )
        try:
            futures: dict[Future, CategoryRule] = {
                pool.submit(self.aggregator.sum, rule, project_id, date_range): rule
                for rule in self.rules
            }
            done, pending = wait(
                futures, timeout=self.timeout_secs, return_when=FIRST_EXCEPTION
            )
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    logger.warning(
                        f"leg_failed: leg={futures[fut].key} project={project_id} "
                        f"range={date_range.label()} error={type(exc).__name__}"
                    )
                    raise exc
            if pending:
                late = sorted(futures[fut].key for fut in pending)
                raise TransientReadFailure(
                    f"Aggregation for project {project_id} exceeded "
                    f"{self.timeout_secs}s (legs: {', '.join(late)})",
                    category=late[0],
                )
            results = {futures[fut].key: fut.result() for fut in done}
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return LedgerTotals(tuple(results[rule.key] for rule in self.rules))

    def net_balance(self, project_id: str, date_range: DateRange) -> Decimal:
        totals = self.totals(project_id, date_range)
        net = totals.net
        logger.info(
            f"cumulative_balance: project={project_id} range={date_range.label()} "
            f"income={to_storage(totals.income)} expenses={to_storage(totals.expenses)} "
            f"net={to_storage(net)}"
        )
        return net
