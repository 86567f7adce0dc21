from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import delete

from checkpoints import Checkpoint, SqlCheckpointStore
from models import DailySummary
from readers import LedgerCategory
from schemas import (
    FundTransferIn,
    MaterialPurchaseIn,
    ProjectFundTransferIn,
    ProjectIn,
    TransportationExpenseIn,
    WorkerAttendanceIn,
    WorkerMiscExpenseIn,
    WorkerTransferIn,
)
from services import (
    BalanceSource,
    DailyLedgerService,
    ProjectService,
    TransactionService,
)

# Running balance of project P at the end of each day of the history below.
P_BALANCE_AT_END_OF = {
    date(2025, 3, 1): Decimal("1000"),
    date(2025, 3, 2): Decimal("650"),
    date(2025, 3, 3): Decimal("609.75"),
    date(2025, 3, 4): Decimal("309.75"),
    date(2025, 3, 5): Decimal("224.25"),
    date(2025, 3, 6): Decimal("844.25"),
    date(2025, 3, 7): Decimal("844.25"),
    date(2025, 3, 8): Decimal("844.25"),
    date(2025, 3, 9): Decimal("839.50"),
    date(2025, 3, 10): Decimal("889.50"),
}


def _projects(session):
    projects = ProjectService(session)
    return (
        projects.create(ProjectIn(name="Tower A")),
        projects.create(ProjectIn(name="Bridge B")),
    )


def _seed_history(session, p, q) -> None:
    txns = TransactionService(session)
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=p.id, amount=Decimal("1000"), transfer_date=date(2025, 3, 1)),
    )
    txns.record(
        LedgerCategory.worker_attendance,
        WorkerAttendanceIn(
            project_id=p.id,
            worker_id="w-1",
            date=date(2025, 3, 2),
            is_present=False,
            paid_amount=Decimal("150"),
        ),
    )
    txns.record(
        LedgerCategory.material_purchase,
        MaterialPurchaseIn(
            project_id=p.id,
            material_name="Cement",
            total_amount=Decimal("200"),
            purchase_type="cash",
            purchase_date=date(2025, 3, 2),
        ),
    )
    txns.record(
        LedgerCategory.material_purchase,
        MaterialPurchaseIn(
            project_id=p.id,
            material_name="Steel",
            total_amount=Decimal("999"),
            purchase_type="credit",
            purchase_date=date(2025, 3, 2),
        ),
    )
    txns.record(
        LedgerCategory.transportation_expense,
        TransportationExpenseIn(project_id=p.id, amount=Decimal("40.25"), date=date(2025, 3, 3)),
    )
    txns.record(
        LedgerCategory.project_fund_transfer,
        ProjectFundTransferIn(
            from_project_id=p.id,
            to_project_id=q.id,
            amount=Decimal("300"),
            transfer_date=date(2025, 3, 4),
        ),
    )
    txns.record(
        LedgerCategory.worker_transfer,
        WorkerTransferIn(
            project_id=p.id, worker_id="w-1", amount=Decimal("75.5"), transfer_date=date(2025, 3, 5)
        ),
    )
    txns.record(
        LedgerCategory.worker_misc_expense,
        WorkerMiscExpenseIn(project_id=p.id, amount=Decimal("10"), date=date(2025, 3, 5)),
    )
    txns.record(
        LedgerCategory.project_fund_transfer,
        ProjectFundTransferIn(
            from_project_id=q.id,
            to_project_id=p.id,
            amount=Decimal("120"),
            transfer_date=date(2025, 3, 6),
        ),
    )
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=p.id, amount=Decimal("500"), transfer_date=date(2025, 3, 6)),
    )
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=q.id, amount=Decimal("800"), transfer_date=date(2025, 3, 8)),
    )
    txns.record(
        LedgerCategory.worker_attendance,
        WorkerAttendanceIn(project_id=p.id, worker_id="w-2", date=date(2025, 3, 9)),
    )
    txns.record(
        LedgerCategory.worker_misc_expense,
        WorkerMiscExpenseIn(project_id=p.id, amount=Decimal("4.75"), date=date(2025, 3, 9)),
    )
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=p.id, amount=Decimal("50"), transfer_date=date(2025, 3, 10)),
    )


def _days(start: date, end: date):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def test_example_scenario_gap_after_checkpoint(session, make_settings) -> None:
    p, _ = _projects(session)
    SqlCheckpointStore(session).upsert(
        Checkpoint(
            project_id=p.id,
            summary_date=date(2025, 1, 10),
            carried_forward=Decimal("0"),
            total_income=Decimal("500"),
            total_expenses=Decimal("0"),
            remaining_balance=Decimal("500"),
        )
    )
    txns = TransactionService(session)
    txns.record(
        LedgerCategory.worker_attendance,
        WorkerAttendanceIn(
            project_id=p.id, worker_id="w-9", date=date(2025, 1, 11), paid_amount=Decimal("300")
        ),
    )
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=p.id, amount=Decimal("1000"), transfer_date=date(2025, 1, 12)),
    )

    ledger = DailyLedgerService(session, make_settings())
    carried = ledger.resolver.resolve(p.id, date(2025, 1, 12))
    assert carried.amount == Decimal("200")
    assert carried.source == BalanceSource.computed_from_checkpoint
    assert carried.checkpoint_date == date(2025, 1, 10)

    report = ledger.report(p.id, date(2025, 1, 12))
    assert report.total_income == Decimal("1000")
    assert report.total_expenses == Decimal("0")
    assert report.remaining_balance == Decimal("1200")


def test_resolve_from_scratch_matches_running_balance(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())

    first = ledger.resolver.resolve(p.id, date(2025, 3, 1))
    assert first.amount == Decimal("0")
    assert first.source == BalanceSource.computed_from_scratch

    for day in _days(date(2025, 3, 2), date(2025, 3, 11)):
        carried = ledger.resolver.resolve(p.id, day)
        assert carried.source == BalanceSource.computed_from_scratch
        assert carried.amount == P_BALANCE_AT_END_OF[day - timedelta(days=1)], day

    assert ledger.resolver.resolve(q.id, date(2025, 3, 11)).amount == Decimal("980")


def test_ledger_equation_holds_every_day(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())

    for day in _days(date(2025, 3, 1), date(2025, 3, 10)):
        report = ledger.report(p.id, day)
        assert report.remaining_balance == (
            report.carried_forward.amount + report.total_income - report.total_expenses
        )
        assert report.remaining_balance == P_BALANCE_AT_END_OF[day]


def test_checkpoints_do_not_change_resolved_balances(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())

    for checkpoint_day in _days(date(2025, 3, 1), date(2025, 3, 8)):
        session.execute(delete(DailySummary))
        session.commit()
        ledger.commit(p.id, checkpoint_day)

        next_day = checkpoint_day + timedelta(days=1)
        fast = ledger.resolver.resolve(p.id, next_day)
        assert fast.source == BalanceSource.checkpoint
        assert fast.amount == P_BALANCE_AT_END_OF[checkpoint_day]

        for day in _days(next_day + timedelta(days=1), date(2025, 3, 11)):
            carried = ledger.resolver.resolve(p.id, day)
            assert carried.source == BalanceSource.computed_from_checkpoint
            assert carried.checkpoint_date == checkpoint_day
            assert carried.amount == P_BALANCE_AT_END_OF[day - timedelta(days=1)], (
                checkpoint_day,
                day,
            )


def test_same_day_totals_ignore_checkpoint_state(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())

    before = ledger.report(p.id, date(2025, 3, 6))
    ledger.commit(p.id, date(2025, 3, 5))
    ledger.commit(p.id, date(2025, 3, 6))
    after = ledger.report(p.id, date(2025, 3, 6))

    assert after.total_income == before.total_income == Decimal("620")
    assert after.total_expenses == before.total_expenses == Decimal("0")
    assert after.breakdown["incoming_project_transfers"].amount == Decimal("120")
    assert after.breakdown["fund_transfers"].count == 1


def test_commit_is_idempotent(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())

    report = ledger.report(p.id, date(2025, 3, 5))
    first = ledger.commit(p.id, date(2025, 3, 5), report, notes="site closed early")
    second = ledger.commit(p.id, date(2025, 3, 5), report, notes="site closed early")

    assert replace(first, updated_at=None) == replace(second, updated_at=None)
    assert first.remaining_balance == Decimal("224.25")
    assert first.carried_forward == Decimal("309.75")
    assert first.breakdown["worker_transfers"] == Decimal("75.5")
    assert session.query(DailySummary).count() == 1


def test_commit_rejects_report_for_other_day(session, make_settings) -> None:
    p, q = _projects(session)
    _seed_history(session, p, q)
    ledger = DailyLedgerService(session, make_settings())
    report = ledger.report(p.id, date(2025, 3, 5))

    with pytest.raises(ValueError, match="does not belong"):
        ledger.commit(p.id, date(2025, 3, 6), report)


def test_negative_remaining_balance_is_carried(session, make_settings) -> None:
    p, _ = _projects(session)
    TransactionService(session).record(
        LedgerCategory.worker_transfer,
        WorkerTransferIn(
            project_id=p.id, worker_id="w-1", amount=Decimal("300"), transfer_date=date(2025, 4, 1)
        ),
    )
    ledger = DailyLedgerService(session, make_settings())

    report = ledger.report(p.id, date(2025, 4, 1))
    assert report.remaining_balance == Decimal("-300")

    ledger.commit(p.id, date(2025, 4, 1))
    carried = ledger.previous_balance(p.id, date(2025, 4, 2))
    assert carried.source == BalanceSource.checkpoint
    assert carried.amount == Decimal("-300")


def test_gap_sums_are_not_sanitized_as_stored_values(session, make_settings) -> None:
    p, _ = _projects(session)
    txns = TransactionService(session)
    txns.record(
        LedgerCategory.fund_transfer,
        FundTransferIn(project_id=p.id, amount=Decimal("1000"), transfer_date=date(2025, 1, 1)),
    )
    for day, paid in ((1, "5"), (2, "100"), (3, "11")):
        txns.record(
            LedgerCategory.worker_attendance,
            WorkerAttendanceIn(
                project_id=p.id,
                worker_id=f"w-{day}",
                date=date(2025, 1, day),
                paid_amount=Decimal(paid),
            ),
        )
    ledger = DailyLedgerService(session, make_settings())

    scratch = ledger.resolver.resolve(p.id, date(2025, 1, 4))
    assert scratch.source == BalanceSource.computed_from_scratch
    assert scratch.amount == Decimal("884")

    # The wages in the 01-02..01-03 gap add up to 111.
    ledger.commit(p.id, date(2025, 1, 1))
    via_checkpoint = ledger.resolver.resolve(p.id, date(2025, 1, 4))
    assert via_checkpoint.source == BalanceSource.computed_from_checkpoint
    assert via_checkpoint.amount == Decimal("884")


def test_day_totals_matching_the_digit_pattern_are_kept(session, make_settings) -> None:
    p, _ = _projects(session)
    txns = TransactionService(session)
    for amount in ("700", "77"):
        txns.record(
            LedgerCategory.fund_transfer,
            FundTransferIn(project_id=p.id, amount=Decimal(amount), transfer_date=date(2025, 2, 1)),
        )
    ledger = DailyLedgerService(session, make_settings())

    report = ledger.report(p.id, date(2025, 2, 1))

    assert report.total_income == Decimal("777")
    assert report.breakdown["fund_transfers"].count == 2
    assert ledger.resolver.resolve(p.id, date(2025, 2, 2)).amount == Decimal("777")
