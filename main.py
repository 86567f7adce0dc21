import logging
from datetime import date
from typing import Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from database import SessionLocal
from exceptions import LedgerError, ProjectNotFound, TransientReadFailure
from periods import parse_ledger_date
from scheduler import SchedulerManager
from schemas import (
    CommitIn,
    DailyReportOut,
    DailySummaryOut,
    PreviousBalanceOut,
    RebuildOut,
)
from services import DailyLedgerService

logger = logging.getLogger(__name__)

app = FastAPI(title="Project Daily Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def ledger_date(value: str) -> date:
    try:
        return parse_ledger_date(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def ledger_http_error(exc: LedgerError) -> HTTPException:
    status_code = 500
    if isinstance(exc, ProjectNotFound):
        status_code = 404
    elif isinstance(exc, TransientReadFailure):
        status_code = 503
    if status_code >= 500:
        logger.error(f"ledger_failure: code={exc.code} message={exc.message}")
    return HTTPException(
        status_code=status_code, detail={"error": exc.code, "message": exc.message}
    )


@app.get("/api/projects/{project_id}/daily-report/{day}")
def api_daily_report(project_id: str, day: str, db: Session = Depends(get_db)):
    on_date = ledger_date(day)
    try:
        report = DailyLedgerService(db).report(project_id, on_date)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return DailyReportOut.from_report(report)


@app.post("/api/projects/{project_id}/daily-report/{day}/commit")
def api_commit_daily_report(
    project_id: str,
    day: str,
    payload: Optional[CommitIn] = Body(default=None),
    db: Session = Depends(get_db),
):
    on_date = ledger_date(day)
    notes = payload.notes if payload else None
    try:
        checkpoint = DailyLedgerService(db).commit(project_id, on_date, notes=notes)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return DailySummaryOut.from_checkpoint(checkpoint)


@app.get("/api/projects/{project_id}/previous-balance/{day}")
def api_previous_balance(project_id: str, day: str, db: Session = Depends(get_db)):
    on_date = ledger_date(day)
    try:
        carried = DailyLedgerService(db).previous_balance(project_id, on_date)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return PreviousBalanceOut.from_carried_forward(project_id, on_date, carried)


@app.get("/api/projects/{project_id}/daily-summary/{day}")
def api_daily_summary(project_id: str, day: str, db: Session = Depends(get_db)):
    on_date = ledger_date(day)
    try:
        checkpoint = DailyLedgerService(db).saved_summary(project_id, on_date)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    if checkpoint is None:
        return DailySummaryOut.empty(project_id, on_date)
    return DailySummaryOut.from_checkpoint(checkpoint)


@app.post("/api/projects/{project_id}/checkpoints/rebuild")
def api_rebuild_checkpoints(project_id: str, db: Session = Depends(get_db)):
    try:
        count = DailyLedgerService(db).rebuild_stale_checkpoints(project_id)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return RebuildOut(project_id=project_id, rebuilt=count)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
