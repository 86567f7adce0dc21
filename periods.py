import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EARLIEST_DATE = date(1970, 1, 2)


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range; ``start=None`` means from the first recorded day."""

    start: Optional[date]
    end: date

    def __post_init__(self) -> None:
        if self.start is not None and self.start > self.end:
            raise ValueError("Start date must be before end date")

    @classmethod
    def single_day(cls, day: date) -> "DateRange":
        return cls(day, day)

    @classmethod
    def through(cls, end: date) -> "DateRange":
        return cls(None, end)

    def label(self) -> str:
        start = self.start.isoformat() if self.start else "beginning"
        return f"{start}..{self.end.isoformat()}"


def parse_ledger_date(value: str) -> date:
    value = (value or "").strip()
    if not _ISO_DATE.match(value):
        raise ValueError("Date must be formatted as YYYY-MM-DD")
    try:
        parsed = date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid calendar date: {value}") from exc
    if parsed < EARLIEST_DATE:
        raise ValueError(f"Date must be on or after {EARLIEST_DATE.isoformat()}")
    return parsed


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def next_day(day: date) -> date:
    return day + timedelta(days=1)
