"""
Typed errors raised by the ledger engine.

Callers catch by type and read ``code`` for API responses. A failure is never
replaced by a default balance: "balance unavailable" must stay distinguishable
from "balance is zero".

    LedgerError
    +-- TransientReadFailure   store unreachable, query failed, deadline hit
    +-- DataIntegrityError     stored data breaks a ledger invariant
    +-- ProjectNotFound        unknown project id

Malformed amounts, implausible values and missing checkpoints are not errors;
they are absorbed where they occur.
"""

from datetime import date
from typing import Optional


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransientReadFailure(LedgerError):
    """Retry belongs to the caller."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str, *, category: Optional[str] = None) -> None:
        super().__init__(message)
        self.category = category


class DataIntegrityError(LedgerError):
    """Callers should alert rather than retry."""

    code = "DATA_INTEGRITY"

    def __init__(
        self,
        message: str,
        *,
        project_id: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> None:
        super().__init__(message)
        self.project_id = project_id
        self.on_date = on_date


class ProjectNotFound(LedgerError):
    code = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id
