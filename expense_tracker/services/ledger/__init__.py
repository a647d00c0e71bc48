"""Monthly ledger layout and service."""

from expense_tracker.services.ledger.layout import (
    BREAKDOWN_START_ROW,
    DATA_RANGE,
    MONTHLY_NAME_RE,
    SheetLayoutManager,
    breakdown_rows,
    is_monthly_ledger_name,
    monthly_ledger_name,
)
from expense_tracker.services.ledger.service import LedgerService

__all__ = [
    "BREAKDOWN_START_ROW",
    "DATA_RANGE",
    "MONTHLY_NAME_RE",
    "SheetLayoutManager",
    "breakdown_rows",
    "is_monthly_ledger_name",
    "monthly_ledger_name",
    "LedgerService",
]
