"""
Pending Category Selections

Between "/expense 50 groceries" and the tap on a category button the
parsed expense waits here, keyed by a correlation id carried in the
button's callback payload.

DESIGN DECISION: Entries expire. An abandoned selection would otherwise
stay in memory for the life of the process. An expired entry is reported
exactly like a missing one (the user is asked to resubmit).
"""

import time
from decimal import Decimal
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

from expense_tracker.models.expense import Expense, ExpenseType


logger = structlog.get_logger(__name__)

CALLBACK_PREFIX = "exp_type_"


class PendingExpense(BaseModel):
    """A parsed expense waiting for its category."""

    amount: Decimal
    description: str = ""
    author: Optional[str] = None
    date: str
    created_at: float = Field(
        ...,
        description="Monotonic clock reading when the entry was stored"
    )

    @classmethod
    def from_expense(cls, expense: Expense, created_at: float) -> "PendingExpense":
        return cls(
            amount=expense.amount,
            description=expense.description,
            author=expense.author,
            date=expense.date,
            created_at=created_at,
        )

    def to_expense(self, expense_type: Optional[ExpenseType]) -> Expense:
        return Expense(
            date=self.date,
            type=expense_type,
            amount=self.amount,
            description=self.description,
            author=self.author,
        )


class PendingSelectionArena:
    """
    Owned map of correlation id -> PendingExpense with a time-to-live.

    Every access sweeps expired entries first.
    """

    def __init__(
        self,
        ttl_seconds: float = 86400,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PendingExpense] = {}

    def put(self, correlation_id: str, expense: Expense) -> PendingExpense:
        self.sweep()
        entry = PendingExpense.from_expense(expense, created_at=self._clock())
        self._entries[correlation_id] = entry
        return entry

    def restore(self, correlation_id: str, entry: PendingExpense) -> None:
        """Put a taken entry back, keeping its original age."""
        self._entries[correlation_id] = entry

    def peek(self, correlation_id: str) -> Optional[PendingExpense]:
        self.sweep()
        return self._entries.get(correlation_id)

    def take(self, correlation_id: str) -> Optional[PendingExpense]:
        """Remove and return an entry; None if unknown or expired."""
        self.sweep()
        return self._entries.pop(correlation_id, None)

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop expired entries. Returns how many were dropped."""
        now = self._clock() if now is None else now
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.created_at >= self._ttl
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("pending_selections_expired", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, correlation_id: str) -> bool:
        return self.peek(correlation_id) is not None


# =============================================================================
# CALLBACK PAYLOADS
# =============================================================================

def encode_callback_data(correlation_id: str, expense_type: ExpenseType) -> str:
    """e.g. exp_type_3f2a..._Super Market"""
    return f"{CALLBACK_PREFIX}{correlation_id}_{expense_type.value}"


def decode_callback_data(data: Optional[str]) -> Optional[tuple[str, str]]:
    """
    Split a category-button payload into (correlation_id, type label).

    The type is everything after the last underscore. Returns None for
    payloads that are not category selections.
    """
    if not data or not data.startswith(CALLBACK_PREFIX):
        return None
    correlation_id, sep, label = data[len(CALLBACK_PREFIX):].rpartition("_")
    if not sep or not correlation_id or not label:
        return None
    return correlation_id, label
