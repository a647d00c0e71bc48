"""
Ledger Service

The facade applications call. Combines month-name derivation with the
layout manager's row and summary operations.

DESIGN DECISION: Totals are always computed by summing rows fetched at
call time. Nothing is cached, so a total reflects this process's writes
immediately and other writers' as soon as the backend shows them.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from expense_tracker.models.expense import Expense
from expense_tracker.models.ledger import ResetResult, StructureResult
from expense_tracker.services.ledger.layout import SheetLayoutManager, monthly_ledger_name


class LedgerService:
    """
    Monthly expense ledger on top of a SheetLayoutManager.

    Args:
        layout: Layout manager bound to a spreadsheet backend
        clock: Returns today's date; inject for deterministic tests
    """

    def __init__(
        self,
        layout: SheetLayoutManager,
        clock: Callable[[], date] = date.today,
    ):
        self._layout = layout
        self._clock = clock

    def today(self) -> date:
        return self._clock()

    def current_month_name(self, today: Optional[date] = None) -> str:
        return monthly_ledger_name(today or self._clock())

    async def log_expense(self, expense: Expense) -> str:
        """
        Append an expense to the ledger of the current month.

        Returns:
            Name of the ledger the row went to

        Raises:
            StorageError: If the ledger cannot be created or the append fails
        """
        name = self.current_month_name()
        await self._layout.append_expense_row(name, expense)
        return name

    async def total_current_month(self) -> Decimal:
        return await self._layout.total_for(self.current_month_name())

    async def total_all(self) -> Decimal:
        return await self._layout.total_all()

    async def set_target_current_month(self, amount: Decimal) -> str:
        name = self.current_month_name()
        await self._layout.set_target(name, amount)
        return name

    async def initialize_default_sheet(
        self,
        name: str,
        target: Optional[Decimal] = None,
    ) -> StructureResult:
        """Startup check of the configured default tab (see SheetLayoutManager)."""
        return await self._layout.initialize_default_sheet(name, target)

    async def reset_current_month(
        self,
        target: Decimal,
        name: Optional[str] = None,
    ) -> ResetResult:
        """
        Clear a ledger and write a fresh structure with `target`.

        `name` is the ledger the user confirmed; it defaults to the current
        month and may differ from it if the month rolled over in between.
        """
        return await self._layout.reset_to_initial_state(
            name or self.current_month_name(), target
        )
