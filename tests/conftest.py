"""
Shared fixtures for Expense Tracker tests

Test strategy:
1. Unit tests for pure components (parser, models, callback payloads)
2. Layout and ledger tests against an in-memory spreadsheet backend
3. End-to-end command flows through ExpenseBot
4. No real API calls in tests (no network, no credentials)
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

import pytest

from expense_tracker.access import AccessControlLedger, ApprovedUserStore
from expense_tracker.models.ledger import RangeValues, ValueRender, WriteMode
from expense_tracker.orchestrator import ChatUser, ExpenseBot
from expense_tracker.pending import PendingSelectionArena
from expense_tracker.services.ledger import LedgerService, SheetLayoutManager
from expense_tracker.services.storage import (
    DuplicateError,
    NotFoundError,
    SheetBackendInterface,
)


TODAY = date(2026, 2, 14)
MONTH = "Feb 2026"
ADMIN_ID = 1001
MEMBER_ID = 2002
STRANGER_ID = 3003

UNBOUNDED = 10 ** 6


# =============================================================================
# A1 NOTATION
# =============================================================================

_REF_RE = re.compile(r"^(?P<col>[A-Z]+)(?P<row>\d*)$")


def column_index(letters: str) -> int:
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def parse_range(range_name: str) -> tuple[str, int, int, int, int]:
    """
    "'Feb 2026'!A6:D" -> ("Feb 2026", row1, col1, row2, col2), 1-based.

    Open-ended rows run to UNBOUNDED.
    """
    sheet_part, _, cells = range_name.rpartition("!")
    if sheet_part.startswith("'") and sheet_part.endswith("'"):
        sheet_part = sheet_part[1:-1].replace("''", "'")

    start, _, end = cells.partition(":")
    end = end or start
    first = _REF_RE.match(start)
    last = _REF_RE.match(end)

    row1 = int(first.group("row")) if first.group("row") else 1
    row2 = int(last.group("row")) if last.group("row") else UNBOUNDED
    return (
        sheet_part,
        row1,
        column_index(first.group("col")),
        row2,
        column_index(last.group("col")),
    )


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

class LiteralText(str):
    """A string written RAW: never evaluated, even if it looks like a formula."""


class FakeSheetBackend(SheetBackendInterface):
    """
    In-memory spreadsheet.

    Cells hold what was written (numbers, strings, formula strings).
    Reads evaluate the handful of formulas the ledger layout writes.
    Every call is recorded in `calls` as (operation, target).
    """

    def __init__(self):
        self.tabs: dict[str, dict[tuple[int, int], object]] = {}
        self.calls: list[tuple[str, str]] = []
        self.format_requests: dict[str, list[dict]] = {}
        self.on_add_tab: Optional[Callable[[str], None]] = None
        self.currency_columns: set[tuple[str, int]] = set()
        self.renders: dict[str, ValueRender] = {}
        self._failures: list[tuple[str, Exception, Optional[str]]] = []

    # --- test helpers ---------------------------------------------------------

    def fail(self, operation: str, error: Exception, range_contains: Optional[str] = None):
        """Make every matching call to `operation` raise `error`."""
        self._failures.append((operation, error, range_contains))

    def format_as_currency(self, sheet: str, column: str):
        """Display numbers in a column the way a "Rs" number format does."""
        self.currency_columns.add((sheet, column_index(column)))

    def clear_failures(self):
        self._failures = []

    def calls_of(self, operation: str) -> list[str]:
        return [target for op, target in self.calls if op == operation]

    def raw(self, sheet: str, a1: str):
        _, row, col, _, _ = parse_range(f"x!{a1}")
        return self.tabs[sheet].get((row, col))

    def value(self, sheet: str, a1: str):
        _, row, col, _, _ = parse_range(f"x!{a1}")
        return self._evaluate(sheet, row, col)

    def seed(self, sheet: str, a1: str, rows: list[list]):
        """Write cells directly, bypassing the call log."""
        self.tabs.setdefault(sheet, {})
        _, row1, col1, _, _ = parse_range(f"x!{a1}")
        for r, row in enumerate(rows):
            for c, cell in enumerate(row):
                self.tabs[sheet][(row1 + r, col1 + c)] = cell

    # --- interface ------------------------------------------------------------

    def _record(self, operation: str, target: str):
        self.calls.append((operation, target))
        for op, error, needle in self._failures:
            if op == operation and (needle is None or needle in target):
                raise error

    def _cells(self, range_name: str):
        sheet, row1, col1, row2, col2 = parse_range(range_name)
        if sheet not in self.tabs:
            raise NotFoundError(f"Unable to parse range: {range_name}")
        return sheet, row1, col1, row2, col2

    async def list_tabs(self) -> list[str]:
        self._record("list_tabs", "")
        return list(self.tabs)

    async def add_tab(self, name: str) -> None:
        self._record("add_tab", name)
        if self.on_add_tab is not None:
            self.on_add_tab(name)
        if name in self.tabs:
            raise DuplicateError(f'A sheet with the name "{name}" already exists')
        self.tabs[name] = {}

    async def tab_id(self, name: str) -> Optional[int]:
        names = list(self.tabs)
        return names.index(name) if name in names else None

    async def get_values(
        self,
        range_name: str,
        render: ValueRender = ValueRender.FORMATTED,
    ) -> RangeValues:
        self._record("get_values", range_name)
        self.renders[range_name] = render
        sheet, row1, col1, row2, col2 = self._cells(range_name)

        occupied = [
            (r, c) for (r, c), v in self.tabs[sheet].items()
            if row1 <= r <= row2 and col1 <= c <= col2 and v not in ("", None)
        ]
        if not occupied:
            return RangeValues(range=range_name)

        last_row = max(r for r, _ in occupied)
        rows = []
        for r in range(row1, last_row + 1):
            row = [self._display(sheet, r, c, render) for c in range(col1, col2 + 1)]
            while row and row[-1] == "":
                row.pop()
            rows.append(row)
        return RangeValues(range=range_name, rows=rows)

    async def update_values(self, range_name: str, rows: list[list], mode: WriteMode = WriteMode.RAW) -> None:
        self._record("update_values", range_name)
        sheet, row1, col1, _, _ = self._cells(range_name)
        for r, row in enumerate(rows):
            for c, cell in enumerate(row):
                self.tabs[sheet][(row1 + r, col1 + c)] = self._store(cell, mode)

    async def append_values(self, range_name: str, rows: list[list], mode: WriteMode = WriteMode.RAW) -> None:
        self._record("append_values", range_name)
        sheet, _, col1, _, col2 = self._cells(range_name)
        used = [
            r for (r, c), v in self.tabs[sheet].items()
            if col1 <= c <= col2 and v not in ("", None)
        ]
        next_row = max(used, default=0) + 1
        for r, row in enumerate(rows):
            for c, cell in enumerate(row):
                self.tabs[sheet][(next_row + r, col1 + c)] = self._store(cell, mode)

    async def clear_values(self, range_name: str) -> None:
        self._record("clear_values", range_name)
        sheet, row1, col1, row2, col2 = self._cells(range_name)
        for key in [
            (r, c) for (r, c) in self.tabs[sheet]
            if row1 <= r <= row2 and col1 <= c <= col2
        ]:
            del self.tabs[sheet][key]

    async def format_cells(self, sheet_name: str, requests: list[dict]) -> None:
        self._record("format_cells", sheet_name)
        if sheet_name not in self.tabs:
            raise NotFoundError(f"Sheet {sheet_name} not found")
        self.format_requests[sheet_name] = requests

    # --- evaluation -----------------------------------------------------------

    @staticmethod
    def _store(cell, mode: WriteMode):
        # RAW keeps formula text as a literal string
        if mode is WriteMode.RAW and isinstance(cell, str):
            return LiteralText(cell)
        return cell

    @staticmethod
    def _number(value) -> Decimal:
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")

    def _column_values(self, sheet: str, col: int, from_row: int) -> list[tuple[int, object]]:
        return sorted(
            (r, self._evaluate(sheet, r, c))
            for (r, c) in self.tabs[sheet]
            if c == col and r >= from_row
        )

    def _evaluate(self, sheet: str, row: int, col: int):
        value = self.tabs[sheet].get((row, col))
        if not isinstance(value, str) or isinstance(value, LiteralText) or not value.startswith("="):
            return value

        match = re.fullmatch(r"=SUM\(([A-Z]+)(\d+):[A-Z]+\)", value)
        if match:
            cells = self._column_values(sheet, column_index(match.group(1)), int(match.group(2)))
            return sum((self._number(v) for _, v in cells), Decimal("0"))

        match = re.fullmatch(r"=([A-Z]+)(\d+)-([A-Z]+)(\d+)", value)
        if match:
            left = self._evaluate(sheet, int(match.group(2)), column_index(match.group(1)))
            right = self._evaluate(sheet, int(match.group(4)), column_index(match.group(3)))
            return self._number(left) - self._number(right)

        match = re.fullmatch(
            r'=SUMIF\(([A-Z]+)(\d+):[A-Z]+, "([^"]*)", ([A-Z]+)\d+:[A-Z]+\)', value
        )
        if match:
            start = int(match.group(2))
            criteria_col = column_index(match.group(1))
            sum_col = column_index(match.group(4))
            total = Decimal("0")
            for r, label in self._column_values(sheet, criteria_col, start):
                if label == match.group(3):
                    total += self._number(self._evaluate(sheet, r, sum_col))
            return total

        return value

    def _display(self, sheet: str, row: int, col: int, render: ValueRender) -> str:
        value = self._evaluate(sheet, row, col)
        if value is None:
            return ""
        if (
            render is ValueRender.FORMATTED
            and (sheet, col) in self.currency_columns
            and not isinstance(value, str)
        ):
            return f"Rs. {Decimal(str(value)):,.2f}"
        if isinstance(value, Decimal) and value == value.to_integral_value():
            return str(int(value))
        return str(value)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def backend() -> FakeSheetBackend:
    return FakeSheetBackend()


@pytest.fixture
def layout(backend) -> SheetLayoutManager:
    return SheetLayoutManager(backend, default_target=Decimal("0"))


@pytest.fixture
def ledger(layout) -> LedgerService:
    return LedgerService(layout, clock=lambda: TODAY)


@pytest.fixture
def store(tmp_path) -> ApprovedUserStore:
    return ApprovedUserStore(str(tmp_path / "approved_users.json"))


@pytest.fixture
def access(store) -> AccessControlLedger:
    ledger = AccessControlLedger(store, admin_id=ADMIN_ID)
    ledger.approve(MEMBER_ID)
    return ledger


@pytest.fixture
def correlation_ids():
    """Deterministic correlation ids: cid1, cid2, ..."""
    counter = iter(range(1, 10 ** 6))
    return lambda: f"cid{next(counter)}"


@pytest.fixture
def bot(ledger, access, correlation_ids) -> ExpenseBot:
    return ExpenseBot(
        ledger=ledger,
        access=access,
        pending=PendingSelectionArena(ttl_seconds=3600),
        correlation_ids=correlation_ids,
    )


@pytest.fixture
def admin() -> ChatUser:
    return ChatUser(user_id=ADMIN_ID, username="owner")


@pytest.fixture
def member() -> ChatUser:
    return ChatUser(user_id=MEMBER_ID, username="spouse")


@pytest.fixture
def stranger() -> ChatUser:
    return ChatUser(user_id=STRANGER_ID, first_name="Guest")
