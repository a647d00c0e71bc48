"""
Sheet Layout Manager

Owns the physical layout of a monthly ledger tab and translates ledger
operations into range reads and writes against the spreadsheet backend.

LAYOUT (new format):

        A      B      C        D             E    F               G               H
    4                                            Target Expense  Total Expenses  Remain
    5   Date   Type   Amount   Description       <target>        =SUM(C6:C)      =F5-G5
    6+  one row per expense, in append order
    14+                                          <type>          =SUMIF(B6:B, "<type>", C6:C)

The OLD format has Date / Amount / Description headers in row 1 and no
summary or breakdown regions. The format is detected from header cells.

FAILURE MODES:
- Structural writes (headers, values, formulas) are fatal and raise.
- Formatting is cosmetic: failures are logged and returned as warnings.
- Re-asserting the summary formulas after an append is logged only.
- reset / migrate return result objects instead of raising.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

import structlog

from expense_tracker.models.expense import BREAKDOWN_TYPES, Expense
from expense_tracker.models.ledger import (
    LedgerFormat,
    MigrationResult,
    RangeValues,
    ResetResult,
    StructureResult,
    ValueRender,
    WriteMode,
)
from expense_tracker.services.storage.interface import (
    DuplicateError,
    SheetBackendInterface,
    StorageError,
    a1_range,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# LAYOUT CONSTANTS
# =============================================================================

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MONTHLY_NAME_RE = re.compile(r"^(%s) \d{4}$" % "|".join(MONTH_ABBREVIATIONS))

# First number in a formatted amount cell: "Rs. 1,500.00", "-20", "Rs20.50"
_NUMBER_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?")

SUMMARY_HEADER_RANGE = "F4:H4"
SUMMARY_HEADERS = ["Target Expense", "Total Expenses", "Remain"]
SUMMARY_VALUES_RANGE = "F5:H5"
SUMMARY_REGION_RANGE = "F4:H5"
SUMMARY_FORMULAS_RANGE = "G5:H5"
TARGET_CELL = "F5"
TOTAL_FORMULA = "=SUM(C6:C)"
REMAIN_FORMULA = "=F5-G5"

LEDGER_HEADER_RANGE = "A5:D5"
LEDGER_HEADERS = ["Date", "Type", "Amount", "Description"]
NEW_HEADER_LABELS = ("date", "type", "amount", "description")
DATA_START_ROW = 6
DATA_RANGE = "A6:D"
APPEND_RANGE = "A:D"

BREAKDOWN_START_ROW = 14
BREAKDOWN_FIRST_ROW_RANGE = "F14:G14"

LEGACY_HEADER_RANGE = "A1:C1"
OLD_HEADER_LABELS = ("date", "amount", "description")
LEGACY_DATA_RANGE = "A2:C"
LEGACY_CLEAR_RANGE = "A1:H5"
FULL_CLEAR_RANGE = "A:Z"

# 0-based grid coordinates used by formatting requests
_ROW_4, _ROW_5 = 3, 4
_COL_A, _COL_E, _COL_F, _COL_G, _COL_H, _COL_I = 0, 4, 5, 6, 7, 8

Number = Union[int, float]


def monthly_ledger_name(day: date) -> str:
    """
    Name of the ledger tab for the month containing `day`, e.g. "Feb 2026".

    Depends only on year and month. Locale independent.
    """
    return f"{MONTH_ABBREVIATIONS[day.month - 1]} {day.year:04d}"


def is_monthly_ledger_name(name: str) -> bool:
    """True for tab names produced by monthly_ledger_name."""
    return bool(MONTHLY_NAME_RE.match(name))


def breakdown_rows() -> list[list[str]]:
    """One [type, SUMIF formula] row per catalog type, sentinel excluded."""
    return [
        [t.value, f'=SUMIF(B6:B, "{t.value}", C6:C)']
        for t in BREAKDOWN_TYPES
    ]


def breakdown_range() -> str:
    end_row = BREAKDOWN_START_ROW + len(BREAKDOWN_TYPES) - 1
    return f"F{BREAKDOWN_START_ROW}:G{end_row}"


def safe_decimal(value: Optional[str]) -> Decimal:
    """
    Read an amount cell leniently.

    A plain number is taken as is. Otherwise the first number in the text
    is used, with thousands separators dropped ("Rs. 1,500.00" -> 1500.00).
    Text without a number reads as 0.
    """
    text = "" if value is None else str(value).strip()
    try:
        amount = Decimal(text)
        if amount.is_finite():
            return amount
    except InvalidOperation:
        pass

    match = _NUMBER_RE.search(text)
    if match is None:
        return Decimal("0")
    return Decimal(match.group().replace(",", ""))


def as_number(amount: Decimal) -> Number:
    """JSON-friendly number for the Sheets API (integral values stay int)."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _matches_headers(row: list[str], required: tuple[str, ...]) -> bool:
    if len(row) < 3:
        return False
    joined = " ".join(row).lower()
    return all(label in joined for label in required)


class SheetLayoutManager:
    """
    Maintains the monthly ledger layout against a spreadsheet backend.

    There is no local state about tabs: every call re-reads what it needs.
    """

    def __init__(
        self,
        backend: SheetBackendInterface,
        default_target: Decimal = Decimal("0"),
        currency_pattern: str = '"Rs"#,##0.00',
    ):
        self._backend = backend
        self._default_target = Decimal(default_target)
        self._currency_pattern = currency_pattern

    @property
    def backend(self) -> SheetBackendInterface:
        return self._backend

    # -------------------------------------------------------------------------
    # Existence
    # -------------------------------------------------------------------------

    async def sheet_exists(self, name: str) -> bool:
        return name in await self._backend.list_tabs()

    async def ensure_ledger_exists(
        self,
        name: str,
        target: Optional[Decimal] = None,
    ) -> bool:
        """
        Create and initialize the tab if it is absent.

        Returns True if this call created the tab. A concurrent creator
        winning the race (duplicate tab name) counts as "already exists".
        """
        if await self.sheet_exists(name):
            return False

        try:
            await self._backend.add_tab(name)
        except DuplicateError:
            logger.info("sheet_created_concurrently", sheet=name)
            return False
        logger.info("sheet_created", sheet=name)

        await self.initialize_structure(name, target)
        return True

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    async def initialize_structure(
        self,
        name: str,
        target: Optional[Decimal] = None,
    ) -> StructureResult:
        """
        Write summary, ledger headers and breakdown, then format.

        Raises:
            StorageError: If any structural write fails
        """
        target = self._default_target if target is None else Decimal(target)
        result = StructureResult(sheet_name=name)

        await self._write_summary(name, target)
        result.regions_written.append("summary")

        await self._backend.update_values(
            a1_range(name, LEDGER_HEADER_RANGE),
            [LEDGER_HEADERS],
            WriteMode.RAW,
        )
        result.regions_written.append("ledger_header")

        await self._write_breakdown(name)
        result.regions_written.append("breakdown")

        result.warnings.extend(await self.apply_sheet_formatting(name))

        logger.info(
            "sheet_structure_initialized",
            sheet=name,
            target=str(target),
            warnings=len(result.warnings),
        )
        return result

    async def _write_summary(self, name: str, target: Decimal) -> None:
        await self._backend.update_values(
            a1_range(name, SUMMARY_HEADER_RANGE),
            [SUMMARY_HEADERS],
            WriteMode.RAW,
        )
        await self._backend.update_values(
            a1_range(name, SUMMARY_VALUES_RANGE),
            [[as_number(target), TOTAL_FORMULA, REMAIN_FORMULA]],
            WriteMode.USER_ENTERED,
        )

    async def _write_breakdown(self, name: str) -> None:
        await self._backend.update_values(
            a1_range(name, breakdown_range()),
            breakdown_rows(),
            WriteMode.USER_ENTERED,
        )

    async def initialize_default_sheet(
        self,
        name: str,
        target: Optional[Decimal] = None,
    ) -> StructureResult:
        """
        Startup check for the configured default tab.

        An old-format tab is migrated with its rows preserved. A tab with an
        empty header row gets the full structure. Otherwise only missing
        regions (summary, breakdown) are repaired; data rows are never
        touched.

        Raises:
            StorageError: Any backend failure (startup should abort)
        """
        target = self._default_target if target is None else Decimal(target)

        if await self.ensure_ledger_exists(name, target):
            return StructureResult(
                sheet_name=name,
                regions_written=["summary", "ledger_header", "breakdown"],
            )

        header = await self._backend.get_values(a1_range(name, LEDGER_HEADER_RANGE))
        if not _matches_headers(header.first_row, NEW_HEADER_LABELS):
            legacy = await self._backend.get_values(a1_range(name, LEGACY_HEADER_RANGE))
            if _matches_headers(legacy.first_row, OLD_HEADER_LABELS):
                logger.warning("default_sheet_in_legacy_format", sheet=name)
                migration = await self.migrate_to_new_format(name, True, target)
                if not migration.success:
                    raise StorageError(migration.message)
                return StructureResult(
                    sheet_name=name,
                    regions_written=["summary", "ledger_header", "breakdown"],
                    warnings=migration.warnings,
                    migration=migration,
                )

        if header.is_empty:
            return await self.initialize_structure(name, target)

        result = StructureResult(sheet_name=name)

        summary = await self._backend.get_values(a1_range(name, SUMMARY_REGION_RANGE))
        if summary.is_empty:
            await self._write_summary(name, target)
            result.regions_written.append("summary")
            logger.info("sheet_summary_repaired", sheet=name)

        breakdown = await self._backend.get_values(
            a1_range(name, BREAKDOWN_FIRST_ROW_RANGE)
        )
        if breakdown.is_empty:
            await self._write_breakdown(name)
            result.regions_written.append("breakdown")
            logger.info("sheet_breakdown_repaired", sheet=name)

        if result.regions_written:
            result.warnings.extend(await self.apply_sheet_formatting(name))
        return result

    async def update_summary_section(self, name: str) -> bool:
        """
        Re-assert the total and remain formulas.

        Guards against a manual edit having replaced them. Failures are
        logged only.
        """
        try:
            await self._backend.update_values(
                a1_range(name, SUMMARY_FORMULAS_RANGE),
                [[TOTAL_FORMULA, REMAIN_FORMULA]],
                WriteMode.USER_ENTERED,
            )
            return True
        except StorageError as e:
            logger.warning("summary_update_failed", sheet=name, error=str(e))
            return False

    async def apply_sheet_formatting(self, name: str) -> list[str]:
        """
        Apply header colours and currency formats.

        Cosmetic: returns warnings instead of raising.
        """
        try:
            await self._backend.format_cells(name, self._formatting_requests())
            return []
        except StorageError as e:
            logger.warning("sheet_formatting_failed", sheet=name, error=str(e))
            return [f"Could not apply formatting to {name}: {e}"]

    def _formatting_requests(self) -> list[dict]:
        salmon = {"red": 0.9, "green": 0.6, "blue": 0.6}
        green = {"red": 0.6, "green": 0.8, "blue": 0.6}
        light_salmon = {"red": 0.96, "green": 0.8, "blue": 0.8}
        light_green = {"red": 0.85, "green": 0.95, "blue": 0.85}
        currency = {"type": "CURRENCY", "pattern": self._currency_pattern}
        breakdown_end = BREAKDOWN_START_ROW - 1 + len(BREAKDOWN_TYPES)

        def repeat_cell(rows, cols, fmt, fields):
            return {
                "repeatCell": {
                    "range": {
                        "startRowIndex": rows[0],
                        "endRowIndex": rows[1],
                        "startColumnIndex": cols[0],
                        "endColumnIndex": cols[1],
                    },
                    "cell": {"userEnteredFormat": fmt},
                    "fields": f"userEnteredFormat({fields})",
                }
            }

        return [
            # Summary headers
            repeat_cell((_ROW_4, _ROW_5), (_COL_F, _COL_H),
                        {"backgroundColor": salmon, "textFormat": {"bold": True}},
                        "backgroundColor,textFormat"),
            repeat_cell((_ROW_4, _ROW_5), (_COL_H, _COL_I),
                        {"backgroundColor": green, "textFormat": {"bold": True}},
                        "backgroundColor,textFormat"),
            # Ledger headers
            repeat_cell((_ROW_5, _ROW_5 + 1), (_COL_A, _COL_E),
                        {"backgroundColor": light_salmon, "textFormat": {"bold": True}},
                        "backgroundColor,textFormat"),
            # Summary values
            repeat_cell((_ROW_5, _ROW_5 + 1), (_COL_F, _COL_H),
                        {"backgroundColor": light_salmon, "textFormat": {"bold": True},
                         "numberFormat": currency},
                        "backgroundColor,textFormat,numberFormat"),
            repeat_cell((_ROW_5, _ROW_5 + 1), (_COL_H, _COL_I),
                        {"backgroundColor": light_green, "textFormat": {"bold": True},
                         "numberFormat": currency},
                        "backgroundColor,textFormat,numberFormat"),
            # Breakdown amounts
            repeat_cell((BREAKDOWN_START_ROW - 1, breakdown_end), (_COL_G, _COL_H),
                        {"numberFormat": currency},
                        "numberFormat"),
        ]

    # -------------------------------------------------------------------------
    # Format detection and migration
    # -------------------------------------------------------------------------

    async def detect_format(self, name: str) -> LedgerFormat:
        """
        Detect the layout of a tab from its header cells.

        Never raises: a missing or unreadable tab is UNKNOWN.
        """
        try:
            new_header = await self._backend.get_values(
                a1_range(name, LEDGER_HEADER_RANGE)
            )
            if _matches_headers(new_header.first_row, NEW_HEADER_LABELS):
                return LedgerFormat.NEW

            old_header = await self._backend.get_values(
                a1_range(name, LEGACY_HEADER_RANGE)
            )
            if _matches_headers(old_header.first_row, OLD_HEADER_LABELS):
                return LedgerFormat.OLD
        except StorageError as e:
            logger.debug("sheet_format_unreadable", sheet=name, error=str(e))

        return LedgerFormat.UNKNOWN

    async def extract_legacy_rows(self, name: str) -> list[list]:
        """
        Read old-format rows (below the row 1 header) as new-format rows.

        Rows without a date, with a zero amount or without a description
        are skipped.
        """
        values = await self._backend.get_values(
            a1_range(name, LEGACY_DATA_RANGE), ValueRender.UNFORMATTED
        )

        migrated = []
        for index in range(len(values.rows)):
            row_date = values.cell(index, 0).strip()
            amount = safe_decimal(values.cell(index, 1))
            description = values.cell(index, 2).strip()
            if not row_date or amount == 0 or not description:
                continue
            migrated.append([row_date, "", as_number(amount), description])
        return migrated

    async def migrate_to_new_format(
        self,
        name: str,
        preserve_existing_data: bool = False,
        target: Optional[Decimal] = None,
    ) -> MigrationResult:
        """
        Bring a tab to the new layout.

        absent -> created; new -> no-op; unknown -> initialized;
        old -> legacy region cleared, structure written, salvaged rows
        (if preserving) re-written from row 6.
        """
        try:
            if not await self.sheet_exists(name):
                await self.ensure_ledger_exists(name, target)
                return MigrationResult(
                    success=True,
                    sheet_name=name,
                    message=f'Sheet "{name}" created and initialized with new format.',
                )

            current = await self.detect_format(name)

            if current is LedgerFormat.NEW:
                return MigrationResult(
                    success=True,
                    sheet_name=name,
                    message=f'Sheet "{name}" is already in the new format.',
                    format_before=current,
                )

            if current is LedgerFormat.UNKNOWN:
                structure = await self.initialize_structure(name, target)
                return MigrationResult(
                    success=True,
                    sheet_name=name,
                    message=f'Sheet "{name}" initialized with new format.',
                    format_before=current,
                    warnings=structure.warnings,
                )

            rows = []
            if preserve_existing_data:
                rows = await self.extract_legacy_rows(name)

            # Legacy rows below row 5 would sit misaligned under the new headers
            await self._backend.clear_values(a1_range(name, LEGACY_CLEAR_RANGE))
            await self._backend.clear_values(a1_range(name, DATA_RANGE))

            structure = await self.initialize_structure(name, target)

            if rows:
                end_row = DATA_START_ROW + len(rows) - 1
                await self._backend.update_values(
                    a1_range(name, f"A{DATA_START_ROW}:D{end_row}"),
                    rows,
                    WriteMode.RAW,
                )
                await self.update_summary_section(name)

            preserved = f" with {len(rows)} expense(s) preserved" if rows else ""
            logger.info("sheet_migrated", sheet=name, rows_migrated=len(rows))
            return MigrationResult(
                success=True,
                sheet_name=name,
                message=f'Sheet "{name}" migrated to new format{preserved}.',
                rows_migrated=len(rows),
                format_before=current,
                warnings=structure.warnings,
            )
        except StorageError as e:
            logger.error("sheet_migration_failed", sheet=name, error=str(e))
            return MigrationResult(
                success=False,
                sheet_name=name,
                message=f"Failed to migrate sheet: {e}",
            )

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    async def reset_to_initial_state(self, name: str, target: Decimal) -> ResetResult:
        """
        Discard every row of a tab and write a fresh structure.

        Destructive and unconditional: confirmation is the caller's job.
        """
        target = Decimal(target)
        try:
            if not await self.sheet_exists(name):
                created = await self.ensure_ledger_exists(name, target)
                return ResetResult(
                    success=True,
                    sheet_name=name,
                    created=created,
                    target=target,
                    message=(
                        f'Sheet "{name}" created and initialized with target '
                        f"expense Rs{target:,}."
                    ),
                )

            await self._backend.clear_values(a1_range(name, FULL_CLEAR_RANGE))
            structure = await self.initialize_structure(name, target)

            logger.warning("sheet_reset", sheet=name, target=str(target))
            return ResetResult(
                success=True,
                sheet_name=name,
                target=target,
                warnings=structure.warnings,
                message=(
                    f'Sheet "{name}" has been reset to initial state. Target '
                    f"expense set to Rs{target:,}. All data cleared."
                ),
            )
        except StorageError as e:
            logger.error("sheet_reset_failed", sheet=name, error=str(e))
            return ResetResult(
                success=False,
                sheet_name=name,
                target=target,
                message=f"Failed to reset sheet: {e}",
            )

    # -------------------------------------------------------------------------
    # Rows and summary values
    # -------------------------------------------------------------------------

    async def append_expense_row(self, name: str, expense: Expense) -> None:
        """
        Append one expense row, creating the ledger on first use.

        Raises:
            StorageError: If the ledger cannot be created or the append fails
        """
        await self.ensure_ledger_exists(name)

        row = expense.to_sheets_row()
        row[2] = as_number(expense.amount)
        await self._backend.append_values(
            a1_range(name, APPEND_RANGE),
            [row],
            WriteMode.RAW,
        )
        await self.update_summary_section(name)

        logger.info(
            "expense_row_appended",
            sheet=name,
            date=expense.date,
            amount=str(expense.amount),
        )

    async def set_target(self, name: str, amount: Decimal) -> None:
        """
        Overwrite the literal target cell and re-assert the formulas.

        A missing ledger is created with this target.
        """
        amount = Decimal(amount)
        await self.ensure_ledger_exists(name, amount)
        await self._backend.update_values(
            a1_range(name, TARGET_CELL),
            [[as_number(amount)]],
            WriteMode.RAW,
        )
        await self.update_summary_section(name)
        logger.info("target_set", sheet=name, target=str(amount))

    async def read_expenses(self, name: str) -> list[Expense]:
        """
        All expense rows of a ledger (row 6 onward).

        A missing tab yields an empty list.
        """
        if not await self.sheet_exists(name):
            return []
        return await self._read_data_rows(name)

    async def _read_data_rows(self, name: str) -> list[Expense]:
        values: RangeValues = await self._backend.get_values(
            a1_range(name, DATA_RANGE), ValueRender.UNFORMATTED
        )

        expenses = []
        for index, row in enumerate(values.rows):
            if not any(cell.strip() for cell in row):
                continue
            expenses.append(
                Expense(
                    date=values.cell(index, 0),
                    type=values.cell(index, 1) or None,
                    amount=safe_decimal(values.cell(index, 2)),
                    description=values.cell(index, 3),
                )
            )
        return expenses

    async def read_all_expenses(self) -> list[Expense]:
        """
        Expenses of every monthly ledger, in the backend's tab order.
        """
        expenses = []
        for name in await self._backend.list_tabs():
            if is_monthly_ledger_name(name):
                expenses.extend(await self._read_data_rows(name))
        return expenses

    async def total_for(self, name: str) -> Decimal:
        return sum((e.amount for e in await self.read_expenses(name)), Decimal("0"))

    async def total_all(self) -> Decimal:
        return sum((e.amount for e in await self.read_all_expenses()), Decimal("0"))
