"""
Ledger Models for Expense Tracker

Typed values exchanged between the sheet layout manager and its callers:
raw range reads, write modes, detected layout formats and the result
objects of operations that have a defined partial-failure mode.

DESIGN DECISION: Every remote read may come back empty. An empty range is
an empty RangeValues, never None, so callers branch on `is_empty` instead
of truthiness of whatever the API returned.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class WriteMode(str, Enum):
    """How the backend interprets written values."""
    RAW = "RAW"                    # stored literally
    USER_ENTERED = "USER_ENTERED"  # parsed as if typed, formulas evaluated


class ValueRender(str, Enum):
    """How the backend renders values it reads."""
    FORMATTED = "FORMATTED_VALUE"      # as displayed, e.g. "Rs 1,500.00"
    UNFORMATTED = "UNFORMATTED_VALUE"  # underlying number, e.g. 1500


class LedgerFormat(str, Enum):
    """
    Physical layout of a monthly tab.

    OLD: headers in row 1, columns Date/Amount/Description only.
    NEW: summary in F4:H5, headers in A5:D5, data from row 6, breakdown from F14.
    """
    OLD = "old"
    NEW = "new"
    UNKNOWN = "unknown"


class RangeValues(BaseModel):
    """
    Values read from one A1 range.

    Rows may be ragged (trailing empty cells are omitted by the API).
    Every cell is normalized to a string.
    """

    range: str
    rows: list[list[str]] = Field(default_factory=list)

    @field_validator("rows", mode="before")
    @classmethod
    def stringify_cells(cls, v):
        if not v:
            return []
        return [["" if cell is None else str(cell) for cell in row] for row in v]

    @property
    def is_empty(self) -> bool:
        return not any(any(cell != "" for cell in row) for row in self.rows)

    @property
    def first_row(self) -> list[str]:
        return self.rows[0] if self.rows else []

    def cell(self, row: int, col: int, default: str = "") -> str:
        """Zero-based cell access that tolerates short rows."""
        try:
            value = self.rows[row][col]
        except IndexError:
            return default
        return value if value != "" else default


class MigrationResult(BaseModel):
    """Outcome of migrating a tab to the new layout."""

    success: bool
    sheet_name: str
    message: str
    rows_migrated: int = Field(default=0, ge=0)
    format_before: Optional[LedgerFormat] = None
    warnings: list[str] = Field(default_factory=list)


class StructureResult(BaseModel):
    """Outcome of writing the ledger structure to a tab."""

    sheet_name: str
    regions_written: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-fatal (cosmetic) failures"
    )
    migration: Optional[MigrationResult] = None

    @property
    def formatting_applied(self) -> bool:
        return not self.warnings


class ResetResult(BaseModel):
    """Outcome of resetting a tab to its initial state."""

    success: bool
    sheet_name: str
    message: str
    created: bool = False
    target: Optional[Decimal] = None
    warnings: list[str] = Field(default_factory=list)
