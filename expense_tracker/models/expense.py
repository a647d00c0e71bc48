"""
Core Data Models for Expense Tracker

These models define the schemas for everything a chat command turns into:
1. The fixed catalog of expense types
2. A single expense record (one spreadsheet row)
3. The structured outcome of parsing a command

DESIGN DECISION: Amounts are Decimal, never float. Floats only appear at
the spreadsheet boundary where the API needs a JSON number.
"""

from datetime import date as calendar_date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# TYPE CATALOG
# =============================================================================

class ExpenseType(str, Enum):
    """
    Supported expense types.

    Declaration order is the layout order of the breakdown section and
    of the category selection menu. NONE is the "no category" sentinel.
    """
    SUPER_MARKET = "Super Market"
    FUEL = "Fuel"
    CAR_REPAIR = "Car Repair"
    PHARMACY = "Pharmacy"
    RENT = "Rent"
    OTHER = "Other"
    NONE = "None"
    SALON = "Salon"
    HOSPITAL = "Hospital"
    BRUNO = "Bruno"
    BILLS = "Bills"
    CAR = "Car"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["ExpenseType"]:
        """Look up a type by its label, ignoring case and outer whitespace."""
        if label is None:
            return None
        wanted = label.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


EXPENSE_TYPES: tuple[ExpenseType, ...] = tuple(ExpenseType)

# Types that get a row in the breakdown section (sentinel excluded)
BREAKDOWN_TYPES: tuple[ExpenseType, ...] = tuple(
    t for t in ExpenseType if t is not ExpenseType.NONE
)


def format_amount(amount: Decimal) -> str:
    """Format an amount with two decimals, e.g. 50 -> '50.00'."""
    return f"{Decimal(amount):.2f}"


# =============================================================================
# EXPENSE RECORD
# =============================================================================

class Expense(BaseModel):
    """
    A single expense entry.

    Created by the command parser without a type, enriched with a type by
    the category selection step, then appended as one spreadsheet row.
    Records are never edited in place.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(
        ...,
        description="Calendar date in ISO format (YYYY-MM-DD)"
    )
    type: Optional[str] = Field(
        default=None,
        description="Expense type label, None when uncategorized"
    )
    amount: Decimal = Field(
        ...,
        description="Expense amount (currency is implicit); the parser only accepts > 0"
    )
    description: str = Field(
        default="",
        description="Free text, may be empty"
    )
    author: Optional[str] = Field(
        default=None,
        description="Display name of the submitter (informational only)"
    )

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        """Empty strings and the 'None' sentinel both mean uncategorized."""
        if isinstance(v, ExpenseType):
            v = v.value
        if v is None:
            return None
        v = str(v).strip()
        if not v or v == ExpenseType.NONE.value:
            return None
        return v

    @classmethod
    def stamp_today(cls, today: Optional[calendar_date] = None) -> str:
        """ISO date string for today (or the given date)."""
        return (today or calendar_date.today()).isoformat()

    def with_type(self, expense_type: Optional[ExpenseType]) -> "Expense":
        """Return a copy carrying the selected type."""
        data = self.model_dump()
        data["type"] = expense_type.value if expense_type else None
        return Expense(**data)

    def to_sheets_row(self) -> list:
        """
        Convert to a ledger row: [Date, Type, Amount, Description].
        """
        return [
            self.date,
            self.type or "",
            float(self.amount),
            self.description,
        ]

    def summary(self) -> str:
        """Short human-readable form, e.g. '$50.00 for groceries'."""
        text = f"${format_amount(self.amount)}"
        if self.description:
            text += f" for {self.description}"
        return text


# =============================================================================
# PARSE RESULTS
# =============================================================================

class ParseErrorKind(str, Enum):
    """Which validation a command failed."""
    MISSING_COMMAND = "missing_command"
    MISSING_AMOUNT = "missing_amount"
    INVALID_AMOUNT = "invalid_amount"
    EMPTY_DESCRIPTION = "empty_description"


class ParseError(BaseModel):
    """A structured parse failure with a user-facing message."""

    kind: ParseErrorKind
    message: str


class ParseResult(BaseModel):
    """
    Outcome of parsing one command message.

    Exactly one of `expense` / `error` is set.
    """

    success: bool
    expense: Optional[Expense] = None
    error: Optional[ParseError] = None

    @classmethod
    def ok(cls, expense: Expense) -> "ParseResult":
        return cls(success=True, expense=expense)

    @classmethod
    def fail(cls, kind: ParseErrorKind, message: str) -> "ParseResult":
        return cls(success=False, error=ParseError(kind=kind, message=message))

    @property
    def error_kind(self) -> Optional[ParseErrorKind]:
        return self.error.kind if self.error else None
