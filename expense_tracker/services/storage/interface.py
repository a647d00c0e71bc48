"""
Abstract Spreadsheet Backend Interface

DESIGN DECISION: The ledger code talks to an abstract range-oriented
backend rather than to gspread directly. This allows us to:
1. Use an in-memory backend for testing
2. Keep the layout logic independent of the Sheets client library
3. Swap the backend without touching the ledger code

The interface mirrors what the Sheets values API offers and nothing more:
range reads, range writes (literal or user-entered), appends, clears,
tab listing/creation and cell formatting requests. Formula evaluation is
the backend's job; we only ever write formula strings.
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.ledger import RangeValues, ValueRender, WriteMode


def quote_sheet_name(name: str) -> str:
    """Quote a tab name for A1 notation ('Feb 2026' -> "'Feb 2026'")."""
    return "'" + name.replace("'", "''") + "'"


def a1_range(sheet_name: str, cells: str) -> str:
    """Build a tab-scoped A1 range, e.g. 'Feb 2026'!A6:D."""
    return f"{quote_sheet_name(sheet_name)}!{cells}"


class SheetBackendInterface(ABC):
    """
    Abstract interface for spreadsheet operations.

    All operations are scoped to a single spreadsheet document.
    Any implementation must raise StorageError subclasses on failure.
    """

    @abstractmethod
    async def list_tabs(self) -> list[str]:
        """
        List tab titles in the backend's order.

        Raises:
            StorageError: If the document cannot be read
        """
        pass

    @abstractmethod
    async def add_tab(self, name: str) -> None:
        """
        Create a new tab.

        Raises:
            DuplicateError: If a tab with this name already exists
            StorageError: On any other failure
        """
        pass

    @abstractmethod
    async def tab_id(self, name: str) -> Optional[int]:
        """Numeric id of a tab (needed for formatting), None if absent."""
        pass

    @abstractmethod
    async def get_values(
        self,
        range_name: str,
        render: ValueRender = ValueRender.FORMATTED,
    ) -> RangeValues:
        """
        Read the values of an A1 range.

        UNFORMATTED reads numbers as numbers; dates still come back as
        their displayed text.

        Returns:
            RangeValues, empty when the range holds no data

        Raises:
            NotFoundError: If the tab does not exist
            StorageError: On any other failure
        """
        pass

    @abstractmethod
    async def update_values(
        self,
        range_name: str,
        rows: list[list],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        """Overwrite an A1 range with the given rows."""
        pass

    @abstractmethod
    async def append_values(
        self,
        range_name: str,
        rows: list[list],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        """Append rows after the last non-empty row of the range's table."""
        pass

    @abstractmethod
    async def clear_values(self, range_name: str) -> None:
        """Clear all values in an A1 range (formatting is kept)."""
        pass

    @abstractmethod
    async def format_cells(self, sheet_name: str, requests: list[dict]) -> None:
        """
        Apply batchUpdate formatting requests to one tab.

        Each request is a Sheets API request body (e.g. repeatCell); the
        implementation fills in the tab's sheetId.
        """
        pass


class StorageError(Exception):
    """Base exception for spreadsheet backend operations."""

    operator_hint: str = "Please try again. If it keeps failing, check the bot logs."
    requires_operator: bool = False


class NotFoundError(StorageError):
    """Spreadsheet document or tab not found."""

    operator_hint = "Check GOOGLE_SHEETS_SPREADSHEET_ID and the tab name."
    requires_operator = True


class DuplicateError(StorageError):
    """A tab with the requested name already exists."""
    pass


class ConnectionError(StorageError):
    """Could not reach the backend (network or generic API failure)."""
    pass


class AuthenticationError(StorageError):
    """Credentials are malformed, revoked or rejected (e.g. invalid JWT signature)."""

    operator_hint = (
        "The service account credentials were rejected. Verify the service "
        "account still exists, the Google Sheets API is enabled and the "
        "credentials file holds a current key."
    )
    requires_operator = True


class PermissionDeniedError(StorageError):
    """The service account may not access the spreadsheet."""

    operator_hint = "Share the spreadsheet with the service account email."
    requires_operator = True
