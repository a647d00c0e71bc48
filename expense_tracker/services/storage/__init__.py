"""
Storage Services Package

Provides the abstract spreadsheet backend interface and its Google Sheets
implementation.
"""

from expense_tracker.services.storage.interface import (
    AuthenticationError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    SheetBackendInterface,
    StorageError,
    a1_range,
    quote_sheet_name,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsBackend,
    GoogleSheetsClient,
    load_service_account_info,
    translate_error,
)

__all__ = [
    # Interface
    "SheetBackendInterface",
    "a1_range",
    "quote_sheet_name",
    # Exceptions
    "AuthenticationError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "load_service_account_info",
    "translate_error",
]
