"""Services package."""

from expense_tracker.services.storage import (
    AuthenticationError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    NotFoundError,
    PermissionDeniedError,
    SheetBackendInterface,
    StorageError,
)
from expense_tracker.services.ledger import (
    LedgerService,
    SheetLayoutManager,
    monthly_ledger_name,
)

__all__ = [
    # Storage services
    "AuthenticationError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "NotFoundError",
    "PermissionDeniedError",
    "SheetBackendInterface",
    "StorageError",
    # Ledger services
    "LedgerService",
    "SheetLayoutManager",
    "monthly_ledger_name",
]
