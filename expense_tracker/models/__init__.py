"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    BREAKDOWN_TYPES,
    EXPENSE_TYPES,
    Expense,
    ExpenseType,
    ParseError,
    ParseErrorKind,
    ParseResult,
    format_amount,
)
from expense_tracker.models.ledger import (
    LedgerFormat,
    MigrationResult,
    RangeValues,
    ResetResult,
    StructureResult,
    ValueRender,
    WriteMode,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "BREAKDOWN_TYPES",
    "EXPENSE_TYPES",
    "Expense",
    "ExpenseType",
    "ParseError",
    "ParseErrorKind",
    "ParseResult",
    "format_amount",
    # Ledger models
    "LedgerFormat",
    "MigrationResult",
    "RangeValues",
    "ResetResult",
    "StructureResult",
    "ValueRender",
    "WriteMode",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
