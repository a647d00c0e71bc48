"""
Audit Models for Expense Tracker

Every handled command produces exactly one operator-visible audit event.
This provides:
1. Traceability of every expense written to the spreadsheet
2. Debugging information when the backend misbehaves
3. A record of access control changes

DESIGN DECISION: Audit events are emitted as structured log lines.
They are never written back into the expense spreadsheet.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense flow
    EXPENSE_SUBMITTED = "expense_submitted"
    PARSE_REJECTED = "parse_rejected"
    EXPENSE_LOGGED = "expense_logged"
    PENDING_SELECTION_MISSING = "pending_selection_missing"

    # Ledger maintenance
    TOTAL_QUERIED = "total_queried"
    TARGET_SET = "target_set"
    SHEET_RESET = "sheet_reset"
    SHEET_MIGRATED = "sheet_migrated"
    SHEET_INITIALIZED = "sheet_initialized"
    FORMATTING_SKIPPED = "formatting_skipped"

    # Access control
    ACCESS_DENIED = "access_denied"
    USER_APPROVED = "user_approved"
    USER_REVOKED = "user_revoked"

    # System events
    BACKEND_ERROR = "backend_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the operator log.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'sheet', 'user', 'expense')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Sheet name, user id, ..."
    )
    correlation_id: Optional[str] = Field(
        default=None,
        description="Correlation id of a pending category selection"
    )
    user_id: Optional[int] = Field(
        default=None,
        description="Chat user that triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_logged("Feb 2026", "50.00", "Fuel", user_id)
        event = AuditEventBuilder.access_denied(user_id, "expense")
    """

    @staticmethod
    def expense_submitted(
        correlation_id: str,
        amount: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SUBMITTED,
            entity_type="expense",
            correlation_id=correlation_id,
            user_id=user_id,
            description=f"Expense of {amount} awaiting category selection",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def parse_rejected(
        error_kind: str,
        text: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="command",
            user_id=user_id,
            description=f"Command rejected: {error_kind}",
            details={"text": text[:200]},
            error_code=error_kind,
            is_user_action=True,
        )

    @staticmethod
    def expense_logged(
        sheet_name: str,
        amount: str,
        expense_type: Optional[str],
        user_id: Optional[int],
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_LOGGED,
            entity_type="sheet",
            entity_id=sheet_name,
            correlation_id=correlation_id,
            user_id=user_id,
            description=f"Expense logged to {sheet_name}: {amount}",
            details={
                "amount": amount,
                "type": expense_type or "",
            },
            is_user_action=True,
        )

    @staticmethod
    def pending_selection_missing(
        correlation_id: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PENDING_SELECTION_MISSING,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            user_id=user_id,
            description="Category selected for an unknown or expired expense",
            is_user_action=True,
        )

    @staticmethod
    def total_queried(
        scope: str,
        total: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOTAL_QUERIED,
            entity_type="sheet",
            entity_id=scope,
            user_id=user_id,
            description=f"Total for {scope}: {total}",
            details={"total": total},
            is_user_action=True,
        )

    @staticmethod
    def target_set(
        sheet_name: str,
        target: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TARGET_SET,
            entity_type="sheet",
            entity_id=sheet_name,
            user_id=user_id,
            description=f"Target for {sheet_name} set to {target}",
            details={"target": target},
            is_user_action=True,
        )

    @staticmethod
    def sheet_reset(
        sheet_name: str,
        success: bool,
        message: str,
        user_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHEET_RESET,
            severity=AuditSeverity.WARNING if success else AuditSeverity.ERROR,
            entity_type="sheet",
            entity_id=sheet_name,
            user_id=user_id,
            description=message[:500],
            details={"success": success},
            is_user_action=True,
        )

    @staticmethod
    def sheet_migrated(
        sheet_name: str,
        rows_migrated: int,
        format_before: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHEET_MIGRATED,
            entity_type="sheet",
            entity_id=sheet_name,
            description=f"Sheet {sheet_name} migrated ({rows_migrated} rows)",
            details={
                "rows_migrated": rows_migrated,
                "format_before": format_before,
            },
        )

    @staticmethod
    def sheet_initialized(
        sheet_name: str,
        regions_written: list[str],
    ) -> AuditEvent:
        repaired = ", ".join(regions_written) or "nothing"
        return AuditEvent(
            event_type=AuditEventType.SHEET_INITIALIZED,
            entity_type="sheet",
            entity_id=sheet_name,
            description=f"Startup check of {sheet_name} wrote: {repaired}",
            details={"regions_written": regions_written},
        )

    @staticmethod
    def formatting_skipped(
        sheet_name: str,
        warnings: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORMATTING_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="sheet",
            entity_id=sheet_name,
            description=f"Cosmetic formatting failed on {sheet_name}",
            details={"warnings": warnings},
        )

    @staticmethod
    def access_denied(
        user_id: Optional[int],
        command: str,
        admin_only: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=str(user_id) if user_id is not None else None,
            user_id=user_id,
            description=f"Access denied for /{command}",
            details={"command": command, "admin_only": admin_only},
            is_user_action=True,
        )

    @staticmethod
    def approval_changed(
        target_user_id: int,
        approved: bool,
        admin_user_id: Optional[int],
        changed: bool,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.USER_APPROVED if approved else AuditEventType.USER_REVOKED
        )
        verb = "approved" if approved else "revoked"
        return AuditEvent(
            event_type=event_type,
            entity_type="user",
            entity_id=str(target_user_id),
            user_id=admin_user_id,
            description=f"User {target_user_id} {verb}",
            details={"changed": changed},
            is_user_action=True,
        )

    @staticmethod
    def backend_error(
        operation: str,
        error_message: str,
        error_code: Optional[str] = None,
        user_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKEND_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Spreadsheet backend error during {operation}",
            error_code=error_code,
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
