"""
Audit Logger

DESIGN DECISION: Writes, access decisions and failures are audited as
structured log lines. This provides:
1. Complete traceability of what was written to the spreadsheet
2. Debugging capability when the backend fails
3. A history of access control changes

The audit logger:
- Is async so handlers can await it uniformly
- Never raises (a logging failure must not fail a command)
- Carries correlation IDs to tie a submission to its category selection
"""

import logging
import sys
from typing import Optional
from uuid import uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stdout at `level`."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Writes one structured log line per event.
    """

    def __init__(self):
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be rendered.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            print(f"WARNING: Failed to write audit event {event.event_id}: {e}")
            return False

        return True

    async def log_backend_error(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Log a fatal spreadsheet backend error for one operation."""
        event = AuditEventBuilder.backend_error(
            operation=operation,
            error_message=str(error),
            error_code=type(error).__name__,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_formatting_skipped(
        self,
        sheet_name: str,
        warnings: list[str],
    ) -> None:
        """Log cosmetic failures collected by a ledger operation."""
        if not warnings:
            return
        await self.log(AuditEventBuilder.formatting_skipped(sheet_name, warnings))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """Log an unexpected error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            user_id=user_id,
        )
        await self.log(event)


def create_correlation_id() -> str:
    """
    Create a new correlation ID for a pending category selection.

    Kept short (32 hex chars) so it fits in chat callback payloads.
    """
    return uuid4().hex
