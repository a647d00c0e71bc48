"""Access control package."""

from expense_tracker.access.approvals import (
    AccessChange,
    AccessControlLedger,
    ApprovedUser,
    ApprovedUserStore,
)

__all__ = [
    "AccessChange",
    "AccessControlLedger",
    "ApprovedUser",
    "ApprovedUserStore",
]
