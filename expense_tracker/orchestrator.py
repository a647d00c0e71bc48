"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Expense logging (command → parse → pending → category → append)
2. Totals and target (read rows → sum / write target cell)
3. Sheet reset (ask → confirm → clear and reinitialize)
4. Access control (approve / unapprove / list / myinfo)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No backend call happens before the sender is approved
- No backend call happens for a command that failed to parse
- A reset only happens after an explicit confirmation
- Every failure becomes one reply and one audit line

Handlers return a BotReply and never raise. The chat transport only
renders replies; it holds no business logic.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional
from urllib.parse import quote, unquote

import structlog
from pydantic import BaseModel
from telegram.helpers import escape_markdown

from expense_tracker.access import AccessControlLedger, ApprovedUserStore
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import Settings, get_settings
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.expense import EXPENSE_TYPES, ExpenseType, format_amount
from expense_tracker.models.ledger import StructureResult
from expense_tracker.parsing import (
    is_bare_expense_command,
    parse_amount,
    parse_expense_message,
    split_command,
)
from expense_tracker.pending import (
    PendingSelectionArena,
    decode_callback_data,
    encode_callback_data,
)
from expense_tracker.services.ledger import LedgerService, SheetLayoutManager
from expense_tracker.services.storage import (
    GoogleSheetsBackend,
    GoogleSheetsClient,
    SheetBackendInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

RESET_CALLBACK_PREFIX = "setup_reset_"
CANCEL_CALLBACK = "setup_cancel"

KEYBOARD_COLUMNS = 3

# (command, description) pairs registered for autocomplete
BOT_COMMANDS = [
    ("expense", "Log expense: /expense <amount> <description>"),
    ("ex", "Log expense (short): /ex <amount> <description>"),
    ("total", "Show current month total"),
    ("total_all", "Show all-time total"),
    ("set_target", "Set budget: /set_target <amount>"),
    ("setup_sheet", "Reset sheet (clears all data)"),
    ("help", "Show help with all commands"),
    ("start", "Show welcome message"),
]

EXPENSE_FORMAT_HINT = (
    "*Format:* `/expense <amount> [description]`\n"
    "*Short:* `/ex <amount> [description]`\n\n"
    "*Examples:*\n"
    "• /ex 500\n"
    "• /ex 500 food\n"
    "• /expense 50 groceries"
)


# =============================================================================
# REPLY MODELS
# =============================================================================

class KeyboardButton(BaseModel):
    """One inline button: label plus the payload sent back when tapped."""

    text: str
    callback_data: str


class BotReply(BaseModel):
    """
    What the transport should send back.

    `notice` is the short toast shown when answering a button tap.
    `edit_text`, when set, replaces the text of the message whose button
    was tapped (and removes its buttons).
    """

    text: str
    keyboard: Optional[list[list[KeyboardButton]]] = None
    parse_mode: Optional[str] = None
    notice: Optional[str] = None
    edit_text: Optional[str] = None


class ChatUser(BaseModel):
    """The sender of a command, as far as the transport knows it."""

    user_id: Optional[int] = None
    username: Optional[str] = None
    first_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.username or self.first_name or "Unknown"


def category_keyboard(correlation_id: str) -> list[list[KeyboardButton]]:
    """Every catalog type, three per row, then a Skip row."""
    buttons = [
        KeyboardButton(
            text=expense_type.value,
            callback_data=encode_callback_data(correlation_id, expense_type),
        )
        for expense_type in EXPENSE_TYPES
    ]
    rows = [
        buttons[i:i + KEYBOARD_COLUMNS]
        for i in range(0, len(buttons), KEYBOARD_COLUMNS)
    ]
    rows.append([
        KeyboardButton(
            text="⏭️ Skip",
            callback_data=encode_callback_data(correlation_id, ExpenseType.NONE),
        )
    ])
    return rows


def reset_keyboard(sheet_name: str) -> list[list[KeyboardButton]]:
    return [
        [KeyboardButton(
            text="✅ OK - Reset Sheet",
            callback_data=f"{RESET_CALLBACK_PREFIX}{quote(sheet_name)}",
        )],
        [KeyboardButton(text="❌ Cancel", callback_data=CANCEL_CALLBACK)],
    ]


# =============================================================================
# BOT
# =============================================================================

class ExpenseBot:
    """
    The process-scoped owner of all mutable state.

    Holds the ledger service, the access ledger, the pending selections and
    the audit logger. Build one per process (or per test).
    """

    def __init__(
        self,
        ledger: LedgerService,
        access: AccessControlLedger,
        pending: Optional[PendingSelectionArena] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_sheet_name: str = "Expenses",
        default_target: Decimal = Decimal("0"),
        reset_target: Decimal = Decimal("150000"),
        correlation_ids: Callable[[], str] = create_correlation_id,
    ):
        self._ledger = ledger
        self._access = access
        self._pending = pending or PendingSelectionArena()
        self._audit_logger = audit_logger or AuditLogger()
        self._default_sheet_name = default_sheet_name
        self._default_target = Decimal(default_target)
        self._reset_target = Decimal(reset_target)
        self._correlation_ids = correlation_ids

    @property
    def ledger(self) -> LedgerService:
        return self._ledger

    @property
    def access(self) -> AccessControlLedger:
        return self._access

    @property
    def pending(self) -> PendingSelectionArena:
        return self._pending

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def initialize(self) -> StructureResult:
        """
        Startup checks: approve the admin, then verify the default tab.

        Raises:
            StorageError: The default tab could not be checked or repaired.
                The process should not start.
        """
        if self._access.admin_id is not None:
            self._access.approve(self._access.admin_id)
            logger.info("admin_approved", admin_user_id=self._access.admin_id)
        else:
            logger.warning("admin_not_configured")

        result = await self._ledger.initialize_default_sheet(
            self._default_sheet_name,
            self._default_target,
        )
        await self._audit_logger.log(
            AuditEventBuilder.sheet_initialized(result.sheet_name, result.regions_written)
        )
        if result.migration is not None:
            await self._audit_logger.log(
                AuditEventBuilder.sheet_migrated(
                    result.sheet_name,
                    result.migration.rows_migrated,
                    result.migration.format_before,
                )
            )
        await self._audit_logger.log_formatting_skipped(result.sheet_name, result.warnings)
        return result

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    async def _deny_unapproved(self, user: ChatUser, command: str) -> Optional[BotReply]:
        if user.user_id is None:
            return BotReply(text="❌ Could not identify user.")
        if self._access.is_approved(user.user_id):
            return None

        await self._audit_logger.log(AuditEventBuilder.access_denied(user.user_id, command))
        return BotReply(
            text=(
                "🔒 *Access Denied*\n\n"
                "You are not approved to use this bot yet.\n\n"
                "Please contact the administrator to get access.\n\n"
                f"Your User ID: `{user.user_id}`"
            ),
            parse_mode="Markdown",
            notice="❌ You are not approved to use this bot",
        )

    async def _deny_non_admin(self, user: ChatUser, command: str) -> Optional[BotReply]:
        if self._access.is_admin(user.user_id):
            return None
        await self._audit_logger.log(
            AuditEventBuilder.access_denied(user.user_id, command, admin_only=True)
        )
        return BotReply(text="❌ Access denied. Admin only.")

    async def _backend_failure(
        self,
        operation: str,
        error: Exception,
        failure_text: str,
        user: ChatUser,
        correlation_id: Optional[str] = None,
    ) -> BotReply:
        """One audit line and one reply for a failed backend operation."""
        if isinstance(error, StorageError):
            await self._audit_logger.log_backend_error(
                operation, error, user_id=user.user_id, correlation_id=correlation_id
            )
            hint = error.operator_hint if error.requires_operator else "Please try again."
        else:
            await self._audit_logger.log_error(
                type(error).__name__,
                str(error),
                details={"operation": operation},
                user_id=user.user_id,
            )
            hint = "Please try again."
        return BotReply(text=f"❌ {failure_text} {hint}", notice=f"❌ {failure_text}")

    # -------------------------------------------------------------------------
    # General commands
    # -------------------------------------------------------------------------

    async def start(self, user: ChatUser) -> BotReply:
        if user.user_id is None:
            return BotReply(text="❌ Could not identify user.")

        month = self._ledger.current_month_name()
        if not self._access.is_approved(user.user_id):
            return BotReply(
                text=(
                    "👋 Welcome to Expense Tracker Bot! 💰\n\n"
                    "🔒 *Access Required*\n\n"
                    "You need approval to use this bot.\n\n"
                    f"Your User ID: `{user.user_id}`\n\n"
                    "Please contact the administrator with your User ID to get access.\n\n"
                    "Once approved, you'll be able to:\n"
                    "• Log expenses with /ex or /expense\n"
                    "• View totals with /total\n"
                    "• Manage your budget\n\n"
                    f"Expenses are organized by month (currently: {month})"
                ),
                parse_mode="Markdown",
            )

        return BotReply(
            text=(
                "Welcome to Expense Tracker Bot! 💰\n\n"
                "To log an expense, use the following format:\n"
                "/expense <amount> [description]\n"
                "/ex <amount> [description] (short)\n\n"
                "Examples:\n"
                "• /ex 500\n"
                "• /ex 500 food\n"
                "• /expense 50 groceries\n\n"
                "After sending, you'll be asked to select a type.\n\n"
                f"Expenses are organized by month (currently: {month})\n\n"
                "Other commands:\n"
                "• /total - Get current month's total\n"
                "• /total_all - Get all-time total\n"
                "• /set_target <amount> - Set target expense for current month\n"
                "• /setup_sheet - Reset the current month's sheet\n"
                "• /help - Show this help message"
            )
        )

    async def help(self, user: ChatUser) -> BotReply:
        denied = await self._deny_unapproved(user, "help")
        if denied:
            return denied

        month = self._ledger.current_month_name()
        return BotReply(
            text=(
                "📊 Expense Tracker Bot - All Commands\n\n"
                "📝 Expense Management:\n"
                "/expense <amount> [description]\n"
                "/ex <amount> [description] (short)\n"
                f"Log a new expense to the {month} sheet\n"
                "(Description is optional. Type is selected via buttons.)\n\n"
                "📊 View Totals:\n"
                f"/total - current month's total ({month})\n"
                "/total_all - total across all months\n\n"
                "💰 Budget Management:\n"
                "/set_target <amount> - target expense for the current month\n"
                "Example: /set_target 150000\n\n"
                "⚙️ Sheet Setup:\n"
                "/setup_sheet - reset the sheet to its initial state\n"
                "⚠️ Warning: This will delete all existing expenses!\n\n"
                "ℹ️ General:\n"
                "/help - show this message\n"
                "/start - show the welcome message\n"
                "/myinfo - show your user id and status\n\n"
                "💡 Tips:\n"
                f"• Expenses are organized by month ({month})\n"
                "• Type is optional - you can skip it\n"
                "• Target expense helps track your budget"
            )
        )

    # -------------------------------------------------------------------------
    # Expense flow
    # -------------------------------------------------------------------------

    async def expense(self, user: ChatUser, text: str) -> BotReply:
        """
        Handle /expense and /ex.

        A parsed expense is parked under a new correlation id and the user
        is asked for its category.
        """
        denied = await self._deny_unapproved(user, "expense")
        if denied:
            return denied

        if is_bare_expense_command(text):
            return BotReply(
                text=(
                    "💡 *Tip:* After selecting the command from suggestions, add your "
                    "amount (and optional description) before sending.\n\n"
                    f"{EXPENSE_FORMAT_HINT}\n\n"
                    "After sending, you'll be asked to select a type."
                ),
                parse_mode="Markdown",
            )

        result = parse_expense_message(
            text,
            author=user.display_name,
            clock=self._ledger.today,
        )
        if not result.success:
            await self._audit_logger.log(
                AuditEventBuilder.parse_rejected(
                    result.error_kind.value, text or "", user.user_id
                )
            )
            return BotReply(
                text=f"❌ {escape_markdown(result.error.message)}\n\n{EXPENSE_FORMAT_HINT}",
                parse_mode="Markdown",
            )

        expense = result.expense
        correlation_id = self._correlation_ids()
        self._pending.put(correlation_id, expense)

        await self._audit_logger.log(
            AuditEventBuilder.expense_submitted(
                correlation_id, format_amount(expense.amount), user.user_id
            )
        )

        description = f" - {expense.description}" if expense.description else ""
        return BotReply(
            text=(
                f"💰 Expense: ${format_amount(expense.amount)}{description}\n\n"
                "Select expense type:"
            ),
            keyboard=category_keyboard(correlation_id),
        )

    async def select_category(
        self,
        user: ChatUser,
        correlation_id: str,
        type_label: str,
    ) -> BotReply:
        """
        Complete a pending expense with the chosen category and log it.

        "None" (the Skip button) logs the expense uncategorized.
        """
        denied = await self._deny_unapproved(user, "select_category")
        if denied:
            return denied

        expense_type = ExpenseType.from_label(type_label)
        entry = self._pending.take(correlation_id) if expense_type else None
        if entry is None:
            await self._audit_logger.log(
                AuditEventBuilder.pending_selection_missing(correlation_id, user.user_id)
            )
            return BotReply(
                text="❌ Expense data not found. Please submit the expense again.",
                notice="❌ Expense data not found. Please try again.",
            )

        expense = entry.to_expense(expense_type)

        try:
            sheet_name = await self._ledger.log_expense(expense)
        except Exception as e:
            # Put it back so a retry tap can still succeed
            self._pending.restore(correlation_id, entry)
            return await self._backend_failure(
                "log_expense", e, "Failed to log expense.", user, correlation_id
            )

        await self._audit_logger.log(
            AuditEventBuilder.expense_logged(
                sheet_name,
                format_amount(expense.amount),
                expense.type,
                user.user_id,
                correlation_id=correlation_id,
            )
        )

        type_text = f" ({expense.type})" if expense.type else ""
        description = f" - {expense.description}" if expense.description else ""
        return BotReply(
            text=f"✅ Expense logged: {expense.summary()}{type_text}",
            notice=(
                f"✅ Expense logged with type: {expense.type}"
                if expense.type else "✅ Expense logged"
            ),
            edit_text=(
                f"💰 Expense: ${format_amount(expense.amount)}{description}\n\n"
                f"✅ Type selected: {expense.type or 'No type'}"
            ),
        )

    async def handle_callback(self, user: ChatUser, data: Optional[str]) -> Optional[BotReply]:
        """Route a button tap. Returns None for payloads this bot did not issue."""
        selection = decode_callback_data(data)
        if selection:
            return await self.select_category(user, *selection)
        if data and data.startswith(RESET_CALLBACK_PREFIX):
            return await self.confirm_reset(user, unquote(data[len(RESET_CALLBACK_PREFIX):]))
        if data == CANCEL_CALLBACK:
            return await self.cancel_reset(user)
        return None

    # -------------------------------------------------------------------------
    # Totals and target
    # -------------------------------------------------------------------------

    async def total(self, user: ChatUser) -> BotReply:
        denied = await self._deny_unapproved(user, "total")
        if denied:
            return denied

        month = self._ledger.current_month_name()
        try:
            total = await self._ledger.total_current_month()
        except Exception as e:
            return await self._backend_failure(
                "total", e, "Error calculating total expenses.", user
            )

        await self._audit_logger.log(
            AuditEventBuilder.total_queried(month, format_amount(total), user.user_id)
        )
        return BotReply(text=f"💵 Total expenses for {month}: ${format_amount(total)}")

    async def total_all(self, user: ChatUser) -> BotReply:
        denied = await self._deny_unapproved(user, "total_all")
        if denied:
            return denied

        try:
            total = await self._ledger.total_all()
        except Exception as e:
            return await self._backend_failure(
                "total_all", e, "Error calculating total expenses.", user
            )

        await self._audit_logger.log(
            AuditEventBuilder.total_queried("all months", format_amount(total), user.user_id)
        )
        return BotReply(text=f"💵 Total expenses (all months): ${format_amount(total)}")

    async def set_target(self, user: ChatUser, text: str) -> BotReply:
        denied = await self._deny_unapproved(user, "set_target")
        if denied:
            return denied

        _, args = split_command(text)
        if not args:
            return BotReply(
                text=(
                    "❌ Invalid format. Use: /set_target <amount>\n"
                    "Example: /set_target 150000"
                )
            )

        amount = parse_amount(args[0])
        if amount is None:
            return BotReply(text="❌ Invalid amount. Must be a positive number.")

        try:
            sheet_name = await self._ledger.set_target_current_month(amount)
        except Exception as e:
            return await self._backend_failure(
                "set_target", e, "Failed to set target expense.", user
            )

        await self._audit_logger.log(
            AuditEventBuilder.target_set(sheet_name, format_amount(amount), user.user_id)
        )
        return BotReply(
            text=f"✅ Target expense set to ${format_amount(amount)} for {sheet_name}"
        )

    # -------------------------------------------------------------------------
    # Sheet reset
    # -------------------------------------------------------------------------

    async def setup_sheet(self, user: ChatUser) -> BotReply:
        """Ask before resetting: nothing is touched until confirm_reset."""
        denied = await self._deny_unapproved(user, "setup_sheet")
        if denied:
            return denied

        month = self._ledger.current_month_name()
        return BotReply(
            text=(
                f'⚠️ This will reset sheet "{month}" to initial state.\n\n'
                "⚠️ ALL existing data will be cleared!\n\n"
                "Click a button below to confirm or cancel:"
            ),
            keyboard=reset_keyboard(month),
        )

    async def confirm_reset(self, user: ChatUser, sheet_name: str) -> BotReply:
        denied = await self._deny_unapproved(user, "confirm_reset")
        if denied:
            return denied

        try:
            result = await self._ledger.reset_current_month(
                self._reset_target, sheet_name
            )
        except Exception as e:
            return await self._backend_failure(
                "reset", e, "Failed to reset sheet.", user
            )

        await self._audit_logger.log(
            AuditEventBuilder.sheet_reset(
                sheet_name, result.success, result.message, user.user_id
            )
        )
        await self._audit_logger.log_formatting_skipped(sheet_name, result.warnings)

        marker = "✅" if result.success else "❌"
        return BotReply(
            text=f"{marker} {result.message}",
            notice="Resetting sheet...",
        )

    async def cancel_reset(self, user: ChatUser) -> BotReply:
        denied = await self._deny_unapproved(user, "cancel_reset")
        if denied:
            return denied
        return BotReply(text="❌ Sheet reset cancelled.", notice="Cancelled")

    # -------------------------------------------------------------------------
    # Admin commands
    # -------------------------------------------------------------------------

    @staticmethod
    def _target_user_id(text: str) -> Optional[int]:
        _, args = split_command(text)
        if not args or not args[0].isdigit():
            return None
        return int(args[0])

    async def approve(self, user: ChatUser, text: str) -> BotReply:
        denied = await self._deny_non_admin(user, "approve")
        if denied:
            return denied

        target = self._target_user_id(text)
        if target is None:
            return BotReply(
                text=(
                    "📋 *Approve User*\n\n"
                    "Usage: `/approve <user_id>`\n\n"
                    "Examples:\n"
                    "• /approve 123456789 (approve another user)\n"
                    f"• /approve {user.user_id} (approve yourself)\n\n"
                    "User IDs are shown by /myinfo."
                ),
                parse_mode="Markdown",
            )

        change = self._access.approve(target)
        await self._audit_logger.log(
            AuditEventBuilder.approval_changed(target, True, user.user_id, change.changed)
        )
        if not change.changed:
            return BotReply(text=f"ℹ️ User {target} is already approved.")
        text = f"✅ User {target} has been approved."
        if not change.persisted:
            text += "\n⚠️ Could not save the approved list; the change is lost on restart."
        return BotReply(text=text)

    async def unapprove(self, user: ChatUser, text: str) -> BotReply:
        denied = await self._deny_non_admin(user, "unapprove")
        if denied:
            return denied

        target = self._target_user_id(text)
        if target is None:
            return BotReply(
                text=(
                    "📋 *Unapprove User*\n\n"
                    "Usage: `/unapprove <user_id>`\n\n"
                    "Example: /unapprove 123456789"
                ),
                parse_mode="Markdown",
            )

        change = self._access.revoke(target)
        if change.refused:
            return BotReply(text=f"❌ {change.reason}")

        await self._audit_logger.log(
            AuditEventBuilder.approval_changed(target, False, user.user_id, change.changed)
        )
        if not change.changed:
            return BotReply(text=f"ℹ️ User {target} was not approved.")
        text = f"✅ User {target} has been unapproved."
        if not change.persisted:
            text += "\n⚠️ Could not save the approved list; the change is lost on restart."
        return BotReply(text=text)

    async def list_approved(self, user: ChatUser) -> BotReply:
        denied = await self._deny_non_admin(user, "list_approved")
        if denied:
            return denied

        entries = self._access.describe()
        if not entries:
            return BotReply(text="📋 No approved users yet.")

        lines = "\n".join(
            f"• {entry.user_id}{' (Admin)' if entry.is_admin else ''}"
            for entry in entries
        )
        return BotReply(
            text=f"📋 *Approved Users* ({len(entries)})\n\n{lines}",
            parse_mode="Markdown",
        )

    async def myinfo(self, user: ChatUser) -> BotReply:
        if user.user_id is None:
            return BotReply(text="❌ Could not identify user.")

        is_admin = self._access.is_admin(user.user_id)
        is_approved = self._access.is_approved(user.user_id)
        admin_id = self._access.admin_id

        username = escape_markdown(user.username) if user.username else "Not set"

        text = "👤 *Your Information*\n\n"
        text += f"User ID: `{user.user_id}`\n"
        text += f"Username: @{username}\n\n"
        text += "Status:\n"
        text += f"• Admin: {'✅ Yes' if is_admin else '❌ No'}\n"
        text += f"• Approved: {'✅ Yes' if is_approved else '❌ No'}\n\n"

        if admin_id is not None:
            text += f"Admin User ID (from config): `{admin_id}`\n"
            if is_admin:
                text += "✅ You match the admin ID - you should have full access!\n"
            else:
                text += "⚠️ Your ID doesn't match. Check `ADMIN_USER_ID`.\n"
        else:
            text += "⚠️ `ADMIN_USER_ID` is not set.\n"

        return BotReply(text=text, parse_mode="Markdown")


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[SheetBackendInterface] = None,
    clock: Callable[[], date] = date.today,
) -> ExpenseBot:
    """
    Factory function to create the application graph.

    Args:
        settings: Loaded settings (defaults to get_settings())
        backend: Spreadsheet backend; the Google Sheets one when omitted

    Returns:
        A ready ExpenseBot (call initialize() before serving)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    if backend is None:
        backend = GoogleSheetsBackend(GoogleSheetsClient(settings.google_sheets))
        default_sheet_name = settings.google_sheets.sheet_name
    else:
        default_sheet_name = "Expenses"

    layout = SheetLayoutManager(
        backend,
        default_target=app_settings.target_expense,
        currency_pattern=app_settings.currency_format_pattern,
    )
    access = AccessControlLedger(
        ApprovedUserStore(app_settings.approved_users_file),
        admin_id=app_settings.admin_user_id,
    )

    return ExpenseBot(
        ledger=LedgerService(layout, clock=clock),
        access=access,
        pending=PendingSelectionArena(app_settings.pending_selection_ttl_seconds),
        audit_logger=AuditLogger(),
        default_sheet_name=default_sheet_name,
        default_target=app_settings.target_expense,
        reset_target=app_settings.reset_target_expense,
    )
