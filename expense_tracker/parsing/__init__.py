"""Command parsing package."""

from expense_tracker.parsing.command_parser import (
    EXPENSE_COMMANDS,
    USAGE,
    is_bare_expense_command,
    parse_amount,
    parse_expense_message,
    split_command,
)

__all__ = [
    "EXPENSE_COMMANDS",
    "USAGE",
    "is_bare_expense_command",
    "parse_amount",
    "parse_expense_message",
    "split_command",
]
