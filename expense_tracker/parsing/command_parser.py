"""
Expense Command Parser

Turns the raw text of one chat message into a validated Expense, or a
structured ParseError saying which check failed.

Accepted forms:
    /expense <amount> [description...]
    /ex <amount> [description...]
Command words are case-insensitive and may carry a bot-username suffix
(/EX@my_bot 500 food).

IMPORTANT: The category is never read from the text. Everything after
the amount is the description; the type is chosen later from a menu.

The parser is pure apart from reading today's date, which is injectable.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from expense_tracker.models.expense import (
    Expense,
    ParseErrorKind,
    ParseResult,
)


EXPENSE_COMMANDS = ("expense", "ex")

USAGE = "Use: /expense <amount> [description] or /ex <amount> [description]"

# "/word" or "/word@botname", followed by whitespace or end of text
_COMMAND_RE = re.compile(r"^/(?P<word>[A-Za-z_]+)(?:@(?P<bot>\w+))?(?=\s|$)")

# A full decimal token: no trailing garbage, no digit separators
_AMOUNT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def split_command(text: Optional[str]) -> tuple[Optional[str], list[str]]:
    """
    Split a message into (command word, argument tokens).

    The command word is lowercased, the bot-username suffix is dropped and
    arguments are split on any run of whitespace. Returns (None, []) when the text is not a command.
    """
    trimmed = (text or "").strip()
    match = _COMMAND_RE.match(trimmed)
    if not match:
        return None, []
    rest = trimmed[match.end():]
    return match.group("word").lower(), rest.split()


def parse_amount(token: Optional[str]) -> Optional[Decimal]:
    """
    Parse a strictly positive, finite decimal amount.

    Returns None for anything else ("0", "-5", "50abc", "nan", "1_000").
    """
    if not token or not _AMOUNT_RE.match(token):
        return None
    try:
        amount = Decimal(token)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def is_bare_expense_command(text: Optional[str]) -> bool:
    """True for '/expense' or '/ex' (optionally @bot) with nothing after it."""
    word, args = split_command(text)
    return word in EXPENSE_COMMANDS and not args


def parse_expense_message(
    text: Optional[str],
    author: Optional[str] = None,
    clock: Callable[[], date] = date.today,
    require_description: bool = False,
) -> ParseResult:
    """
    Parse an expense command.

    Args:
        text: Raw message text
        author: Optional display name of the submitter
        clock: Returns today's date; inject for deterministic tests
        require_description: Reject commands without a description

    Returns:
        ParseResult with either the Expense (type unset) or the error
    """
    word, args = split_command(text)

    if word not in EXPENSE_COMMANDS:
        return ParseResult.fail(
            ParseErrorKind.MISSING_COMMAND,
            "Message must start with /expense or /ex",
        )

    if not args:
        return ParseResult.fail(
            ParseErrorKind.MISSING_AMOUNT,
            f"Amount is missing. {USAGE}",
        )

    amount = parse_amount(args[0])
    if amount is None:
        return ParseResult.fail(
            ParseErrorKind.INVALID_AMOUNT,
            "Invalid amount. Must be a positive number.",
        )

    description = " ".join(args[1:])
    if require_description and not description:
        return ParseResult.fail(
            ParseErrorKind.EMPTY_DESCRIPTION,
            "Description cannot be empty.",
        )

    return ParseResult.ok(
        Expense(
            date=Expense.stamp_today(clock()),
            amount=amount,
            description=description,
            author=author,
        )
    )
