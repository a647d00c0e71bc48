"""
Tests for the expense command parser.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.models.expense import ParseErrorKind
from expense_tracker.parsing import (
    is_bare_expense_command,
    parse_amount,
    parse_expense_message,
    split_command,
)


TODAY = date(2026, 2, 14)


def parse(text, **kwargs):
    return parse_expense_message(text, clock=lambda: TODAY, **kwargs)


class TestSplitCommand:
    """Tests for command word and argument splitting."""

    def test_plain_command(self):
        assert split_command("/ex 500 food") == ("ex", ["500", "food"])

    def test_bot_suffix_is_dropped(self):
        assert split_command("/expense@family_ledger_bot 50 rice") == ("expense", ["50", "rice"])

    def test_command_word_is_lowercased(self):
        assert split_command("/EX 5 tea") == ("ex", ["5", "tea"])
        assert split_command("/Expense@Family_Ledger_Bot 5") == ("expense", ["5"])

    def test_not_a_command(self):
        assert split_command("hello 50") == (None, [])

    def test_empty_and_none(self):
        assert split_command("") == (None, [])
        assert split_command(None) == (None, [])

    def test_command_word_must_end_at_whitespace(self):
        """'/ex500' is not '/ex' followed by an amount."""
        assert split_command("/ex500") == (None, [])


class TestParseAmount:
    """Tests for strict positive amount parsing."""

    @pytest.mark.parametrize("token,expected", [
        ("500", Decimal("500")),
        ("12.50", Decimal("12.50")),
        ("0.01", Decimal("0.01")),
        (".5", Decimal("0.5")),
        ("1e3", Decimal("1000")),
    ])
    def test_valid_amounts(self, token, expected):
        assert parse_amount(token) == expected

    @pytest.mark.parametrize("token", [
        "0", "0.00", "-5", "50abc", "abc", "nan", "inf", "1,000", "1_000", "", None,
    ])
    def test_invalid_amounts(self, token):
        assert parse_amount(token) is None


class TestParseExpenseMessage:
    """Tests for the full command parser."""

    def test_long_form_with_description(self):
        result = parse("/expense 50 groceries", author="spouse")

        assert result.success
        assert result.error is None
        assert result.expense.amount == Decimal("50")
        assert result.expense.description == "groceries"
        assert result.expense.date == "2026-02-14"
        assert result.expense.type is None
        assert result.expense.author == "spouse"

    def test_short_form_without_description(self):
        result = parse("/ex 500")

        assert result.success
        assert result.expense.description == ""

    def test_whitespace_is_collapsed(self):
        result = parse("/ex   500    food   here")

        assert result.success
        assert result.expense.amount == Decimal("500")
        assert result.expense.description == "food here"

    def test_second_token_is_not_a_category(self):
        """Everything after the amount is description."""
        result = parse("/expense 120 Fuel full tank")

        assert result.expense.type is None
        assert result.expense.description == "Fuel full tank"

    def test_bot_suffix(self):
        result = parse("/ex@family_ledger_bot 75.5 taxi")

        assert result.success
        assert result.expense.amount == Decimal("75.5")

    @pytest.mark.parametrize("text", ["/EX 50 food", "/Expense 50 food", "/eX@my_bot 50 food"])
    def test_command_word_any_case(self, text):
        result = parse(text)

        assert result.success
        assert result.expense.amount == Decimal("50")
        assert result.expense.description == "food"

    @pytest.mark.parametrize("text", ["/ex 0 rent", "/ex -10 rent", "/ex 50abc", "/ex abc"])
    def test_invalid_amount(self, text):
        result = parse(text)

        assert not result.success
        assert result.expense is None
        assert result.error_kind == ParseErrorKind.INVALID_AMOUNT

    @pytest.mark.parametrize("text", ["hello", "50 groceries", "/total 50", ""])
    def test_missing_command(self, text):
        result = parse(text)

        assert result.error_kind == ParseErrorKind.MISSING_COMMAND

    @pytest.mark.parametrize("text", ["/ex", "/expense   ", "/ex@bot"])
    def test_missing_amount(self, text):
        result = parse(text)

        assert result.error_kind == ParseErrorKind.MISSING_AMOUNT

    def test_description_can_be_required(self):
        result = parse("/ex 500", require_description=True)

        assert result.error_kind == ParseErrorKind.EMPTY_DESCRIPTION

    def test_date_uses_injected_clock(self):
        result = parse_expense_message("/ex 5", clock=lambda: date(2025, 12, 31))

        assert result.expense.date == "2025-12-31"


class TestBareCommand:
    """Tests for detection of a command sent without arguments."""

    @pytest.mark.parametrize("text", ["/ex", "/expense", " /ex@my_bot ", "/expense@my_bot", "/Expense", "/EX"])
    def test_bare(self, text):
        assert is_bare_expense_command(text)

    @pytest.mark.parametrize("text", ["/ex 5", "/total", "ex", None])
    def test_not_bare(self, text):
        assert not is_bare_expense_command(text)
