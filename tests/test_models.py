"""
Tests for Expense Tracker models

Test strategy:
1. Unit tests for the pydantic models and the type catalog
2. No I/O
"""

import pytest
from decimal import Decimal

from expense_tracker.models.expense import (
    BREAKDOWN_TYPES,
    EXPENSE_TYPES,
    Expense,
    ExpenseType,
    ParseErrorKind,
    ParseResult,
    format_amount,
)
from expense_tracker.models.ledger import RangeValues, StructureResult
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseTypes:
    """Tests for the fixed type catalog."""

    def test_catalog_order(self):
        """Order drives both the breakdown layout and the menu."""
        assert [t.value for t in EXPENSE_TYPES] == [
            "Super Market", "Fuel", "Car Repair", "Pharmacy", "Rent", "Other",
            "None", "Salon", "Hospital", "Bruno", "Bills", "Car",
        ]

    def test_catalog_has_no_duplicates(self):
        values = [t.value for t in EXPENSE_TYPES]
        assert len(values) == len(set(values))

    def test_breakdown_excludes_sentinel(self):
        assert ExpenseType.NONE not in BREAKDOWN_TYPES
        assert len(BREAKDOWN_TYPES) == len(EXPENSE_TYPES) - 1

    def test_from_label(self):
        assert ExpenseType.from_label("super market") == ExpenseType.SUPER_MARKET
        assert ExpenseType.from_label(" Fuel ") == ExpenseType.FUEL
        assert ExpenseType.from_label("Groceries") is None
        assert ExpenseType.from_label(None) is None


class TestExpenseModel:
    """Tests for the Expense record."""

    def test_expense_creation(self):
        expense = Expense(
            date="2026-02-14",
            amount=Decimal("50"),
            description="  groceries  ",
        )
        assert expense.type is None
        assert expense.description == "groceries"

    @pytest.mark.parametrize("value", ["", "None", ExpenseType.NONE, None])
    def test_sentinel_types_mean_uncategorized(self, value):
        expense = Expense(date="2026-02-14", amount=Decimal("1"), type=value)
        assert expense.type is None

    def test_with_type(self):
        expense = Expense(date="2026-02-14", amount=Decimal("50"), description="rice")
        typed = expense.with_type(ExpenseType.SUPER_MARKET)

        assert typed.type == "Super Market"
        assert expense.type is None

    def test_to_sheets_row(self):
        expense = Expense(
            date="2026-02-14",
            type=ExpenseType.FUEL,
            amount=Decimal("12.5"),
            description="petrol",
            author="spouse",
        )
        assert expense.to_sheets_row() == ["2026-02-14", "Fuel", 12.5, "petrol"]

    def test_uncategorized_row_has_empty_type(self):
        expense = Expense(date="2026-02-14", amount=Decimal("3"))
        assert expense.to_sheets_row()[1] == ""

    def test_summary(self):
        assert Expense(date="2026-02-14", amount=Decimal("50"), description="groceries").summary() == "$50.00 for groceries"
        assert Expense(date="2026-02-14", amount=Decimal("7.5")).summary() == "$7.50"

    def test_format_amount(self):
        assert format_amount(Decimal("50")) == "50.00"
        assert format_amount(Decimal("1234.567")) == "1234.57"


class TestParseResult:
    """Tests for the parse outcome model."""

    def test_fail(self):
        result = ParseResult.fail(ParseErrorKind.INVALID_AMOUNT, "bad")

        assert not result.success
        assert result.expense is None
        assert result.error_kind == ParseErrorKind.INVALID_AMOUNT

    def test_ok(self):
        result = ParseResult.ok(Expense(date="2026-02-14", amount=Decimal("1")))

        assert result.success
        assert result.error_kind is None


class TestRangeValues:
    """Tests for typed range reads."""

    def test_empty(self):
        assert RangeValues(range="'Feb 2026'!A6:D").is_empty
        assert RangeValues(range="x", rows=[["", ""], []]).is_empty

    def test_cells_are_strings(self):
        values = RangeValues(range="x", rows=[[1, None, 2.5]])
        assert values.rows == [["1", "", "2.5"]]

    def test_cell_tolerates_short_rows(self):
        values = RangeValues(range="x", rows=[["2026-02-14", "Fuel"], ["2026-02-15"]])

        assert values.cell(0, 1) == "Fuel"
        assert values.cell(1, 3) == ""
        assert values.cell(5, 0, default="n/a") == "n/a"

    def test_first_row(self):
        assert RangeValues(range="x").first_row == []
        assert RangeValues(range="x", rows=[["Date"]]).first_row == ["Date"]

    def test_structure_result_formatting_flag(self):
        assert StructureResult(sheet_name="Feb 2026").formatting_applied
        assert not StructureResult(sheet_name="Feb 2026", warnings=["x"]).formatting_applied


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TARGET_SET,
            description="Target set",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.expense_logged(
            "Feb 2026", "50.00", "Fuel", 2002, correlation_id="cid1"
        )
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "expense_logged"
        assert log_dict["entity_id"] == "Feb 2026"
        assert log_dict["correlation_id"] == "cid1"
        assert log_dict["details"] == {"amount": "50.00", "type": "Fuel"}

    def test_builder_access_denied(self):
        event = AuditEventBuilder.access_denied(3003, "approve", admin_only=True)

        assert event.event_type == AuditEventType.ACCESS_DENIED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["admin_only"] is True

    def test_builder_backend_error(self):
        event = AuditEventBuilder.backend_error(
            "log_expense", "quota exceeded", error_code="ConnectionError"
        )

        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "ConnectionError"

    def test_builder_sheet_reset_failure_is_error(self):
        event = AuditEventBuilder.sheet_reset("Feb 2026", False, "Failed", 1001)
        assert event.severity == AuditSeverity.ERROR
