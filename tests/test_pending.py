"""
Tests for pending category selections and callback payloads.
"""

from decimal import Decimal

import pytest

from expense_tracker.models.expense import Expense, ExpenseType
from expense_tracker.pending import (
    PendingSelectionArena,
    decode_callback_data,
    encode_callback_data,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def arena(clock):
    return PendingSelectionArena(ttl_seconds=60, clock=clock)


def groceries():
    return Expense(
        date="2026-02-14",
        amount=Decimal("50"),
        description="groceries",
        author="spouse",
    )


class TestPendingSelectionArena:
    """Tests for the TTL map of waiting expenses."""

    def test_put_and_take(self, arena):
        arena.put("cid1", groceries())

        entry = arena.take("cid1")

        assert entry.amount == Decimal("50")
        assert entry.author == "spouse"
        assert arena.take("cid1") is None
        assert len(arena) == 0

    def test_peek_does_not_remove(self, arena):
        arena.put("cid1", groceries())

        assert arena.peek("cid1") is not None
        assert "cid1" in arena

    def test_entry_expires(self, arena, clock):
        arena.put("cid1", groceries())

        clock.now = 60

        assert arena.take("cid1") is None

    def test_entry_alive_before_ttl(self, arena, clock):
        arena.put("cid1", groceries())

        clock.now = 59.9

        assert arena.take("cid1") is not None

    def test_sweep_counts_dropped(self, arena, clock):
        arena.put("cid1", groceries())
        clock.now = 30
        arena.put("cid2", groceries())

        assert arena.sweep(now=70) == 1
        assert "cid2" in arena

    def test_restore_keeps_original_age(self, arena, clock):
        arena.put("cid1", groceries())
        clock.now = 40
        entry = arena.take("cid1")

        arena.restore("cid1", entry)

        assert arena.peek("cid1") is not None
        clock.now = 61
        assert arena.peek("cid1") is None

    def test_to_expense_sets_type(self, arena):
        entry = arena.put("cid1", groceries())

        expense = entry.to_expense(ExpenseType.SUPER_MARKET)

        assert expense.type == "Super Market"
        assert expense.description == "groceries"
        assert expense.date == "2026-02-14"

    def test_to_expense_none_sentinel(self, arena):
        entry = arena.put("cid1", groceries())

        assert entry.to_expense(ExpenseType.NONE).type is None


class TestCallbackData:
    """Tests for category button payloads."""

    def test_encode(self):
        assert encode_callback_data("cid1", ExpenseType.CAR_REPAIR) == "exp_type_cid1_Car Repair"

    def test_decode(self):
        assert decode_callback_data("exp_type_cid1_Car Repair") == ("cid1", "Car Repair")

    def test_type_is_after_last_underscore(self):
        """Correlation ids may themselves contain underscores."""
        assert decode_callback_data("exp_type_a_b_c_Fuel") == ("a_b_c", "Fuel")

    @pytest.mark.parametrize("data", [
        None,
        "",
        "setup_cancel",
        "exp_type_",
        "exp_type_nounderscore",
        "exp_type_cid1_",
    ])
    def test_decode_rejects(self, data):
        assert decode_callback_data(data) is None

    def test_every_type_round_trips(self):
        for expense_type in ExpenseType:
            data = encode_callback_data("cid9", expense_type)
            assert decode_callback_data(data) == ("cid9", expense_type.value)
            assert len(data.encode("utf-8")) <= 64
