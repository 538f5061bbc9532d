import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from checksplitter.core.errors import ConsistencyError, NotFoundError
from checksplitter.models.receipt import TaxType
from checksplitter.services.assignment_engine import assign_whole_item, split_item
from checksplitter.services.calculation_service import (
    SplitMethod, compute_friend_totals, calculate_change, get_friend_totals, get_change_for_friend,
)


@pytest.fixture
def alice(make_friend):
    return make_friend("Alice")


@pytest.fixture
def bob(make_friend):
    return make_friend("Bob")


def codes(totals):
    return [w.code for w in totals.warnings]


def test_pizza_shared_by_two(make_receipt, roster, alice, bob):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="20.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id, bob.id], roster(alice, bob))

    totals = compute_friend_totals(receipt)

    assert totals.friends[alice.id].total == Decimal("10.00")
    assert totals.friends[bob.id].total == Decimal("10.00")
    assert totals.friends[alice.id].name == "Alice"
    assert totals.warnings == []


def test_soda_split_across_units(make_receipt, roster, alice, bob):
    receipt = make_receipt([("Soda", 3, "3.00")], total="3.00")
    split_item(
        receipt, receipt.items[0].id,
        [(1, [alice.id]), (1, [bob.id]), (1, [alice.id, bob.id])],
        roster(alice, bob),
    )

    totals = compute_friend_totals(receipt)

    assert totals.friends[alice.id].subtotal == Decimal("1.50")
    assert totals.friends[bob.id].subtotal == Decimal("1.50")
    assert totals.friends_total == Decimal("3.00")


def test_tax_and_tips_proportional(make_receipt, roster, alice, bob):
    """100 subtotal, 10 tax, 5 tips: two friends with 50 each owe 57.50."""
    receipt = make_receipt(
        [("Steak", 1, "50.00"), ("Salmon", 1, "50.00")], tax="10", tips="5", total="115.00",
    )
    steak, salmon = receipt.items
    assign_whole_item(receipt, steak.id, [alice.id], roster(alice, bob))
    assign_whole_item(receipt, salmon.id, [bob.id], roster(alice, bob))

    totals = compute_friend_totals(receipt)

    for fid in (alice.id, bob.id):
        owed = totals.friends[fid]
        assert owed.subtotal == Decimal("50.00")
        assert owed.tax == Decimal("5.00")
        assert owed.tip == Decimal("2.50")
        assert owed.total == Decimal("57.50")
    assert totals.friends_total == Decimal("115.00")
    assert totals.expected_total == Decimal("115.00")
    assert totals.warnings == []


def test_compute_is_idempotent(make_receipt, roster, alice, bob):
    receipt = make_receipt([("Nachos", 1, "10.00")], tax="1.00", total="11.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id, bob.id], roster(alice, bob))
    assert compute_friend_totals(receipt) == compute_friend_totals(receipt)


def test_percentage_tax_applies_to_assigned_subtotal(make_receipt, roster, alice, bob):
    receipt = make_receipt(
        [("Burger", 1, "40.00"), ("Ribs", 1, "60.00")],
        tax="10", tax_type=TaxType.percentage, total="110.00",
    )
    burger, ribs = receipt.items
    assign_whole_item(receipt, burger.id, [alice.id], roster(alice, bob))
    assign_whole_item(receipt, ribs.id, [bob.id], roster(alice, bob))

    totals = compute_friend_totals(receipt)

    assert totals.tax_amount == Decimal("10.00")
    assert totals.friends[alice.id].total == Decimal("44.00")
    assert totals.friends[bob.id].total == Decimal("66.00")


def test_tips_included_in_total_are_not_charged(make_receipt, roster, alice):
    receipt = make_receipt([("Pasta", 1, "20.00")], tips="3", total="23.00", tips_included_in_total=True)
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    totals = compute_friend_totals(receipt)

    assert totals.tip_amount == Decimal("0.00")
    assert totals.friends[alice.id].total == Decimal("20.00")
    assert "total_mismatch" not in codes(totals)
    assert totals.expected_total == Decimal("23.00")


def test_tips_included_counted_in_expected_total(make_receipt, roster, alice):
    """Steak 100, tax 10, tips 5 already in the 115 total."""
    receipt = make_receipt([("Steak", 1, "100.00")], tax="10", tips="5", total="115.00", tips_included_in_total=True)
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    totals = compute_friend_totals(receipt)

    assert totals.expected_total == Decimal("115.00")
    assert totals.friends[alice.id].total == Decimal("110.00")
    assert codes(totals) == []


def test_equal_split_method(make_receipt, roster, alice, bob):
    receipt = make_receipt([("Lobster", 1, "80.00"), ("Salad", 1, "20.00")], tax="10", total="110.00")
    lobster, salad = receipt.items
    assign_whole_item(receipt, lobster.id, [alice.id], roster(alice, bob))
    assign_whole_item(receipt, salad.id, [bob.id], roster(alice, bob))

    totals = compute_friend_totals(receipt, split_method=SplitMethod.equal)

    assert totals.friends[alice.id].tax == Decimal("5.00")
    assert totals.friends[bob.id].tax == Decimal("5.00")
    assert totals.friends[alice.id].total == Decimal("85.00")
    assert totals.friends[bob.id].total == Decimal("25.00")


def test_unassigned_items_are_reported_not_charged(make_receipt, roster, alice):
    receipt = make_receipt([("Pizza", 1, "50.00"), ("Dessert", 1, "50.00")], tax="10", total="110.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    totals = compute_friend_totals(receipt)

    assert totals.assigned_subtotal == Decimal("50.00")
    assert totals.unassigned_cost == Decimal("50.00")
    assert totals.friends[alice.id].total == Decimal("60.00")
    assert codes(totals) == ["unassigned"]


def test_unit_without_friends_warns(make_receipt, roster, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="20.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))
    receipt.items[0].units[0].friend_assignments.clear()

    totals = compute_friend_totals(receipt)

    assert totals.friends == {}
    assert totals.unassigned_cost == Decimal("20.00")
    assert "empty_unit" in codes(totals)


def test_rounding_leftover_goes_to_last_friend(make_receipt, make_friend, roster):
    friends = [make_friend(name) for name in ("Ann", "Ben", "Cat")]
    receipt = make_receipt([("Cake", 1, "10.00")], total="10.00")
    assign_whole_item(receipt, receipt.items[0].id, [f.id for f in friends], roster(*friends))

    totals = compute_friend_totals(receipt)

    last = sorted((f.id for f in friends), key=str)[-1]
    assert totals.friends[last].total == Decimal("3.34")
    assert totals.friends_total == Decimal("10.00")
    assert totals.rounding_adjustment == Decimal("0.01")
    assert codes(totals) == ["rounding"]


def test_rounding_leftover_kept_without_reconcile(make_receipt, make_friend, roster):
    friends = [make_friend(name) for name in ("Ann", "Ben", "Cat")]
    receipt = make_receipt([("Cake", 1, "10.00")], total="10.00")
    assign_whole_item(receipt, receipt.items[0].id, [f.id for f in friends], roster(*friends))

    totals = compute_friend_totals(receipt, reconcile=False)

    assert totals.friends_total == Decimal("9.99")
    assert totals.rounding_adjustment == Decimal("0")
    assert "rounding" in codes(totals)


def test_total_mismatch_warning(make_receipt, roster, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="25.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    totals = compute_friend_totals(receipt)

    mismatch = next(w for w in totals.warnings if w.code == "total_mismatch")
    assert mismatch.amount == Decimal("5.00")


def test_total_within_tolerance(make_receipt, roster, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="20.01")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))
    assert "total_mismatch" not in codes(compute_friend_totals(receipt))


def test_empty_receipt(make_receipt):
    totals = compute_friend_totals(make_receipt([]))
    assert totals.friends == {}
    assert totals.friends_total == Decimal("0")
    assert totals.warnings == []


# --- change ---

def test_change_when_overpaid():
    result = calculate_change(Decimal("57.50"), Decimal("60.00"))
    assert result.change == Decimal("2.50")
    assert result.insufficient is False
    assert result.shortage == Decimal("0")


def test_change_when_underpaid():
    result = calculate_change(Decimal("57.50"), Decimal("50.00"))
    assert result.insufficient is True
    assert result.shortage == Decimal("7.50")


def test_exact_payment():
    result = calculate_change(Decimal("10.00"), Decimal("10.00"))
    assert result.change == Decimal("0.00")
    assert result.insufficient is False


# --- loaded receipts ---

@pytest.mark.asyncio
async def test_strict_mode_raises_on_mismatch(make_receipt, roster, owner, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="30.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    with patch("checksplitter.services.receipt_service.load_receipt_graph", AsyncMock(return_value=receipt)):
        lenient = await get_friend_totals(AsyncMock(), owner, receipt.id)
        with pytest.raises(ConsistencyError) as exc_info:
            await get_friend_totals(AsyncMock(), owner, receipt.id, strict=True)

    assert "total_mismatch" in codes(lenient)
    assert exc_info.value.status_code == 422
    assert [w.code for w in exc_info.value.warnings] == ["total_mismatch"]


@pytest.mark.asyncio
async def test_strict_mode_passes_consistent_receipt(make_receipt, roster, owner, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="20.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    with patch("checksplitter.services.receipt_service.load_receipt_graph", AsyncMock(return_value=receipt)):
        totals = await get_friend_totals(AsyncMock(), owner, receipt.id, strict=True)

    assert totals.friends[alice.id].total == Decimal("20.00")


@pytest.mark.asyncio
async def test_change_for_friend(make_receipt, roster, owner, alice):
    receipt = make_receipt([("Pizza", 1, "20.00")], total="20.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id], roster(alice))

    with patch("checksplitter.services.receipt_service.load_receipt_graph", AsyncMock(return_value=receipt)):
        result = await get_change_for_friend(AsyncMock(), owner, receipt.id, alice.id, Decimal("50"))
        with pytest.raises(NotFoundError):
            await get_change_for_friend(AsyncMock(), owner, receipt.id, uuid.uuid4(), Decimal("50"))

    assert result.change == Decimal("30.00")


def test_free_item_splits_tax_and_tips_equally(make_receipt, roster, alice, bob):
    receipt = make_receipt([("Water", 1, "0.00")], tax="10", tips="5", total="15.00")
    assign_whole_item(receipt, receipt.items[0].id, [alice.id, bob.id], roster(alice, bob))

    totals = compute_friend_totals(receipt)

    assert totals.friends[alice.id].total == totals.friends[bob.id].total == Decimal("7.50")
    assert totals.friends[alice.id].tax == Decimal("5.00")
    assert totals.friends[bob.id].tip == Decimal("2.50")
    assert totals.rounding_adjustment == Decimal("0")
    assert codes(totals) == []


def test_breakdown_parts_add_up_to_total(make_receipt, make_friend, roster):
    friends = [make_friend(name) for name in ("Ann", "Ben", "Cat")]
    receipt = make_receipt([("Cake", 1, "10.00")], tax="1.00", tips="1.00", total="12.00")
    assign_whole_item(receipt, receipt.items[0].id, [f.id for f in friends], roster(*friends))

    totals = compute_friend_totals(receipt)

    for owed in totals.friends.values():
        assert owed.subtotal + owed.tax + owed.tip == owed.total
    assert totals.friends_total == Decimal("12.00")
