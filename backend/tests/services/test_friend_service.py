from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from checksplitter.core.errors import ValidationError
from checksplitter.services import friend_service

SERVICE = "checksplitter.services.friend_service"


@pytest.mark.asyncio
async def test_create_friend_rejects_duplicate_name(owner, make_friend):
    db = AsyncMock()
    with patch(f"{SERVICE}.find_friend_by_name", AsyncMock(return_value=make_friend("Alice"))):
        with pytest.raises(ValidationError):
            await friend_service.create_friend(db, owner, "alice")
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_friend_rejects_blank_name(owner):
    with pytest.raises(ValidationError):
        await friend_service.create_friend(AsyncMock(), owner, "   ")


@pytest.mark.asyncio
async def test_create_friend_strips_name(owner):
    db = MagicMock(commit=AsyncMock(), refresh=AsyncMock())
    with patch(f"{SERVICE}.find_friend_by_name", AsyncMock(return_value=None)):
        friend = await friend_service.create_friend(db, owner, "  Alice ")
    assert friend.name == "Alice"
    assert friend.user_id == owner.id
    db.add.assert_called_once_with(friend)


@pytest.mark.asyncio
async def test_get_or_create_friend_reuses_existing(owner, make_friend):
    alice = make_friend("Alice")
    db = MagicMock(flush=AsyncMock())
    with patch(f"{SERVICE}.find_friend_by_name", AsyncMock(return_value=alice)):
        assert await friend_service.get_or_create_friend(db, owner, "ALICE") is alice
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_friend_summaries_total_owed(owner, make_friend, make_receipt, roster):
    from decimal import Decimal
    from checksplitter.services.assignment_engine import assign_whole_item

    alice, bob, carol = make_friend("Alice"), make_friend("Bob"), make_friend("Carol")
    lunch = make_receipt([("Pizza", 1, "20.00")], total="20.00")
    assign_whole_item(lunch, lunch.items[0].id, [alice.id, bob.id], roster(alice, bob))
    dinner = make_receipt([("Steak", 1, "30.00")], total="30.00")
    assign_whole_item(dinner, dinner.items[0].id, [alice.id], roster(alice))

    db = AsyncMock()
    db.execute.return_value = MagicMock(scalars=MagicMock(return_value=MagicMock(all=MagicMock(return_value=[lunch, dinner]))))
    with patch(f"{SERVICE}.list_friends", AsyncMock(return_value=[alice, bob, carol])):
        summaries = await friend_service.list_friend_summaries(db, owner)

    by_name = {s["name"]: s for s in summaries}
    assert by_name["Alice"]["receipt_count"] == 2
    assert by_name["Alice"]["total_owed"] == Decimal("40.00")
    assert by_name["Bob"]["total_owed"] == Decimal("10.00")
    assert by_name["Carol"]["receipt_count"] == 0
    assert by_name["Carol"]["total_owed"] == Decimal("0")


@pytest.mark.asyncio
async def test_delete_friend_drops_units_left_empty(owner, make_friend, make_receipt, roster):
    from checksplitter.services.assignment_engine import assign_whole_item

    alice, bob = make_friend("Alice"), make_friend("Bob")
    receipt = make_receipt([("Pizza", 1, "20.00"), ("Soda", 1, "3.00")])
    pizza, soda = receipt.items
    assign_whole_item(receipt, pizza.id, [alice.id], roster(alice, bob))
    assign_whole_item(receipt, soda.id, [alice.id, bob.id], roster(alice, bob))

    db = MagicMock(delete=AsyncMock(), commit=AsyncMock())
    bump = AsyncMock(return_value=2)
    with patch(f"{SERVICE}.get_friend", AsyncMock(return_value=alice)), \
         patch(f"{SERVICE}._receipt_ids_for_friend", AsyncMock(return_value=[receipt.id])), \
         patch("checksplitter.services.receipt_service.load_receipt_graph", AsyncMock(return_value=receipt)), \
         patch("checksplitter.services.receipt_service.bump_version", bump):
        await friend_service.delete_friend(db, owner, alice.id)

    assert pizza.units == []
    assert soda.units[0].friend_ids == [bob.id]
    assert [p.friend_id for p in receipt.participants] == [bob.id]
    bump.assert_awaited_once_with(db, receipt.id, None)
    db.delete.assert_awaited_once_with(alice)
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_own_total_paid_uses_friend_named_after_user(owner, make_friend):
    from decimal import Decimal

    me = make_friend("Owner")
    receipts = [{"amount_owed": Decimal("12.50")}, {"amount_owed": Decimal("7.25")}]
    find = AsyncMock(return_value=me)
    with patch(f"{SERVICE}.find_friend_by_name", find), \
         patch(f"{SERVICE}.get_friend_receipts", AsyncMock(return_value=receipts)):
        result = await friend_service.get_own_total_paid(AsyncMock(), owner)

    assert find.await_args.args[2] == "Owner"
    assert result["friend_id"] == me.id
    assert result["total_paid"] == Decimal("19.75")
    assert result["receipt_count"] == 2


@pytest.mark.asyncio
async def test_own_total_paid_without_own_friend_entry(owner):
    from decimal import Decimal

    owner.display_name = "User"
    with patch(f"{SERVICE}.find_friend_by_name", AsyncMock(return_value=None)) as find:
        result = await friend_service.get_own_total_paid(AsyncMock(), owner)

    assert find.await_args.args[2] == "owner"
    assert result == {"friend_id": None, "name": "owner", "total_paid": Decimal("0"), "receipt_count": 0}
