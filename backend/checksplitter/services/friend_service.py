import logging
import uuid
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.errors import NotFoundError, ValidationError
from checksplitter.models.friend import Friend, FriendReceipt
from checksplitter.models.receipt import Receipt, ItemAssignment, FriendAssignment
from checksplitter.models.user import AppUser
from checksplitter.services import assignment_engine

logger = logging.getLogger(__name__)


async def get_roster(db: AsyncSession, user: AppUser) -> dict[uuid.UUID, Friend]:
    """All of the user's friends keyed by id."""
    result = await db.execute(select(Friend).where(Friend.user_id == user.id))
    return {f.id: f for f in result.scalars().all()}


async def list_friends(db: AsyncSession, user: AppUser) -> list[Friend]:
    result = await db.execute(
        select(Friend).where(Friend.user_id == user.id).order_by(func.lower(Friend.name))
    )
    return list(result.scalars().all())


async def get_friend(db: AsyncSession, user: AppUser, friend_id: uuid.UUID) -> Friend:
    result = await db.execute(
        select(Friend).where(Friend.id == friend_id, Friend.user_id == user.id)
    )
    friend = result.scalar_one_or_none()
    if friend is None:
        raise NotFoundError("Friend not found")
    return friend


async def find_friend_by_name(db: AsyncSession, user: AppUser, name: str) -> Friend | None:
    result = await db.execute(
        select(Friend).where(
            Friend.user_id == user.id,
            func.lower(Friend.name) == name.strip().lower(),
        )
    )
    return result.scalars().first()


async def get_or_create_friend(db: AsyncSession, user: AppUser, name: str) -> Friend:
    """Case-insensitive lookup by name; creates the friend (not committed) when missing."""
    friend = await find_friend_by_name(db, user, name)
    if friend is None:
        friend = Friend(id=uuid.uuid4(), user_id=user.id, name=name.strip())
        db.add(friend)
        await db.flush()
    return friend


async def create_friend(db: AsyncSession, user: AppUser, name: str) -> Friend:
    if not name or not name.strip():
        raise ValidationError("Name is required")
    if await find_friend_by_name(db, user, name):
        raise ValidationError(f"You already have a friend called '{name.strip()}'")
    friend = Friend(user_id=user.id, name=name.strip())
    db.add(friend)
    await db.commit()
    await db.refresh(friend)
    return friend


async def rename_friend(db: AsyncSession, user: AppUser, friend_id: uuid.UUID, name: str) -> Friend:
    friend = await get_friend(db, user, friend_id)
    if name and name.strip():
        friend.name = name.strip()
    await db.commit()
    await db.refresh(friend)
    return friend


async def _receipt_ids_for_friend(db: AsyncSession, friend_id: uuid.UUID) -> list[uuid.UUID]:
    linked = select(FriendReceipt.receipt_id).where(FriendReceipt.friend_id == friend_id)
    assigned = (
        select(ItemAssignment.receipt_id)
        .join(FriendAssignment, FriendAssignment.item_assignment_id == ItemAssignment.id)
        .where(FriendAssignment.friend_id == friend_id)
    )
    result = await db.execute(linked.union(assigned))
    return list(result.scalars().all())


async def delete_friend(db: AsyncSession, user: AppUser, friend_id: uuid.UUID) -> None:
    """
    Delete a friend. The friend is taken off every receipt first so units it
    was the only one sharing are deleted rather than left without friends.
    """
    from checksplitter.services.receipt_service import load_receipt_graph, bump_version

    friend = await get_friend(db, user, friend_id)
    for receipt_id in await _receipt_ids_for_friend(db, friend.id):
        receipt = await load_receipt_graph(db, user, receipt_id)
        assignment_engine.remove_participant(receipt, friend.id)
        await bump_version(db, receipt.id, None)

    await db.delete(friend)
    await db.commit()
    logger.info(f"Deleted friend {friend_id}")


async def get_friend_receipts(db: AsyncSession, user: AppUser, friend_id: uuid.UUID) -> list[dict]:
    """Receipts the friend takes part in, with the amount they owe on each."""
    from checksplitter.services.calculation_service import compute_friend_totals

    friend = await get_friend(db, user, friend_id)
    receipt_ids = await _receipt_ids_for_friend(db, friend.id)
    if not receipt_ids:
        return []

    result = await db.execute(
        select(Receipt)
        .where(Receipt.id.in_(receipt_ids), Receipt.user_id == user.id)
        .order_by(Receipt.created_at.desc())
    )
    summaries = []
    for receipt in result.scalars().all():
        totals = compute_friend_totals(receipt)
        breakdown = totals.friends.get(friend.id)
        summaries.append({
            "id": receipt.id,
            "name": receipt.name,
            "total": receipt.total,
            "created_at": receipt.created_at,
            "amount_owed": breakdown.total if breakdown else Decimal("0"),
        })
    return summaries


async def list_friend_summaries(db: AsyncSession, user: AppUser) -> list[dict]:
    """Every friend with the number of receipts they are on and their total owed."""
    from checksplitter.services.calculation_service import compute_friend_totals

    friends = await list_friends(db, user)
    result = await db.execute(select(Receipt).where(Receipt.user_id == user.id))

    receipt_counts: dict[uuid.UUID, int] = defaultdict(int)
    owed: dict[uuid.UUID, Decimal] = defaultdict(lambda: Decimal("0"))
    for receipt in result.scalars().all():
        totals = compute_friend_totals(receipt)
        for fid in {p.friend_id for p in receipt.participants} | set(totals.friends):
            receipt_counts[fid] += 1
            if fid in totals.friends:
                owed[fid] += totals.friends[fid].total

    return [
        {
            "id": f.id,
            "name": f.name,
            "created_at": f.created_at,
            "receipt_count": receipt_counts[f.id],
            "total_owed": owed[f.id],
        }
        for f in friends
    ]


def own_friend_name(user: AppUser) -> str:
    """Name the user goes by in their own friend list: display name, else email local part."""
    if user.display_name and user.display_name != "User":
        return user.display_name.split("@")[0]
    return user.email.split("@")[0]


async def get_own_total_paid(db: AsyncSession, user: AppUser) -> dict:
    """
    What the signed-in user paid across their receipts, through the friend
    entry that carries their own name. Zero when they never added themselves.
    """
    name = own_friend_name(user)
    friend = await find_friend_by_name(db, user, name)
    if friend is None:
        return {"friend_id": None, "name": name, "total_paid": Decimal("0"), "receipt_count": 0}

    receipts = await get_friend_receipts(db, user, friend.id)
    return {
        "friend_id": friend.id,
        "name": friend.name,
        "total_paid": sum((r["amount_owed"] for r in receipts), Decimal("0")),
        "receipt_count": len(receipts),
    }
