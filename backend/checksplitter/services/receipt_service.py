import logging
import uuid
from decimal import Decimal

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.errors import NotFoundError, VersionConflictError
from checksplitter.models.friend import Friend, FriendReceipt
from checksplitter.models.receipt import Receipt, Item, TaxType
from checksplitter.models.user import AppUser
from checksplitter.services import assignment_engine

logger = logging.getLogger(__name__)

RECEIPT_FIELDS = ("name", "tax", "tax_type", "tips", "total", "tips_included_in_total")


async def load_receipt_graph(db: AsyncSession, user: AppUser, receipt_id: uuid.UUID) -> Receipt:
    """
    Load a receipt owned by user with items -> units -> friend assignments and
    participants eagerly loaded (the relationships are lazy="selectin").
    """
    result = await db.execute(
        select(Receipt)
        .where(Receipt.id == receipt_id, Receipt.user_id == user.id)
        .execution_options(populate_existing=True)
    )
    receipt = result.scalar_one_or_none()
    if receipt is None:
        raise NotFoundError(f"Receipt with ID {receipt_id} not found")
    return receipt


async def bump_version(db: AsyncSession, receipt_id: uuid.UUID, expected_version: int | None) -> int:
    """
    Increment the receipt version, optionally only if it still equals
    expected_version. Raises VersionConflictError otherwise.
    """
    stmt = update(Receipt).where(Receipt.id == receipt_id)
    if expected_version is not None:
        stmt = stmt.where(Receipt.version == expected_version)
    stmt = stmt.values(version=Receipt.version + 1).returning(Receipt.version)

    result = await db.execute(stmt)
    new_version = result.scalar_one_or_none()
    if new_version is None:
        raise VersionConflictError()
    return new_version


async def create_receipt(db: AsyncSession, user: AppUser, data: dict, items: list[dict] | None = None) -> Receipt:
    receipt = Receipt(
        user_id=user.id,
        name=data.get("name"),
        tax=data.get("tax") or Decimal("0"),
        tax_type=data.get("tax_type") or TaxType.amount,
        tips=data.get("tips") or Decimal("0"),
        total=data.get("total") or Decimal("0"),
        tips_included_in_total=bool(data.get("tips_included_in_total")),
    )
    db.add(receipt)
    await db.flush()

    for position, item in enumerate(items or []):
        db.add(Item(
            receipt_id=receipt.id,
            name=item["name"],
            quantity=item.get("quantity") or 1,
            price=Decimal(str(item["price"])),
            position=position,
        ))

    await db.commit()
    logger.info(f"Created receipt {receipt.id} for user {user.id}")
    return await load_receipt_graph(db, user, receipt.id)


async def list_receipts(
    db: AsyncSession,
    user: AppUser,
    page: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
) -> tuple[list[Receipt], int]:
    """
    List the user's receipts, newest first. Without page/page_size everything
    is returned; with them the result is paged and optionally filtered by a
    case-insensitive match on receipt, item or participant name.
    Returns (receipts, total_count).
    """
    query = select(Receipt).where(Receipt.user_id == user.id)

    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        item_match = select(Item.id).where(Item.receipt_id == Receipt.id, func.lower(Item.name).like(pattern))
        friend_match = (
            select(FriendReceipt.id)
            .join(Friend, Friend.id == FriendReceipt.friend_id)
            .where(FriendReceipt.receipt_id == Receipt.id, func.lower(Friend.name).like(pattern))
        )
        query = query.where(or_(
            func.lower(Receipt.name).like(pattern),
            item_match.exists(),
            friend_match.exists(),
        ))

    if not (page and page_size and page > 0 and page_size > 0):
        result = await db.execute(query.order_by(Receipt.created_at.desc()))
        receipts = list(result.scalars().all())
        return receipts, len(receipts)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total_count = count_result.scalar_one()

    result = await db.execute(
        query.order_by(Receipt.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total_count


async def update_receipt(
    db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, data: dict, expected_version: int | None
) -> Receipt:
    receipt = await load_receipt_graph(db, user, receipt_id)
    await bump_version(db, receipt.id, expected_version)
    for key in RECEIPT_FIELDS:
        if key in data and data[key] is not None:
            setattr(receipt, key, data[key])
    await db.commit()
    return await load_receipt_graph(db, user, receipt_id)


async def delete_receipt(db: AsyncSession, user: AppUser, receipt_id: uuid.UUID) -> None:
    # Units, friend assignments and participants go with it via ON DELETE CASCADE.
    result = await db.execute(
        delete(Receipt).where(Receipt.id == receipt_id, Receipt.user_id == user.id)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Receipt with ID {receipt_id} not found")
    await db.commit()
    logger.info(f"Deleted receipt {receipt_id}")


async def add_items(db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, items: list[dict]) -> list[Item]:
    receipt = await load_receipt_graph(db, user, receipt_id)

    next_position = max((i.position for i in receipt.items), default=-1) + 1
    created = []
    for offset, data in enumerate(items):
        item = Item(
            id=uuid.uuid4(),
            receipt_id=receipt.id,
            name=data["name"],
            quantity=data.get("quantity") or 1,
            price=Decimal(str(data["price"])),
            position=next_position + offset,
        )
        receipt.items.append(item)
        created.append(item)

    await bump_version(db, receipt.id, None)
    await db.commit()
    return created


async def update_item(
    db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, item_id: uuid.UUID, data: dict
) -> Item:
    """Edit an item. Changing quantity or price drops its units, which were priced off the old values."""
    receipt = await load_receipt_graph(db, user, receipt_id)
    item = receipt.find_item(item_id)
    if item is None:
        raise NotFoundError(f"Item with ID {item_id} not found in receipt {receipt_id}")

    repriced = False
    if data.get("name"):
        item.name = data["name"]
    if data.get("quantity") is not None and data["quantity"] != item.quantity:
        item.quantity = data["quantity"]
        repriced = True
    if data.get("price") is not None and Decimal(str(data["price"])) != item.price:
        item.price = Decimal(str(data["price"]))
        repriced = True
    if repriced and item.units:
        logger.info(f"Item {item.id} repriced, clearing {len(item.units)} unit(s)")
        item.units.clear()

    await bump_version(db, receipt.id, data.get("version"))
    await db.commit()
    return item


async def delete_item(db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, item_id: uuid.UUID) -> Item:
    receipt = await load_receipt_graph(db, user, receipt_id)
    item = receipt.find_item(item_id)
    if item is None:
        raise NotFoundError(f"Item with ID {item_id} not found in receipt {receipt_id}")

    receipt.items.remove(item)
    await bump_version(db, receipt.id, None)
    await db.commit()
    return item


async def add_participants(
    db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, friend_names: list[str]
) -> Receipt:
    """Add friends to a receipt by name, creating friends the user doesn't have yet."""
    from checksplitter.services.friend_service import get_or_create_friend

    receipt = await load_receipt_graph(db, user, receipt_id)
    present = {p.friend_id for p in receipt.participants}

    for name in friend_names:
        if not name or not name.strip():
            continue
        friend = await get_or_create_friend(db, user, name)
        if friend.id in present:
            continue
        receipt.participants.append(
            FriendReceipt(id=uuid.uuid4(), friend_id=friend.id, receipt_id=receipt.id, friend=friend)
        )
        present.add(friend.id)

    await bump_version(db, receipt.id, None)
    await db.commit()
    return await load_receipt_graph(db, user, receipt_id)


async def remove_participant(
    db: AsyncSession, user: AppUser, receipt_id: uuid.UUID, friend_id: uuid.UUID
) -> Receipt:
    receipt = await load_receipt_graph(db, user, receipt_id)
    removed = assignment_engine.remove_participant(receipt, friend_id)
    await bump_version(db, receipt.id, None)
    await db.commit()
    logger.info(f"Removed friend {friend_id} from receipt {receipt_id} ({removed} unit assignment(s))")
    return await load_receipt_graph(db, user, receipt_id)
