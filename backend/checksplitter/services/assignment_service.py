import logging
import uuid
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.models.user import AppUser
from checksplitter.services import assignment_engine
from checksplitter.services.assignment_engine import UnitAssignmentResult, UnitView, UnassignResult
from checksplitter.services.friend_service import get_roster
from checksplitter.services.receipt_service import load_receipt_graph, bump_version

logger = logging.getLogger(__name__)


async def assign_whole_item(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    friend_ids: Sequence[uuid.UUID],
    expected_version: int | None = None,
) -> tuple[UnitAssignmentResult, int]:
    """
    Give the whole item to friend_ids as one shared unit.
    Uses optimistic locking on receipt version.
    Returns the generated units and the new receipt version.
    """
    receipt = await load_receipt_graph(db, user, receipt_id)
    roster = await get_roster(db, user)

    result = assignment_engine.assign_whole_item(receipt, item_id, friend_ids, roster)
    new_version = await bump_version(db, receipt.id, expected_version)
    await db.commit()

    logger.info(f"Receipt {receipt_id}: item {item_id} assigned whole to {len(result.units[0].friend_ids)} friend(s)")
    return result, new_version


async def split_item(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    unit_assignments: Sequence[tuple[int, Sequence[uuid.UUID]]],
    expected_version: int | None = None,
) -> tuple[UnitAssignmentResult, int]:
    """
    Split the item into units, each (quantity, friend_ids).
    Quantities must add up to the item quantity.
    """
    receipt = await load_receipt_graph(db, user, receipt_id)
    roster = await get_roster(db, user)

    result = assignment_engine.split_item(receipt, item_id, unit_assignments, roster)
    new_version = await bump_version(db, receipt.id, expected_version)
    await db.commit()

    logger.info(f"Receipt {receipt_id}: item {item_id} split into {len(result.units)} unit(s)")
    return result, new_version


async def assign_friend_to_unit(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    unit_id: uuid.UUID,
    friend_id: uuid.UUID,
    expected_version: int | None = None,
) -> tuple[UnitView, int]:
    receipt = await load_receipt_graph(db, user, receipt_id)
    roster = await get_roster(db, user)

    view = assignment_engine.assign_friend_to_unit(receipt, unit_id, friend_id, roster)
    new_version = await bump_version(db, receipt.id, expected_version)
    await db.commit()
    return view, new_version


async def unassign_friend(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    unit_id: uuid.UUID,
    friend_id: uuid.UUID,
    expected_version: int | None = None,
) -> tuple[UnassignResult, int]:
    """Detach a friend from a unit; the unit is deleted if nobody is left on it."""
    receipt = await load_receipt_graph(db, user, receipt_id)

    result = assignment_engine.unassign(receipt, unit_id, friend_id)
    new_version = await bump_version(db, receipt.id, expected_version)
    await db.commit()

    if result.unit_deleted:
        logger.info(f"Receipt {receipt_id}: unit {unit_id} deleted after last friend was removed")
    return result, new_version
