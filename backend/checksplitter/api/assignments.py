import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.auth import get_current_user
from checksplitter.core.database import get_db
from checksplitter.models.user import AppUser
from checksplitter.schemas.assignment import (
    WholeItemAssignRequest, SplitItemRequest, VersionedRequest, ChangeRequest,
    ItemAssignmentResponse, UnitUpdateResponse, UnassignResponse,
    FriendAmountsResponse, ChangeResponse,
)
from checksplitter.services.assignment_service import (
    assign_whole_item, split_item, assign_friend_to_unit, unassign_friend,
)
from checksplitter.services.calculation_service import SplitMethod, get_friend_totals, get_change_for_friend

router = APIRouter(prefix="/api/receipts", tags=["assignments"])


@router.post("/{receipt_id}/items/{item_id}/assign", response_model=ItemAssignmentResponse)
async def assign_whole(
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    body: WholeItemAssignRequest,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result, version = await assign_whole_item(db, user, receipt_id, item_id, body.friend_ids, body.version)
    return ItemAssignmentResponse(item_id=result.item_id, units=[asdict(u) for u in result.units], version=version)


@router.post("/{receipt_id}/items/{item_id}/split", response_model=ItemAssignmentResponse)
async def split(
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    body: SplitItemRequest,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    unit_assignments = [(u.quantity, u.friend_ids) for u in body.units]
    result, version = await split_item(db, user, receipt_id, item_id, unit_assignments, body.version)
    return ItemAssignmentResponse(item_id=result.item_id, units=[asdict(u) for u in result.units], version=version)


@router.post("/{receipt_id}/units/{unit_id}/friends/{friend_id}", response_model=UnitUpdateResponse)
async def attach_friend(
    receipt_id: uuid.UUID,
    unit_id: uuid.UUID,
    friend_id: uuid.UUID,
    body: VersionedRequest | None = None,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    version = body.version if body else None
    view, new_version = await assign_friend_to_unit(db, user, receipt_id, unit_id, friend_id, version)
    return UnitUpdateResponse(unit=asdict(view), version=new_version)


@router.delete("/{receipt_id}/units/{unit_id}/friends/{friend_id}", response_model=UnassignResponse)
async def detach_friend(
    receipt_id: uuid.UUID,
    unit_id: uuid.UUID,
    friend_id: uuid.UUID,
    version: int | None = Query(None),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result, new_version = await unassign_friend(db, user, receipt_id, unit_id, friend_id, version)
    return UnassignResponse(**asdict(result), version=new_version)


@router.get("/{receipt_id}/friend-amounts", response_model=FriendAmountsResponse)
async def friend_amounts(
    receipt_id: uuid.UUID,
    strict: bool = False,
    split_method: SplitMethod = SplitMethod.proportional,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    totals = await get_friend_totals(db, user, receipt_id, strict=strict, split_method=split_method)
    data = asdict(totals)
    data["friends"] = list(data["friends"].values())
    return FriendAmountsResponse(**data)


@router.post("/{receipt_id}/friends/{friend_id}/change", response_model=ChangeResponse)
async def calculate_change(
    receipt_id: uuid.UUID,
    friend_id: uuid.UUID,
    body: ChangeRequest,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await get_change_for_friend(db, user, receipt_id, friend_id, body.paid_amount)
    return ChangeResponse(**asdict(result))
