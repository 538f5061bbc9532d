import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.auth import get_current_user
from checksplitter.core.database import get_db
from checksplitter.models.user import AppUser
from checksplitter.schemas.friend import (
    FriendCreate, FriendUpdate, FriendResponse, FriendDetailResponse, FriendSummaryResponse, OwnTotalResponse,
)
from checksplitter.services.friend_service import (
    list_friend_summaries, create_friend, get_friend, rename_friend, delete_friend, get_friend_receipts,
    get_own_total_paid,
)
from checksplitter.utils.currency_utils import round_money

router = APIRouter(prefix="/api/friends", tags=["friends"])


@router.get("", response_model=list[FriendSummaryResponse])
async def list_user_friends(
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_friend_summaries(db, user)


@router.post("", response_model=FriendResponse, status_code=201)
async def create(
    body: FriendCreate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_friend(db, user, body.name)


@router.get("/me/total-paid", response_model=OwnTotalResponse)
async def own_total_paid(
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Total the signed-in user paid across receipts, via their own friend entry."""
    return await get_own_total_paid(db, user)


@router.get("/{friend_id}", response_model=FriendDetailResponse)
async def get(
    friend_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    friend = await get_friend(db, user, friend_id)
    receipts = await get_friend_receipts(db, user, friend_id)
    return FriendDetailResponse(
        id=friend.id,
        name=friend.name,
        created_at=friend.created_at,
        receipts=receipts,
        total_owed=round_money(sum((r["amount_owed"] for r in receipts), start=round_money(0))),
    )


@router.put("/{friend_id}", response_model=FriendResponse)
async def rename(
    friend_id: uuid.UUID,
    body: FriendUpdate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rename_friend(db, user, friend_id, body.name)


@router.delete("/{friend_id}", status_code=204)
async def delete(
    friend_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_friend(db, user, friend_id)
