import math
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.auth import get_current_user
from checksplitter.core.database import get_db
from checksplitter.models.user import AppUser
from checksplitter.schemas.receipt import (
    ReceiptCreate, ReceiptUpdate, ReceiptResponse, ReceiptListResponse, PaginatedReceipts,
    ItemsCreate, ItemUpdate, ItemResponse, ParticipantsAdd, FriendRef,
    receipt_response, receipt_list_response, item_response,
)
from checksplitter.services.receipt_service import (
    create_receipt, list_receipts, load_receipt_graph, update_receipt, delete_receipt,
    add_items, update_item, delete_item, add_participants, remove_participant,
)

router = APIRouter(prefix="/api/receipts", tags=["receipts"])


@router.get("", response_model=list[ReceiptListResponse] | PaginatedReceipts)
async def list_user_receipts(
    page: int | None = Query(None, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    search: str | None = None,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    receipts, total_count = await list_receipts(db, user, page, page_size, search)
    items = [receipt_list_response(r) for r in receipts]
    if not (page and page_size):
        return items

    total_pages = math.ceil(total_count / page_size)
    return PaginatedReceipts(
        items=items,
        total_count=total_count,
        total_pages=total_pages,
        current_page=page,
        page_size=page_size,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


@router.post("", response_model=ReceiptResponse, status_code=201)
async def create(
    body: ReceiptCreate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    receipt = await create_receipt(
        db, user,
        body.model_dump(exclude={"items"}),
        [item.model_dump() for item in body.items],
    )
    return receipt_response(receipt)


@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt_detail(
    receipt_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return receipt_response(await load_receipt_graph(db, user, receipt_id))


@router.put("/{receipt_id}", response_model=ReceiptResponse)
async def edit_receipt(
    receipt_id: uuid.UUID,
    body: ReceiptUpdate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump(exclude={"version"}, exclude_unset=True)
    receipt = await update_receipt(db, user, receipt_id, data, body.version)
    return receipt_response(receipt)


@router.delete("/{receipt_id}", status_code=204)
async def remove_receipt(
    receipt_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_receipt(db, user, receipt_id)


@router.post("/{receipt_id}/items", response_model=list[ItemResponse], status_code=201)
async def create_items(
    receipt_id: uuid.UUID,
    body: ItemsCreate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await add_items(db, user, receipt_id, [i.model_dump() for i in body.items])
    return [item_response(i) for i in items]


@router.put("/{receipt_id}/items/{item_id}", response_model=ItemResponse)
async def edit_item(
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    body: ItemUpdate,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await update_item(db, user, receipt_id, item_id, body.model_dump(exclude_unset=True))
    return item_response(item)


@router.delete("/{receipt_id}/items/{item_id}")
async def remove_item(
    receipt_id: uuid.UUID,
    item_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await delete_item(db, user, receipt_id, item_id)
    return {"message": f"Item '{item.name}' successfully deleted from receipt"}


@router.get("/{receipt_id}/friends", response_model=list[FriendRef])
async def get_receipt_friends(
    receipt_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    receipt = await load_receipt_graph(db, user, receipt_id)
    return [FriendRef.model_validate(p.friend) for p in receipt.participants if p.friend]


@router.post("/{receipt_id}/friends", response_model=ReceiptResponse)
async def add_receipt_friends(
    receipt_id: uuid.UUID,
    body: ParticipantsAdd,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    receipt = await add_participants(db, user, receipt_id, body.friend_names)
    return receipt_response(receipt)


@router.delete("/{receipt_id}/friends/{friend_id}", response_model=ReceiptResponse)
async def remove_receipt_friend(
    receipt_id: uuid.UUID,
    friend_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    receipt = await remove_participant(db, user, receipt_id, friend_id)
    return receipt_response(receipt)
