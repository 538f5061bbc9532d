import uuid
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field


class FriendCreate(BaseModel):
    name: str = Field(min_length=1)


class FriendUpdate(BaseModel):
    name: str = Field(min_length=1)


class FriendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str
    created_at: datetime


class FriendReceiptSummary(BaseModel):
    id: uuid.UUID
    name: str | None
    total: Decimal
    created_at: datetime
    amount_owed: Decimal


class FriendDetailResponse(FriendResponse):
    receipts: list[FriendReceiptSummary] = []
    total_owed: Decimal = Decimal("0")


class FriendSummaryResponse(FriendResponse):
    receipt_count: int = 0
    total_owed: Decimal = Decimal("0")


class OwnTotalResponse(BaseModel):
    friend_id: uuid.UUID | None
    name: str
    total_paid: Decimal
    receipt_count: int
