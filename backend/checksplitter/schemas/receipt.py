import uuid
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from checksplitter.models.receipt import TaxType


class ItemCreate(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(ge=0, decimal_places=2)  # line total


class ItemUpdate(BaseModel):
    name: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    version: int | None = None


class ItemsCreate(BaseModel):
    items: list[ItemCreate] = Field(min_length=1)


class ReceiptCreate(BaseModel):
    name: str | None = None
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    tax_type: TaxType = TaxType.amount
    tips: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    tips_included_in_total: bool = False
    items: list[ItemCreate] = []


class ReceiptUpdate(BaseModel):
    name: str | None = None
    tax: Decimal | None = Field(default=None, ge=0)
    tax_type: TaxType | None = None
    tips: Decimal | None = Field(default=None, ge=0)
    total: Decimal | None = Field(default=None, ge=0)
    tips_included_in_total: bool | None = None
    version: int | None = None  # optimistic locking


class FriendRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str


class UnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    unit_label: str
    quantity: int
    price: Decimal
    assigned_friends: list[FriendRef] = []


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str
    quantity: int
    price: Decimal
    unit_price: Decimal
    position: int
    units: list[UnitResponse] = []


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str | None
    tax: Decimal
    tax_type: TaxType
    tips: Decimal
    total: Decimal
    tips_included_in_total: bool
    version: int
    created_at: datetime
    friends: list[FriendRef] = []
    items: list[ItemResponse] = []


class ReceiptListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str | None
    total: Decimal
    created_at: datetime
    friends: list[FriendRef] = []


class PaginatedReceipts(BaseModel):
    items: list[ReceiptListResponse]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    has_next_page: bool
    has_previous_page: bool


class ParticipantsAdd(BaseModel):
    friend_names: list[str] = Field(min_length=1)


def unit_response(unit) -> UnitResponse:
    return UnitResponse(
        id=unit.id,
        unit_label=unit.unit_label,
        quantity=unit.quantity,
        price=unit.price,
        assigned_friends=[FriendRef.model_validate(fa.friend) for fa in unit.friend_assignments if fa.friend],
    )


def item_response(item) -> ItemResponse:
    return ItemResponse(
        id=item.id,
        name=item.name,
        quantity=item.quantity,
        price=item.price,
        unit_price=item.unit_price,
        position=item.position,
        units=[unit_response(u) for u in item.units],
    )


def receipt_response(receipt) -> ReceiptResponse:
    """Flatten the ORM graph; participants become `friends`, units carry their friends."""
    return ReceiptResponse(
        id=receipt.id,
        name=receipt.name,
        tax=receipt.tax,
        tax_type=receipt.tax_type,
        tips=receipt.tips,
        total=receipt.total,
        tips_included_in_total=receipt.tips_included_in_total,
        version=receipt.version,
        created_at=receipt.created_at,
        friends=[FriendRef.model_validate(p.friend) for p in receipt.participants if p.friend],
        items=[item_response(i) for i in receipt.items],
    )


def receipt_list_response(receipt) -> ReceiptListResponse:
    return ReceiptListResponse(
        id=receipt.id,
        name=receipt.name,
        total=receipt.total,
        created_at=receipt.created_at,
        friends=[FriendRef.model_validate(p.friend) for p in receipt.participants if p.friend],
    )
