import uuid
from decimal import Decimal
from pydantic import BaseModel, Field


class WholeItemAssignRequest(BaseModel):
    friend_ids: list[uuid.UUID]
    version: int | None = None  # receipt version for optimistic locking


class UnitSplit(BaseModel):
    quantity: int
    friend_ids: list[uuid.UUID]


class SplitItemRequest(BaseModel):
    units: list[UnitSplit]
    version: int | None = None


class VersionedRequest(BaseModel):
    version: int | None = None


class UnitAssignmentResponse(BaseModel):
    id: uuid.UUID
    unit_label: str
    quantity: int
    price: Decimal
    friend_ids: list[uuid.UUID]
    shares: dict[uuid.UUID, Decimal] = {}


class ItemAssignmentResponse(BaseModel):
    item_id: uuid.UUID
    units: list[UnitAssignmentResponse]
    version: int


class UnitUpdateResponse(BaseModel):
    unit: UnitAssignmentResponse
    version: int


class UnassignResponse(BaseModel):
    unit_id: uuid.UUID
    unit_deleted: bool
    remaining_friend_ids: list[uuid.UUID]
    version: int


class OwedBreakdownResponse(BaseModel):
    friend_id: uuid.UUID
    name: str
    subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal


class WarningResponse(BaseModel):
    code: str
    message: str
    amount: Decimal = Decimal("0")


class FriendAmountsResponse(BaseModel):
    receipt_id: uuid.UUID
    friends: list[OwedBreakdownResponse]
    assigned_subtotal: Decimal
    unassigned_cost: Decimal
    tax_amount: Decimal
    tip_amount: Decimal
    friends_total: Decimal
    expected_total: Decimal
    stated_total: Decimal
    rounding_adjustment: Decimal
    warnings: list[WarningResponse] = []


class ChangeRequest(BaseModel):
    paid_amount: Decimal = Field(ge=0)


class ChangeResponse(BaseModel):
    amount_to_pay: Decimal
    paid_amount: Decimal
    change: Decimal
    insufficient: bool
    shortage: Decimal
