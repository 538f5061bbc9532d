import uuid
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Numeric, ForeignKey,
    Enum as SAEnum, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checksplitter.core.database import Base


class TaxType(str, enum.Enum):
    amount = "amount"
    percentage = "percentage"


class Receipt(Base):
    __tablename__ = "receipts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_type: Mapped[TaxType] = mapped_column(SAEnum(TaxType), nullable=False, default=TaxType.amount)
    tips: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tips_included_in_total: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    items: Mapped[list["Item"]] = relationship(
        back_populates="receipt", lazy="selectin", order_by="Item.position",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    participants: Mapped[list["FriendReceipt"]] = relationship(
        back_populates="receipt", lazy="selectin", cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def subtotal(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal("0"))

    def find_item(self, item_id: uuid.UUID) -> "Item | None":
        return next((i for i in self.items if i.id == item_id), None)

    def find_unit(self, unit_id: uuid.UUID) -> "ItemAssignment | None":
        for item in self.items:
            for unit in item.units:
                if unit.id == unit_id:
                    return unit
        return None


class Item(Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("receipts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Line total, i.e. quantity x unit price.
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    receipt: Mapped["Receipt"] = relationship(back_populates="items")
    units: Mapped[list["ItemAssignment"]] = relationship(
        back_populates="item", lazy="selectin", order_by="ItemAssignment.position",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def unit_price(self) -> Decimal:
        return self.price / self.quantity if self.quantity else self.price


class ItemAssignment(Base):
    """One independently assignable unit of an item."""

    __tablename__ = "item_assignments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), index=True, nullable=False
    )
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("receipts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    unit_label: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    item: Mapped["Item"] = relationship(back_populates="units")
    friend_assignments: Mapped[list["FriendAssignment"]] = relationship(
        back_populates="item_assignment", lazy="selectin",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def friend_ids(self) -> list[uuid.UUID]:
        return [fa.friend_id for fa in self.friend_assignments]


class FriendAssignment(Base):
    __tablename__ = "friend_assignments"
    __table_args__ = (UniqueConstraint("friend_id", "item_assignment_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    friend_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("friends.id", ondelete="CASCADE"), index=True, nullable=False
    )
    item_assignment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("item_assignments.id", ondelete="CASCADE"), index=True, nullable=False
    )

    item_assignment: Mapped["ItemAssignment"] = relationship(back_populates="friend_assignments")
    friend: Mapped["Friend"] = relationship(lazy="selectin")
