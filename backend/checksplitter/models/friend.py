import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checksplitter.core.database import Base


class Friend(Base):
    __tablename__ = "friends"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    user: Mapped["AppUser"] = relationship(back_populates="friends")
    receipt_links: Mapped[list["FriendReceipt"]] = relationship(
        back_populates="friend", lazy="noload", cascade="all, delete-orphan"
    )


class FriendReceipt(Base):
    """A friend taking part in a receipt."""

    __tablename__ = "friend_receipts"
    __table_args__ = (UniqueConstraint("friend_id", "receipt_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    friend_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("friends.id", ondelete="CASCADE"), index=True, nullable=False
    )
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("receipts.id", ondelete="CASCADE"), index=True, nullable=False
    )

    friend: Mapped["Friend"] = relationship(back_populates="receipt_links", lazy="selectin")
    receipt: Mapped["Receipt"] = relationship(back_populates="participants")
