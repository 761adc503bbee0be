"""Household (partnership) and financial account models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recurring_match.database import Base
from recurring_match.models.base import TimestampMixin, UUIDMixin


class Partnership(UUIDMixin, TimestampMixin, Base):
    """A household sharing obligations and accounts."""

    __tablename__ = "partnerships"

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Household")

    members: Mapped[list[PartnershipMember]] = relationship(back_populates="partnership")


class PartnershipMember(UUIDMixin, Base):
    """Membership of a user in a partnership."""

    __tablename__ = "partnership_members"
    __table_args__ = (
        UniqueConstraint("partnership_id", "user_id", name="uq_partnership_members_partnership_user"),
    )

    partnership_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("partnerships.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    partnership: Mapped[Partnership] = relationship(back_populates="members")


class Account(UUIDMixin, TimestampMixin, Base):
    """A bank account owned by one user."""

    __tablename__ = "accounts"

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Account {self.name}>"
