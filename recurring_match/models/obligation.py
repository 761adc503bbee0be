"""Recurring obligation (expense definition) model."""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from recurring_match.database import Base
from recurring_match.models.base import TimestampMixin, UUIDMixin


class RecurrenceType(str, Enum):
    """Billing interval of an obligation."""

    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class Obligation(UUIDMixin, TimestampMixin, Base):
    """A recurring (or one-time) payment a household expects to make."""

    __tablename__ = "obligations"

    partnership_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("partnerships.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Plain substring of the bank description, e.g. "Netflix"
    merchant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Legacy SQL LIKE pattern, e.g. "NETFLIX%"
    match_pattern: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expected_amount_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Stored as free text: unknown values fall back to monthly billing periods
    recurrence_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecurrenceType.MONTHLY.value
    )
    next_due: Mapped[date | None] = mapped_column(Date, nullable=True)
    linked_transaction_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def match_value(self) -> str | None:
        """Merchant name, falling back to the legacy pattern."""
        return self.merchant_name or self.match_pattern

    def __repr__(self) -> str:
        return f"<Obligation {self.name} ({self.recurrence_type})>"
