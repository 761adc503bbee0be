"""Bank transaction model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from recurring_match.database import Base
from recurring_match.models.base import UUIDMixin, utcnow


class Transaction(UUIDMixin, Base):
    """Settled or pending bank transaction.

    Amounts are signed integer cents: negative is money out, positive is money in.
    Rows are produced upstream; matching only flips the income flags.
    """

    __tablename__ = "transactions"

    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transfer_account_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    is_income: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    income_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def effective_at(self) -> datetime:
        """Settlement time when known, otherwise creation time."""
        return self.settled_at or self.created_at

    def __repr__(self) -> str:
        return f"<Transaction {self.description!r} {self.amount_cents}>"
