"""Obligation match model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from recurring_match.database import Base
from recurring_match.models.base import UUIDMixin, utcnow

MATCH_UNIQUE_CONSTRAINT = "uq_obligation_matches_obligation_transaction"


class ObligationMatch(UUIDMixin, Base):
    """Binds one transaction to one obligation for one billing period.

    Rows are insert-only. The (obligation_id, transaction_id) constraint is what
    makes duplicate webhook deliveries collapse into a single row.
    """

    __tablename__ = "obligation_matches"
    __table_args__ = (
        UniqueConstraint("obligation_id", "transaction_id", name=MATCH_UNIQUE_CONSTRAINT),
    )

    obligation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("obligations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Confidence is a 0-1 ratio, not money; float is fine.
    match_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    for_period: Mapped[str | None] = mapped_column(String(10), nullable=True)
    # NULL means matched automatically
    matched_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    matched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
