"""Income source model."""

from datetime import date
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from recurring_match.database import Base
from recurring_match.models.base import TimestampMixin, UUIDMixin

RECURRING_SALARY = "recurring-salary"


class IncomeSource(UUIDMixin, TimestampMixin, Base):
    """Expected recurring income such as a salary."""

    __tablename__ = "income_sources"

    partnership_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("partnerships.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    match_pattern: Mapped[str | None] = mapped_column(String(255), nullable=True)
    frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amount_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_pay_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_pay_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False, default=RECURRING_SALARY)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
