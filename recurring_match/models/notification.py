"""Notification and notification preference models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from recurring_match.database import Base
from recurring_match.models.base import JSONType, TimestampMixin, UUIDMixin, utcnow

# Partial index predicate; the ON CONFLICT target must repeat it
PENDING_NOTIFICATION_WHERE = text("NOT actioned")
PENDING_NOTIFICATION_KEY = ("user_id", "type", "dedup_key")


class NotificationType(str, Enum):
    """Kinds of notification handed to the delivery subsystem."""

    SUBSCRIPTION_PRICE_CHANGE = "subscription_price_change"
    UNMATCHED_SUBSCRIPTION = "unmatched_subscription"
    GOAL_MILESTONE = "goal_milestone"
    PAYMENT_REMINDER = "payment_reminder"
    WEEKLY_SUMMARY = "weekly_summary"


class Notification(UUIDMixin, Base):
    """A pending notification for one user.

    ``dedup_key`` names the thing a notification is about (the obligation id
    for price changes). At most one unactioned notification may exist per
    (user, type, dedup_key); rows without a key are never deduplicated.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index(
            "uq_notifications_pending_dedup",
            *PENDING_NOTIFICATION_KEY,
            unique=True,
            postgresql_where=PENDING_NOTIFICATION_WHERE,
            sqlite_where=PENDING_NOTIFICATION_WHERE,
        ),
    )

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    dedup_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actioned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class NotificationPreference(UUIDMixin, TimestampMixin, Base):
    """Per-user notification settings, stored as one JSON document."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, unique=True)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
