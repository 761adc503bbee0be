"""Notification preferences and the price-change notifier."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recurring_match.database import upsert_insert
from recurring_match.logger import get_logger
from recurring_match.models import (
    PENDING_NOTIFICATION_KEY,
    PENDING_NOTIFICATION_WHERE,
    Notification,
    NotificationPreference,
    NotificationType,
)
from recurring_match.models.base import utcnow
from recurring_match.services.candidates import Candidate

logger = get_logger(__name__)

DEFAULT_PREFERENCES: dict[str, dict[str, Any]] = {
    "price_changes": {"enabled": True},
    "goal_milestones": {"enabled": True},
    "payment_reminders": {
        "enabled": True,
        "lead_days": 3,
        "send_time": "09:00",
        "timezone": "Australia/Melbourne",
    },
    "weekly_summary": {
        "enabled": False,
        "day_of_week": "sunday",
        "send_time": "08:00",
        "timezone": "Australia/Melbourne",
    },
}

TYPE_TO_PREFERENCE_KEY: dict[str, str] = {
    NotificationType.SUBSCRIPTION_PRICE_CHANGE.value: "price_changes",
    NotificationType.UNMATCHED_SUBSCRIPTION.value: "price_changes",
    NotificationType.GOAL_MILESTONE.value: "goal_milestones",
    NotificationType.PAYMENT_REMINDER.value: "payment_reminders",
    NotificationType.WEEKLY_SUMMARY.value: "weekly_summary",
}


def merge_preferences(stored: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Overlay stored sections on top of the defaults, one level deep."""
    merged = copy.deepcopy(DEFAULT_PREFERENCES)
    for key, section in (stored or {}).items():
        if isinstance(section, dict):
            merged.setdefault(key, {}).update(section)
    return merged


async def get_notification_preferences(db: AsyncSession, user_id: UUID) -> dict[str, dict[str, Any]]:
    result = await db.execute(
        select(NotificationPreference.preferences).where(NotificationPreference.user_id == user_id)
    )
    return merge_preferences(result.scalar_one_or_none())


async def is_notification_enabled(db: AsyncSession, user_id: UUID, notification_type: str) -> bool:
    """Unknown notification types are enabled."""
    if isinstance(notification_type, NotificationType):
        notification_type = notification_type.value
    key = TYPE_TO_PREFERENCE_KEY.get(notification_type)
    if key is None:
        return True
    preferences = await get_notification_preferences(db, user_id)
    return bool(preferences.get(key, {}).get("enabled", True))


async def create_notification(
    db: AsyncSession,
    *,
    user_id: UUID,
    notification_type: str,
    title: str,
    message: str,
    metadata: dict[str, Any] | None = None,
    dedup_key: str | None = None,
) -> Notification | None:
    """Insert a notification unless an unactioned one with the same key exists.

    Returns None when the pending (user, type, dedup_key) slot is already
    taken, including by a concurrent writer.
    """
    if isinstance(notification_type, NotificationType):
        notification_type = notification_type.value

    stmt = (
        upsert_insert(db, Notification)
        .values(
            id=uuid4(),
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            metadata_=metadata or {},
            dedup_key=dedup_key,
            actioned=False,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(
            index_elements=list(PENDING_NOTIFICATION_KEY),
            index_where=PENDING_NOTIFICATION_WHERE,
        )
        .returning(Notification.id)
    )
    notification_id = (await db.execute(stmt)).scalar_one_or_none()
    if notification_id is None:
        logger.debug(
            "Notification already pending",
            user_id=str(user_id),
            notification_type=notification_type,
            dedup_key=dedup_key,
        )
        return None

    logger.info(
        "Notification created",
        user_id=str(user_id),
        notification_type=notification_type,
        notification_id=str(notification_id),
    )
    return await db.get(Notification, notification_id)


async def find_unactioned_price_change(
    db: AsyncSession,
    user_id: UUID,
    obligation_id: UUID,
) -> Notification | None:
    """Pending price-change notification already raised for this obligation, if any."""
    result = await db.execute(
        select(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.type == NotificationType.SUBSCRIPTION_PRICE_CHANGE.value,
            Notification.actioned == False,  # noqa: E712
            Notification.dedup_key == str(obligation_id),
        )
        .limit(1)
    )
    return result.scalars().first()


def format_cents(cents: int) -> str:
    """Format integer cents as a dollar amount without the symbol, e.g. ``15.99``."""
    sign = "-" if cents < 0 else ""
    whole, part = divmod(abs(cents), 100)
    return f"{sign}{whole}.{part:02d}"


def price_change_payload(candidate: Candidate, transaction_id: UUID) -> dict[str, Any]:
    obligation = candidate.obligation
    return {
        "obligation_id": str(obligation.id),
        "obligation_name": obligation.name,
        "transaction_id": str(transaction_id),
        "old_amount_cents": obligation.expected_amount_cents,
        "new_amount_cents": candidate.observed_amount_cents,
        "merchant_name": obligation.merchant_name,
    }


async def notify_price_changes(
    db: AsyncSession,
    *,
    user_id: UUID,
    transaction_id: UUID,
    candidates: Iterable[Candidate],
) -> list[Notification]:
    """Raise one deduplicated notification per price-changed obligation.

    Detection has already happened by the time this runs; the user's
    ``price_changes`` preference only decides whether anything is emitted.
    """
    candidates = [candidate for candidate in candidates if candidate.price_changed]
    if not candidates:
        return []

    for candidate in candidates:
        logger.info(
            "Price change detected",
            obligation_id=str(candidate.obligation.id),
            transaction_id=str(transaction_id),
            expected_amount_cents=candidate.obligation.expected_amount_cents,
            observed_amount_cents=candidate.observed_amount_cents,
        )

    if not await is_notification_enabled(db, user_id, NotificationType.SUBSCRIPTION_PRICE_CHANGE):
        logger.info("Price change notifications disabled", user_id=str(user_id), skipped=len(candidates))
        return []

    created: list[Notification] = []
    for candidate in candidates:
        obligation = candidate.obligation
        existing = await find_unactioned_price_change(db, user_id, obligation.id)
        if existing is not None:
            logger.debug(
                "Price change already notified",
                obligation_id=str(obligation.id),
                notification_id=str(existing.id),
            )
            continue

        old_amount = format_cents(obligation.expected_amount_cents or 0)
        new_amount = format_cents(candidate.observed_amount_cents)
        notification = await create_notification(
            db,
            user_id=user_id,
            notification_type=NotificationType.SUBSCRIPTION_PRICE_CHANGE,
            title=f"{obligation.name} price changed",
            message=(
                f"{obligation.name} charged ${new_amount} instead of the expected ${old_amount}. "
                "Would you like to update your subscription amount?"
            ),
            metadata=price_change_payload(candidate, transaction_id),
            dedup_key=str(obligation.id),
        )
        if notification is not None:
            created.append(notification)
    return created
