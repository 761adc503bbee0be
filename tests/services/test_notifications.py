"""Tests for notification preferences and the price-change notifier."""

from uuid import uuid4

from sqlalchemy import func, select

from recurring_match.models import Notification, NotificationType
from recurring_match.services import notifications as notifications_service
from recurring_match.services.candidates import Candidate
from recurring_match.services.notifications import (
    DEFAULT_PREFERENCES,
    create_notification,
    find_unactioned_price_change,
    format_cents,
    get_notification_preferences,
    is_notification_enabled,
    merge_preferences,
    notify_price_changes,
)
from tests.factories import (
    NotificationFactory,
    NotificationPreferenceFactory,
    ObligationFactory,
)


def _price_change(obligation, observed: int = 2099) -> Candidate:
    return Candidate(obligation, observed, price_changed=True)


class TestPreferences:
    def test_merge_keeps_defaults(self):
        merged = merge_preferences({"payment_reminders": {"lead_days": 5}})
        assert merged["payment_reminders"]["lead_days"] == 5
        assert merged["payment_reminders"]["enabled"] is True
        assert merged["price_changes"] == {"enabled": True}

    def test_merge_does_not_mutate_defaults(self):
        merge_preferences({"price_changes": {"enabled": False}})
        assert DEFAULT_PREFERENCES["price_changes"]["enabled"] is True

    def test_merge_ignores_malformed_sections(self):
        assert merge_preferences({"price_changes": "off"})["price_changes"] == {"enabled": True}
        assert merge_preferences(None) == DEFAULT_PREFERENCES

    async def test_missing_row_returns_defaults(self, db):
        assert await get_notification_preferences(db, uuid4()) == DEFAULT_PREFERENCES

    async def test_disabled_type(self, db):
        user_id = uuid4()
        await NotificationPreferenceFactory.create_async(
            db, user_id=user_id, preferences={"price_changes": {"enabled": False}}
        )
        assert not await is_notification_enabled(db, user_id, NotificationType.SUBSCRIPTION_PRICE_CHANGE)
        assert await is_notification_enabled(db, user_id, NotificationType.GOAL_MILESTONE)

    async def test_unknown_type_is_enabled(self, db):
        assert await is_notification_enabled(db, uuid4(), "something_new")


def test_format_cents():
    assert format_cents(1599) == "15.99"
    assert format_cents(5) == "0.05"
    assert format_cents(-250000) == "-2500.00"


class TestNotifyPriceChanges:
    async def test_creates_notification_with_payload(self, db):
        user_id, transaction_id = uuid4(), uuid4()
        obligation = ObligationFactory.build(name="Netflix", expected_amount_cents=1599)

        created = await notify_price_changes(
            db, user_id=user_id, transaction_id=transaction_id, candidates=[_price_change(obligation)]
        )

        assert len(created) == 1
        notification = created[0]
        assert notification.type == NotificationType.SUBSCRIPTION_PRICE_CHANGE.value
        assert notification.title == "Netflix price changed"
        assert notification.message.startswith("Netflix charged $20.99 instead of the expected $15.99.")
        assert notification.actioned is False
        assert notification.metadata_ == {
            "obligation_id": str(obligation.id),
            "obligation_name": "Netflix",
            "transaction_id": str(transaction_id),
            "old_amount_cents": 1599,
            "new_amount_cents": 2099,
            "merchant_name": "Netflix",
        }

    async def test_skips_when_pending_notification_exists(self, db):
        user_id = uuid4()
        obligation = ObligationFactory.build()
        await NotificationFactory.create_async(
            db, user_id=user_id, metadata_={"obligation_id": str(obligation.id)}
        )

        created = await notify_price_changes(
            db, user_id=user_id, transaction_id=uuid4(), candidates=[_price_change(obligation)]
        )

        assert created == []
        count = await db.scalar(select(func.count()).select_from(Notification).where(Notification.user_id == user_id))
        assert count == 1

    async def test_actioned_notification_does_not_block(self, db):
        user_id = uuid4()
        obligation = ObligationFactory.build()
        await NotificationFactory.create_async(
            db, user_id=user_id, actioned=True, metadata_={"obligation_id": str(obligation.id)}
        )

        created = await notify_price_changes(
            db, user_id=user_id, transaction_id=uuid4(), candidates=[_price_change(obligation)]
        )

        assert len(created) == 1

    async def test_repeat_call_is_deduplicated(self, db):
        user_id = uuid4()
        obligation = ObligationFactory.build()
        candidates = [_price_change(obligation)]

        first = await notify_price_changes(db, user_id=user_id, transaction_id=uuid4(), candidates=candidates)
        second = await notify_price_changes(db, user_id=user_id, transaction_id=uuid4(), candidates=candidates)

        assert len(first) == 1
        assert second == []
        assert await find_unactioned_price_change(db, user_id, obligation.id) is not None

    async def test_disabled_preference_suppresses(self, db):
        user_id = uuid4()
        await NotificationPreferenceFactory.create_async(
            db, user_id=user_id, preferences={"price_changes": {"enabled": False}}
        )

        created = await notify_price_changes(
            db, user_id=user_id, transaction_id=uuid4(), candidates=[_price_change(ObligationFactory.build())]
        )

        assert created == []

    async def test_compatible_candidates_are_ignored(self, db):
        obligation = ObligationFactory.build()
        created = await notify_price_changes(
            db, user_id=uuid4(), transaction_id=uuid4(), candidates=[Candidate(obligation, 1599)]
        )
        assert created == []

    async def test_other_users_notifications_do_not_count(self, db):
        obligation = ObligationFactory.build()
        await NotificationFactory.create_async(db, user_id=uuid4(), metadata_={"obligation_id": str(obligation.id)})

        assert await find_unactioned_price_change(db, uuid4(), obligation.id) is None


class TestPendingNotificationConstraint:
    async def test_concurrent_writer_wins_the_slot(self, db, monkeypatch):
        """A pending row written after the read check still blocks the insert."""
        user_id = uuid4()
        obligation = ObligationFactory.build()
        await NotificationFactory.create_async(db, user_id=user_id, metadata_={"obligation_id": str(obligation.id)})

        async def _not_seen(*args, **kwargs):
            return None

        monkeypatch.setattr(notifications_service, "find_unactioned_price_change", _not_seen)

        created = await notify_price_changes(
            db, user_id=user_id, transaction_id=uuid4(), candidates=[_price_change(obligation)]
        )

        assert created == []
        count = await db.scalar(select(func.count()).select_from(Notification).where(Notification.user_id == user_id))
        assert count == 1

    async def test_create_returns_none_for_taken_key(self, db):
        user_id = uuid4()
        kwargs = {
            "user_id": user_id,
            "notification_type": NotificationType.SUBSCRIPTION_PRICE_CHANGE,
            "title": "Netflix price changed",
            "message": "Netflix charged more than expected.",
            "dedup_key": "obligation-1",
        }

        first = await create_notification(db, **kwargs)
        second = await create_notification(db, **kwargs)

        assert first is not None
        assert first.dedup_key == "obligation-1"
        assert second is None

    async def test_unkeyed_notifications_are_not_deduplicated(self, db):
        user_id = uuid4()
        for _ in range(2):
            await create_notification(
                db,
                user_id=user_id,
                notification_type=NotificationType.GOAL_MILESTONE,
                title="Halfway there",
                message="You have saved half of your goal.",
            )

        count = await db.scalar(select(func.count()).select_from(Notification).where(Notification.user_id == user_id))
        assert count == 2

    async def test_actioned_row_frees_the_slot(self, db):
        user_id = uuid4()
        await NotificationFactory.create_async(db, user_id=user_id, actioned=True, dedup_key="obligation-1")

        created = await create_notification(
            db,
            user_id=user_id,
            notification_type=NotificationType.SUBSCRIPTION_PRICE_CHANGE,
            title="Netflix price changed",
            message="Netflix charged more than expected.",
            dedup_key="obligation-1",
        )

        assert created is not None
