"""Tests for billing period calculation."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from recurring_match.models import RecurrenceType
from recurring_match.services.periods import (
    get_period_for_transaction,
    get_period_label,
    is_transaction_in_period,
    period_start,
    to_local_date,
)


class TestPeriodStart:
    @pytest.mark.parametrize(
        ("value", "recurrence", "expected"),
        [
            (date(2025, 1, 8), "weekly", date(2025, 1, 6)),
            (date(2025, 1, 6), "weekly", date(2025, 1, 6)),
            (date(2025, 1, 12), "fortnightly", date(2025, 1, 6)),
            (date(2025, 1, 31), "monthly", date(2025, 1, 1)),
            (date(2025, 5, 20), "quarterly", date(2025, 4, 1)),
            (date(2025, 12, 31), "quarterly", date(2025, 10, 1)),
            (date(2025, 7, 4), "yearly", date(2025, 1, 1)),
            (date(2025, 3, 15), "one-time", date(2025, 3, 1)),
            (date(2025, 3, 15), "every-full-moon", date(2025, 3, 1)),
        ],
    )
    def test_period_start_per_recurrence(self, value, recurrence, expected):
        assert period_start(value, recurrence) == expected

    def test_accepts_enum_members(self):
        assert period_start(date(2025, 2, 14), RecurrenceType.QUARTERLY) == date(2025, 1, 1)

    @pytest.mark.parametrize("recurrence", [r.value for r in RecurrenceType])
    def test_idempotent_within_a_period(self, recurrence):
        day = date(2024, 1, 1)
        while day < date(2025, 1, 1):
            start = period_start(day, recurrence)
            assert period_start(start, recurrence) == start
            assert start <= day
            day += timedelta(days=5)

    def test_week_crossing_month_boundary(self):
        assert period_start(date(2025, 3, 2), "weekly") == date(2025, 2, 24)


class TestLocalTime:
    def test_aware_timestamp_uses_local_calendar_date(self):
        # 2025-01-31 14:30 UTC is already 1 February in Melbourne (UTC+11)
        value = datetime(2025, 1, 31, 14, 30, tzinfo=UTC)
        assert to_local_date(value) == date(2025, 2, 1)
        assert get_period_for_transaction(value, "monthly") == "2025-02-01"

    def test_naive_timestamp_is_taken_as_local(self):
        assert to_local_date(datetime(2025, 1, 31, 23, 59)) == date(2025, 1, 31)

    def test_iso_string_with_offset(self):
        assert to_local_date("2025-06-30T20:00:00+00:00") == date(2025, 7, 1)

    def test_other_offsets_are_converted(self):
        value = datetime(2025, 6, 30, 10, 0, tzinfo=timezone(timedelta(hours=-7)))
        assert to_local_date(value) == date(2025, 7, 1)

    def test_configured_timezone(self, monkeypatch):
        from recurring_match.services import periods

        monkeypatch.setattr(periods.settings, "local_timezone", "UTC")
        assert to_local_date(datetime(2025, 1, 31, 14, 30, tzinfo=UTC)) == date(2025, 1, 31)


def test_get_period_for_transaction_formats_iso_date():
    assert get_period_for_transaction(date(2025, 1, 3), "monthly") == "2025-01-01"


def test_is_transaction_in_period_is_inclusive():
    start, end = date(2025, 1, 1), date(2025, 1, 31)
    assert is_transaction_in_period(date(2025, 1, 1), start, end)
    assert is_transaction_in_period(date(2025, 1, 31), start, end)
    assert not is_transaction_in_period(date(2025, 2, 1), start, end)


@pytest.mark.parametrize(
    ("period", "recurrence", "label"),
    [
        (date(2025, 1, 6), "weekly", "Week of 6 Jan"),
        (date(2025, 1, 6), "fortnightly", "Fortnight of 6 Jan"),
        (date(2025, 1, 1), "monthly", "January 2025"),
        (date(2025, 4, 1), "quarterly", "Q2 2025"),
        (date(2025, 1, 1), "yearly", "2025"),
        (date(2025, 3, 1), "one-time", "March 2025"),
    ],
)
def test_get_period_label(period, recurrence, label):
    assert get_period_label(period, recurrence) == label
