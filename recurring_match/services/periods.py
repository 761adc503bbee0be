"""Billing period calculation.

Periods are human concepts, so every calculation happens on the household's
local calendar date:
- Aware datetimes are converted to ``settings.local_timezone`` before truncation
- Naive datetimes and plain dates are taken as already local
- Weeks start on Monday (ISO convention)
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from recurring_match.config import settings
from recurring_match.models import RecurrenceType


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def to_local_date(value: date | datetime | str) -> date:
    """Return the local calendar date of a timestamp, date or ISO string."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(_zone(settings.local_timezone))
        return value.date()
    return value


def _week_start(value: date) -> date:
    return date.fromordinal(value.toordinal() - value.weekday())


def period_start(value: date | datetime | str, recurrence_type: str) -> date:
    """First day of the billing period containing ``value``.

    Fortnightly periods use the Monday of the week; telling the two weeks of a
    fortnight apart is left to the obligation's ``next_due`` anchor.
    Unrecognised recurrence types use the monthly rule.
    """
    local = to_local_date(value)

    if recurrence_type in (RecurrenceType.WEEKLY, RecurrenceType.FORTNIGHTLY):
        return _week_start(local)
    if recurrence_type == RecurrenceType.QUARTERLY:
        month = ((local.month - 1) // 3) * 3 + 1
        return date(local.year, month, 1)
    if recurrence_type == RecurrenceType.YEARLY:
        return date(local.year, 1, 1)
    # monthly, one-time and anything unknown
    return local.replace(day=1)


def format_period_date(value: date) -> str:
    """Format a period start as stored in ``obligation_matches.for_period``."""
    return value.isoformat()


def get_period_for_transaction(value: date | datetime | str, recurrence_type: str) -> str:
    """Period start of a transaction date as a ``YYYY-MM-DD`` string."""
    return format_period_date(period_start(value, recurrence_type))


def is_transaction_in_period(value: date | datetime | str, start: date, end: date) -> bool:
    """Return True if the local date of ``value`` falls within [start, end]."""
    return start <= to_local_date(value) <= end


def get_period_label(period: date, recurrence_type: str) -> str:
    """Human readable label for a period start."""
    if recurrence_type == RecurrenceType.WEEKLY:
        return f"Week of {period.day} {period:%b}"
    if recurrence_type == RecurrenceType.FORTNIGHTLY:
        return f"Fortnight of {period.day} {period:%b}"
    if recurrence_type == RecurrenceType.QUARTERLY:
        return f"Q{(period.month - 1) // 3 + 1} {period.year}"
    if recurrence_type == RecurrenceType.YEARLY:
        return str(period.year)
    return f"{period:%B} {period.year}"
