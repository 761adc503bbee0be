"""Due-date advancement for matched obligations.

``next_due`` is the only mutable state this engine owns. It only ever moves
forward, one recurrence interval at a time, until it lies after the date of
the payment that was just matched. A single late payment or a backfill after
weeks of inactivity therefore catches the obligation up across every missed
period in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from recurring_match.logger import get_logger
from recurring_match.models import Obligation, RecurrenceType
from recurring_match.models.base import utcnow

logger = get_logger(__name__)

# Upper bound on catch-up iterations (weekly over ~20 years)
MAX_CATCH_UP_STEPS = 1100

_DAY_STEPS = {
    RecurrenceType.WEEKLY.value: 7,
    RecurrenceType.FORTNIGHTLY.value: 14,
}
_MONTH_STEPS = {
    RecurrenceType.MONTHLY.value: 1,
    RecurrenceType.QUARTERLY.value: 3,
    RecurrenceType.YEARLY.value: 12,
}


def _month_end(value: date) -> date:
    next_month = value.replace(day=28) + timedelta(days=4)
    return next_month.replace(day=1) - timedelta(days=1)


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of shorter months."""
    year = value.year + (value.month - 1 + months) // 12
    month = (value.month - 1 + months) % 12 + 1
    day = min(value.day, _month_end(date(year, month, 1)).day)
    return date(year, month, day)


def _key(recurrence_type: str) -> str:
    if isinstance(recurrence_type, RecurrenceType):
        return recurrence_type.value
    return recurrence_type


def is_advancing(recurrence_type: str) -> bool:
    """One-time and unrecognised recurrence types never move."""
    key = _key(recurrence_type)
    return key in _DAY_STEPS or key in _MONTH_STEPS


def step_due_date(value: date, recurrence_type: str) -> date:
    """Move a due date forward by exactly one recurrence interval."""
    key = _key(recurrence_type)
    if key in _DAY_STEPS:
        return value + timedelta(days=_DAY_STEPS[key])
    if key in _MONTH_STEPS:
        return add_months(value, _MONTH_STEPS[key])
    return value


def catch_up(next_due: date, through: date, recurrence_type: str) -> date:
    """Step ``next_due`` forward until it is strictly after ``through``."""
    if not is_advancing(recurrence_type):
        return next_due

    current = next_due
    steps = 0
    while current <= through and steps < MAX_CATCH_UP_STEPS:
        current = step_due_date(current, recurrence_type)
        steps += 1
    return current


@dataclass(frozen=True)
class DueDateAdvance:
    """Planned move of one obligation's due date."""

    obligation_id: UUID
    previous: date
    next_due: date


def plan_batch_advance(obligation: Obligation, latest: date) -> DueDateAdvance | None:
    """Plan the single catch-up for a batch run, driven by its latest matched date."""
    if obligation.next_due is None or not is_advancing(obligation.recurrence_type):
        return None

    new_due = catch_up(obligation.next_due, latest, obligation.recurrence_type)
    if new_due == obligation.next_due:
        return None
    return DueDateAdvance(obligation.id, obligation.next_due, new_due)


def plan_streaming_advance(
    obligation: Obligation,
    txn_date: date,
    guard_days: int,
) -> DueDateAdvance | None:
    """Plan the catch-up for one webhook transaction.

    A transaction dated more than ``guard_days`` before the current due date is
    treated as history and never moves a live due date.
    """
    if obligation.next_due is None or not is_advancing(obligation.recurrence_type):
        return None

    if (txn_date - obligation.next_due).days < -guard_days:
        logger.debug(
            "Transaction predates due date window, not advancing",
            obligation_id=str(obligation.id),
            next_due=obligation.next_due.isoformat(),
            txn_date=txn_date.isoformat(),
            guard_days=guard_days,
        )
        return None

    new_due = catch_up(obligation.next_due, txn_date, obligation.recurrence_type)
    if new_due == obligation.next_due:
        return None
    return DueDateAdvance(obligation.id, obligation.next_due, new_due)


async def apply_advance(db: AsyncSession, obligation: Obligation, advance: DueDateAdvance) -> bool:
    """Persist a planned advance.

    The update only applies while the stored date is still earlier than the new
    one, so a slower concurrent writer can never move ``next_due`` backwards.
    Returns True when a row changed.
    """
    result = await db.execute(
        update(Obligation)
        .where(Obligation.id == advance.obligation_id)
        .where(Obligation.next_due < advance.next_due)
        .values(next_due=advance.next_due, updated_at=utcnow())
        .returning(Obligation.id)
        .execution_options(synchronize_session=False)
    )
    changed = bool(result.scalars().all())
    if changed:
        set_committed_value(obligation, "next_due", advance.next_due)
    logger.info(
        "Obligation due date advanced" if changed else "Obligation due date already current",
        obligation_id=str(advance.obligation_id),
        previous=advance.previous.isoformat(),
        next_due=advance.next_due.isoformat(),
    )
    return changed
