"""Heuristics for proposing a new obligation from a handful of transactions.

Used by the creation-time auto-detect flow only. Nothing here touches the
database or feeds the reconciliation paths.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from statistics import fmean, pstdev

from recurring_match.models import RecurrenceType, Transaction
from recurring_match.services.due_dates import is_advancing, step_due_date
from recurring_match.services.periods import to_local_date

IRREGULAR = "irregular"

# (min average gap, max average gap, recurrence) in days, inclusive
GAP_RANGES: tuple[tuple[float, float, str], ...] = (
    (6, 8, RecurrenceType.WEEKLY.value),
    (13, 15, RecurrenceType.FORTNIGHTLY.value),
    (28, 35, RecurrenceType.MONTHLY.value),
    (85, 95, RecurrenceType.QUARTERLY.value),
    (350, 380, RecurrenceType.YEARLY.value),
)

MAX_GAP_VARIATION = 0.3
MAX_TIMING_VARIATION = 0.25
AMOUNT_SPREAD = 0.1
MIN_CONSISTENT_SHARE = 0.7
FALLBACK_INTERVAL_DAYS = 30

_DIGITS = re.compile(r"\d+")
_NON_LETTERS = re.compile(r"[^A-Z\s]")


def suggest_match_pattern(description: str) -> str:
    """Build a LIKE pattern from the first significant word of a description.

    >>> suggest_match_pattern("NETFLIX.COM 1234 SYDNEY")
    'NETFLIXCOM%'
    """
    cleaned = _NON_LETTERS.sub("", _DIGITS.sub("", description.upper())).strip()
    words = [word for word in cleaned.split() if len(word) > 2]
    if not words:
        return f"%{cleaned}%"
    return f"{words[0]}%"


def _gaps(dates: Sequence[date | datetime | str]) -> list[int]:
    local = [to_local_date(value) for value in dates]
    return [(current - previous).days for previous, current in zip(local, local[1:])]


def _variation(gaps: list[int]) -> tuple[float, float] | None:
    average = fmean(gaps)
    if average <= 0:
        return None
    return average, pstdev(gaps) / average


def detect_recurrence_from_gaps(dates: Sequence[date | datetime | str]) -> str:
    """Classify chronologically ordered payment dates into a recurrence type.

    Returns ``"one-time"`` for fewer than two dates and ``"irregular"`` when two
    dates are too few to judge, the gaps vary too much, or the average gap
    fits no known interval.
    """
    if len(dates) < 2:
        return RecurrenceType.ONE_TIME.value
    if len(dates) == 2:
        return IRREGULAR

    stats = _variation(_gaps(dates))
    if stats is None:
        return IRREGULAR
    average, variation = stats
    if variation > MAX_GAP_VARIATION:
        return IRREGULAR

    for low, high, recurrence in GAP_RANGES:
        if low <= average <= high:
            return recurrence
    return IRREGULAR


def check_amount_consistency(amounts_cents: Sequence[int]) -> bool:
    """True when at least 70% of amounts sit within 10% of their average."""
    if not amounts_cents:
        return False
    if len(amounts_cents) == 1:
        return True

    magnitudes = [abs(amount) for amount in amounts_cents]
    average = fmean(magnitudes)
    if average == 0:
        return True
    within = sum(1 for amount in magnitudes if abs(amount - average) / average <= AMOUNT_SPREAD)
    return within / len(magnitudes) >= MIN_CONSISTENT_SHARE


def check_timing_consistency(dates: Sequence[date | datetime | str]) -> bool:
    """True when at least three dates arrive at fairly regular intervals."""
    if len(dates) < 3:
        return False
    stats = _variation(_gaps(dates))
    if stats is None:
        return False
    return stats[1] < MAX_TIMING_VARIATION


def predict_next_date(last: date | datetime | str, recurrence: str) -> date:
    """Expected date of the next payment after ``last``."""
    last_date = to_local_date(last)
    if is_advancing(recurrence):
        return step_due_date(last_date, recurrence)
    return last_date + timedelta(days=FALLBACK_INTERVAL_DAYS)


@dataclass(frozen=True)
class RecurringPattern:
    """What a set of past payments suggests for a new obligation."""

    match_pattern: str
    recurrence: str
    amount_consistent: bool
    timing_consistent: bool
    average_amount_cents: int
    occurrences: int
    last_date: date
    next_date: date


def detect_recurring_pattern(transactions: Sequence[Transaction]) -> RecurringPattern:
    """Summarise transactions the user picked as one recurring expense.

    The most recent description drives the suggested pattern.
    """
    if not transactions:
        raise ValueError("At least one transaction is required")

    ordered = sorted(transactions, key=lambda txn: txn.effective_at)
    dates = [txn.effective_at for txn in ordered]
    amounts = [txn.amount_cents for txn in ordered]
    recurrence = detect_recurrence_from_gaps(dates)
    latest = ordered[-1]

    return RecurringPattern(
        match_pattern=suggest_match_pattern(latest.description),
        recurrence=recurrence,
        amount_consistent=check_amount_consistency(amounts),
        timing_consistent=check_timing_consistency(dates),
        average_amount_cents=round(fmean(abs(amount) for amount in amounts)),
        occurrences=len(ordered),
        last_date=to_local_date(latest.effective_at),
        next_date=predict_next_date(latest.effective_at, recurrence),
    )
