"""Weighted match confidence for transaction suggestions.

Three independent signals add up to a 0-1 confidence:

- pattern/merchant: 0.4 for a wildcard pattern hit, 0.2 for a name substring
- amount: 0.4 down to 0 as the amount drifts from the expected amount
- timing: 0.2 down to 0 as the date drifts from the obligation's due date

A transaction that fails the pattern/merchant signal scores 0 no matter how
close amount and timing are.

This scorer backs suggestion flows only. The reconciliation paths use the
binary gate in ``recurring_match.services.candidates``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Protocol
from uuid import UUID

from recurring_match.config import settings
from recurring_match.services.periods import to_local_date

PATTERN_WEIGHT = Decimal("0.4")
NAME_WEIGHT = Decimal("0.2")

# (max relative difference, points)
AMOUNT_TIERS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("0.05"), Decimal("0.4")),
    (Decimal("0.10"), Decimal("0.3")),
    (Decimal("0.20"), Decimal("0.2")),
    (Decimal("0.50"), Decimal("0.1")),
)

# (max days from due date, points)
TIMING_TIERS: tuple[tuple[int, Decimal], ...] = (
    (1, Decimal("0.2")),
    (3, Decimal("0.15")),
    (7, Decimal("0.1")),
    (14, Decimal("0.05")),
)


class ScorableTransaction(Protocol):
    id: UUID
    description: str
    amount_cents: int

    @property
    def effective_at(self) -> datetime: ...


class ScorableObligation(Protocol):
    id: UUID
    name: str
    match_pattern: str | None
    expected_amount_cents: int | None
    next_due: date | None
    linked_transaction_id: UUID | None


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Points contributed by each signal."""

    pattern: float
    amount: float
    timing: float
    pattern_kind: str | None = None

    @property
    def total(self) -> float:
        if self.pattern_kind is None:
            return 0.0
        total = Decimal(str(self.pattern)) + Decimal(str(self.amount)) + Decimal(str(self.timing))
        return float(min(Decimal("1.0"), total))


@dataclass(frozen=True)
class MatchSuggestion:
    """Best obligation for a transaction."""

    obligation_id: UUID
    transaction_id: UUID
    confidence: float
    reason: str


@lru_cache(maxsize=256)
def _compile_like(pattern: str) -> re.Pattern[str]:
    # % is any run of characters and _ exactly one, anchored at both ends
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def matches_pattern(description: str, pattern: str | None) -> bool:
    """Evaluate a SQL LIKE style pattern against the full description."""
    if not pattern:
        return False
    return bool(_compile_like(pattern).match(description))


def _name_overlaps(name: str | None, description: str) -> bool:
    if not name or not description:
        return False
    name_lower = name.lower()
    desc_lower = description.lower()
    return name_lower in desc_lower or desc_lower in name_lower


def amount_difference_ratio(amount_cents: int, expected_cents: int | None) -> Decimal | None:
    """Relative distance of |amount| from the expected amount, or None if unknown."""
    if not expected_cents or expected_cents <= 0:
        return None
    return abs(Decimal(abs(amount_cents)) - Decimal(expected_cents)) / Decimal(expected_cents)


def score_amount(amount_cents: int, expected_cents: int | None) -> Decimal:
    ratio = amount_difference_ratio(amount_cents, expected_cents)
    if ratio is None:
        return Decimal("0")
    for limit, points in AMOUNT_TIERS:
        if ratio <= limit:
            return points
    return Decimal("0")


def days_from_due(txn_date: date, due_date: date | None) -> int | None:
    if due_date is None:
        return None
    return abs((txn_date - due_date).days)


def score_timing(txn_date: date, due_date: date | None) -> Decimal:
    diff_days = days_from_due(txn_date, due_date)
    if diff_days is None:
        return Decimal("0")
    for limit, points in TIMING_TIERS:
        if diff_days <= limit:
            return points
    return Decimal("0")


def score_breakdown(transaction: ScorableTransaction, obligation: ScorableObligation) -> ConfidenceBreakdown:
    """Score every signal for one transaction/obligation pair."""
    if matches_pattern(transaction.description, obligation.match_pattern):
        pattern_points, pattern_kind = PATTERN_WEIGHT, "pattern"
    elif _name_overlaps(obligation.name, transaction.description):
        pattern_points, pattern_kind = NAME_WEIGHT, "name"
    else:
        return ConfidenceBreakdown(pattern=0.0, amount=0.0, timing=0.0)

    txn_date = to_local_date(transaction.effective_at)
    return ConfidenceBreakdown(
        pattern=float(pattern_points),
        amount=float(score_amount(transaction.amount_cents, obligation.expected_amount_cents)),
        timing=float(score_timing(txn_date, obligation.next_due)),
        pattern_kind=pattern_kind,
    )


def calculate_match_confidence(transaction: ScorableTransaction, obligation: ScorableObligation) -> float:
    """Match confidence in [0, 1]."""
    return score_breakdown(transaction, obligation).total


def build_match_reason(
    transaction: ScorableTransaction,
    obligation: ScorableObligation,
    confidence: float,
) -> str:
    """Short human readable explanation of a suggestion."""
    reasons: list[str] = []

    if matches_pattern(transaction.description, obligation.match_pattern):
        reasons.append("pattern match")

    ratio = amount_difference_ratio(transaction.amount_cents, obligation.expected_amount_cents)
    if ratio is not None:
        if ratio <= Decimal("0.05"):
            reasons.append("exact amount")
        elif ratio <= Decimal("0.10"):
            reasons.append("similar amount")

    diff_days = days_from_due(to_local_date(transaction.effective_at), obligation.next_due)
    if diff_days is not None:
        if diff_days <= 1:
            reasons.append("on due date")
        elif diff_days <= 3:
            reasons.append("near due date")

    if not reasons:
        reasons.append("description similarity")

    return f"{', '.join(reasons)} ({confidence * 100:.0f}% confident)"


def find_best_match(
    transaction: ScorableTransaction,
    obligations: Iterable[ScorableObligation],
    min_confidence: float | None = None,
) -> MatchSuggestion | None:
    """Pick the highest confidence obligation at or above the threshold.

    An obligation explicitly linked to this transaction wins outright.
    Ties keep the input order.
    """
    threshold = settings.min_suggestion_confidence if min_confidence is None else min_confidence
    candidates = list(obligations)

    for obligation in candidates:
        if obligation.linked_transaction_id and obligation.linked_transaction_id == transaction.id:
            return MatchSuggestion(
                obligation_id=obligation.id,
                transaction_id=transaction.id,
                confidence=1.0,
                reason="Direct transaction link",
            )

    best: MatchSuggestion | None = None
    for obligation in candidates:
        confidence = calculate_match_confidence(transaction, obligation)
        if confidence < threshold:
            continue
        if best is None or confidence > best.confidence:
            best = MatchSuggestion(
                obligation_id=obligation.id,
                transaction_id=transaction.id,
                confidence=confidence,
                reason=build_match_reason(transaction, obligation, confidence),
            )
    return best
