"""Candidate selection and the amount-tolerance gate.

This is the binary gate used by both production matching paths. The batch and
streaming matchers must import ``AMOUNT_TOLERANCE_PERCENT`` from here rather
than restating the number, so the band can never drift between them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from recurring_match.models import Obligation

AMOUNT_TOLERANCE_PERCENT = 10


@dataclass(frozen=True)
class Candidate:
    """An obligation paired with a transaction under evaluation. Never persisted."""

    obligation: Obligation
    observed_amount_cents: int
    price_changed: bool = False


@dataclass
class CandidateSelection:
    """Merchant-matched obligations split by the amount gate."""

    compatible: list[Candidate] = field(default_factory=list)
    price_changed: list[Candidate] = field(default_factory=list)

    @property
    def merchant_matched(self) -> list[Candidate]:
        return self.compatible + self.price_changed


def merchant_matches(merchant: str | None, description: str | None) -> bool:
    """True if the merchant string occurs in the description, ignoring case."""
    if not merchant or not description:
        return False
    return merchant.casefold() in description.casefold()


def has_expected_amount(expected_cents: int | None) -> bool:
    return expected_cents is not None and expected_cents > 0


def tolerance_band(
    expected_cents: int,
    tolerance_percent: float | int = AMOUNT_TOLERANCE_PERCENT,
) -> tuple[Decimal, Decimal]:
    """Inclusive [min, max] band around an expected amount."""
    ratio = Decimal(str(tolerance_percent)) / Decimal("100")
    expected = Decimal(expected_cents)
    return expected * (Decimal("1") - ratio), expected * (Decimal("1") + ratio)


def amount_within_tolerance(
    amount_cents: int,
    expected_cents: int | None,
    tolerance_percent: float | int = AMOUNT_TOLERANCE_PERCENT,
) -> bool:
    """Check a transaction amount against an obligation's expected amount.

    The sign is ignored. Obligations without an expected amount accept any amount.
    """
    if not has_expected_amount(expected_cents):
        return True
    low, high = tolerance_band(expected_cents, tolerance_percent)
    observed = Decimal(abs(amount_cents))
    return low <= observed <= high


def select_candidates(
    description: str,
    amount_cents: int,
    obligations: Iterable[Obligation],
    tolerance_percent: float | int = AMOUNT_TOLERANCE_PERCENT,
) -> CandidateSelection:
    """Narrow obligations to merchant matches and partition them by amount."""
    observed = abs(amount_cents)
    selection = CandidateSelection()

    for obligation in obligations:
        if not merchant_matches(obligation.merchant_name, description):
            continue
        if amount_within_tolerance(observed, obligation.expected_amount_cents, tolerance_percent):
            selection.compatible.append(Candidate(obligation, observed))
        else:
            selection.price_changed.append(Candidate(obligation, observed, price_changed=True))

    return selection
