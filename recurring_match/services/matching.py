"""Transaction to obligation matching.

Two entry points share the period calculator, the candidate gate and the
due-date advancer:

- ``match_obligation_to_transactions`` backfills one obligation from the
  partnership's full transaction history (obligation creation, re-match)
- ``match_transaction_to_obligations`` evaluates one webhook transaction
  against every active obligation in the partnership

Both persist through ``INSERT ... ON CONFLICT DO NOTHING RETURNING`` on the
(obligation_id, transaction_id) constraint and only act on the rows that came
back. A duplicate or concurrent delivery sees an empty result and does nothing.

Soft failures (missing rows, missing criteria, storage errors) are returned on
the result objects instead of raised so callers can carry on with their own
work. Each write runs inside a savepoint so a failure only discards the
matching work.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recurring_match.config import settings
from recurring_match.database import upsert_insert
from recurring_match.logger import async_log_timing, get_logger, log_exception, log_timing
from recurring_match.models import (
    RECURRING_SALARY,
    Account,
    IncomeSource,
    Obligation,
    ObligationMatch,
    PartnershipMember,
    Transaction,
)
from recurring_match.models.base import utcnow
from recurring_match.services.candidates import (
    AMOUNT_TOLERANCE_PERCENT,
    Candidate,
    amount_within_tolerance,
    select_candidates,
)
from recurring_match.services.due_dates import (
    DueDateAdvance,
    add_months,
    apply_advance,
    is_advancing,
    plan_batch_advance,
    plan_streaming_advance,
    step_due_date,
)
from recurring_match.services.notifications import notify_price_changes
from recurring_match.services.periods import get_period_for_transaction, to_local_date
from recurring_match.services.recurrence_detection import RecurringPattern, detect_recurring_pattern
from recurring_match.services.scoring import MatchSuggestion, find_best_match

logger = get_logger(__name__)

SALARY_INCOME_TYPE = "salary"

# Income frequencies that have no obligation counterpart
_EXTRA_PAY_MONTHS = {"bi-monthly": 2}


class MatchingError(Exception):
    """Base exception for matching errors."""


class ObligationNotFoundError(MatchingError):
    """Obligation not found error."""


class TransactionNotFoundError(MatchingError):
    """Transaction not found error."""


class DuplicateMatchError(MatchingError):
    """The transaction is already matched to this obligation."""


@dataclass
class MatchOptions:
    amount_tolerance_percent: float = AMOUNT_TOLERANCE_PERCENT
    # None means all history
    limit_months: int | None = None


@dataclass
class BatchMatchResult:
    matched: int = 0
    error: str | None = None


@dataclass
class ObligationRematch:
    obligation_id: UUID
    name: str
    matched: int = 0
    skipped: bool = False
    error: str | None = None


@dataclass
class RematchSummary:
    results: list[ObligationRematch] = field(default_factory=list)

    @property
    def total_matched(self) -> int:
        return sum(result.matched for result in self.results)

    @property
    def errors(self) -> list[ObligationRematch]:
        return [result for result in self.results if result.error]


@dataclass(frozen=True)
class TransactionEvent:
    """One transaction as delivered by the bank webhook."""

    transaction_id: UUID
    description: str
    account_id: UUID
    effective_date: date | datetime | str
    amount_cents: int


@dataclass
class StreamingMatchResult:
    # Names of the obligations (or income sources) newly matched
    matched: list[str] = field(default_factory=list)
    notifications: int = 0
    error: str | None = None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _error_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _match_row(
    obligation: Obligation,
    transaction_id: UUID,
    effective: date | datetime | str,
    confidence: float,
    matched_by: UUID | None = None,
) -> dict[str, Any]:
    return {
        "id": uuid4(),
        "obligation_id": obligation.id,
        "transaction_id": transaction_id,
        "match_confidence": confidence,
        "for_period": get_period_for_transaction(effective, obligation.recurrence_type),
        "matched_by": matched_by,
        "matched_at": utcnow(),
    }


async def _insert_matches_ignoring_conflicts(
    db: AsyncSession,
    rows: Sequence[dict[str, Any]],
) -> list[tuple[UUID, UUID]]:
    """Insert match rows, skipping pairs that already exist.

    Returns the (obligation_id, transaction_id) pairs actually written by this
    statement. Rows lost to a concurrent writer are not in the result.
    """
    if not rows:
        return []

    stmt = (
        upsert_insert(db, ObligationMatch)
        .values(list(rows))
        .on_conflict_do_nothing(index_elements=["obligation_id", "transaction_id"])
        .returning(ObligationMatch.obligation_id, ObligationMatch.transaction_id)
    )
    result = await db.execute(stmt)
    return [(row.obligation_id, row.transaction_id) for row in result]


async def _partnership_account_ids(db: AsyncSession, partnership_id: UUID) -> list[UUID]:
    members = select(PartnershipMember.user_id).where(PartnershipMember.partnership_id == partnership_id)
    result = await db.execute(
        select(Account.id).where(Account.user_id.in_(members), Account.is_active == True)  # noqa: E712
    )
    return list(result.scalars().all())


async def _resolve_account_owner(db: AsyncSession, account_id: UUID) -> tuple[UUID, UUID | None] | None:
    """Return (user_id, partnership_id) for an account, or None if it does not exist."""
    account = await db.get(Account, account_id)
    if account is None:
        return None
    result = await db.execute(
        select(PartnershipMember.partnership_id).where(PartnershipMember.user_id == account.user_id).limit(1)
    )
    return account.user_id, result.scalar_one_or_none()


# =============================================================================
# Batch
# =============================================================================


async def match_obligation_to_transactions(
    db: AsyncSession,
    obligation_id: UUID,
    partnership_id: UUID,
    options: MatchOptions | None = None,
) -> BatchMatchResult:
    """Match every historical expense transaction of a partnership to one obligation.

    Returns the number of match rows this call inserted. ``next_due`` is caught
    up once, past the latest newly matched transaction.
    """
    options = options or MatchOptions()
    log = logger.bind(obligation_id=str(obligation_id), partnership_id=str(partnership_id))

    try:
        obligation = await db.get(Obligation, obligation_id)
        if obligation is None or obligation.partnership_id != partnership_id:
            return BatchMatchResult(error="Obligation not found")

        if not obligation.match_value:
            return BatchMatchResult(error="No merchant name or pattern set")

        account_ids = await _partnership_account_ids(db, partnership_id)
        if not account_ids:
            return BatchMatchResult(error="No accounts found")

        query = (
            select(Transaction)
            .where(Transaction.account_id.in_(account_ids))
            .where(Transaction.amount_cents < 0)
            .where(Transaction.transfer_account_id.is_(None))
            .order_by(Transaction.created_at.desc())
        )
        if options.limit_months is not None:
            now = utcnow()
            cutoff = datetime.combine(add_months(now.date(), -options.limit_months), now.timetz())
            query = query.where(Transaction.created_at >= cutoff)

        if obligation.merchant_name:
            query = query.where(
                Transaction.description.ilike(f"%{_escape_like(obligation.merchant_name)}%", escape="\\")
            )
        else:
            # Legacy patterns may carry their own wildcards
            query = query.where(Transaction.description.ilike(obligation.match_pattern))

        async with async_log_timing("batch_match", logger=log, level="debug") as ctx:
            transactions = (await db.execute(query)).scalars().all()
            gated = [
                txn
                for txn in transactions
                if amount_within_tolerance(
                    txn.amount_cents,
                    obligation.expected_amount_cents,
                    options.amount_tolerance_percent,
                )
            ]
            ctx["fetched"] = len(transactions)
            ctx["compatible"] = len(gated)

        if not gated:
            return BatchMatchResult()

        existing = await db.execute(
            select(ObligationMatch.transaction_id).where(ObligationMatch.obligation_id == obligation.id)
        )
        already_matched = set(existing.scalars().all())
        pending = [txn for txn in gated if txn.id not in already_matched]
        if not pending:
            return BatchMatchResult()

        rows = [
            _match_row(obligation, txn.id, txn.effective_at, settings.auto_match_confidence) for txn in pending
        ]

        async with db.begin_nested():
            inserted = await _insert_matches_ignoring_conflicts(db, rows)
            inserted_ids = {transaction_id for _, transaction_id in inserted}

            if inserted_ids:
                latest = max(to_local_date(txn.effective_at) for txn in pending if txn.id in inserted_ids)
                advance = plan_batch_advance(obligation, latest)
                if advance is not None:
                    await apply_advance(db, obligation, advance)

        log.info(
            "Batch match complete",
            candidates=len(pending),
            matched=len(inserted_ids),
            next_due=obligation.next_due.isoformat() if obligation.next_due else None,
        )
        return BatchMatchResult(matched=len(inserted_ids))

    except SQLAlchemyError as exc:
        log_exception(log, exc, "Batch match failed")
        return BatchMatchResult(error=_error_message(exc))


async def rematch_all(db: AsyncSession, partnership_id: UUID) -> RematchSummary:
    """Run the batch matcher for every active obligation of a partnership."""
    result = await db.execute(
        select(Obligation)
        .where(Obligation.partnership_id == partnership_id, Obligation.is_active == True)  # noqa: E712
        .order_by(Obligation.created_at)
    )
    summary = RematchSummary()

    for obligation in result.scalars().all():
        if not obligation.match_value:
            summary.results.append(ObligationRematch(obligation.id, obligation.name, skipped=True))
            continue
        outcome = await match_obligation_to_transactions(db, obligation.id, partnership_id)
        summary.results.append(
            ObligationRematch(obligation.id, obligation.name, matched=outcome.matched, error=outcome.error)
        )

    logger.info(
        "Rematch complete",
        partnership_id=str(partnership_id),
        obligations=len(summary.results),
        total_matched=summary.total_matched,
        errors=len(summary.errors),
    )
    return summary


# =============================================================================
# Streaming
# =============================================================================


async def _obligations_already_matched(
    db: AsyncSession,
    transaction_id: UUID,
    obligation_ids: list[UUID],
) -> set[UUID]:
    """Fast-path read only. A concurrent writer can still win before the insert."""
    existing = await db.execute(
        select(ObligationMatch.obligation_id).where(
            ObligationMatch.transaction_id == transaction_id,
            ObligationMatch.obligation_id.in_(obligation_ids),
        )
    )
    return set(existing.scalars().all())


async def _persist_streaming_matches(
    db: AsyncSession,
    event: TransactionEvent,
    compatible: list[Candidate],
) -> list[str]:
    already_matched = await _obligations_already_matched(
        db, event.transaction_id, [candidate.obligation.id for candidate in compatible]
    )
    pending = [candidate.obligation for candidate in compatible if candidate.obligation.id not in already_matched]
    if not pending:
        return []

    rows = [
        _match_row(obligation, event.transaction_id, event.effective_date, settings.auto_match_confidence)
        for obligation in pending
    ]
    txn_date = to_local_date(event.effective_date)
    matched: list[str] = []

    async with db.begin_nested():
        inserted = await _insert_matches_ignoring_conflicts(db, rows)
        inserted_ids = {obligation_id for obligation_id, _ in inserted}

        for obligation in pending:
            if obligation.id not in inserted_ids:
                continue
            advance = plan_streaming_advance(obligation, txn_date, settings.streaming_advance_guard_days)
            if advance is not None:
                await apply_advance(db, obligation, advance)
            matched.append(obligation.name)

    return matched


async def match_transaction_to_obligations(db: AsyncSession, event: TransactionEvent) -> StreamingMatchResult:
    """Match one incoming expense transaction against a partnership's obligations.

    Safe to call repeatedly for the same transaction: only the call that
    inserts a match row advances the obligation.
    """
    if event.amount_cents >= 0:
        return StreamingMatchResult()

    log = logger.bind(transaction_id=str(event.transaction_id), account_id=str(event.account_id))
    outcome = StreamingMatchResult()

    try:
        owner = await _resolve_account_owner(db, event.account_id)
        if owner is None:
            return StreamingMatchResult(error="Account not found")
        user_id, partnership_id = owner
        if partnership_id is None:
            log.debug("Account owner has no partnership")
            return outcome

        result = await db.execute(
            select(Obligation)
            .where(
                Obligation.partnership_id == partnership_id,
                Obligation.is_active == True,  # noqa: E712
                Obligation.merchant_name.is_not(None),
            )
            .order_by(Obligation.created_at)
        )
        obligations = result.scalars().all()
        with log_timing("select_candidates", logger=log, level="debug", obligations=len(obligations)) as ctx:
            selection = select_candidates(event.description, event.amount_cents, obligations)
            ctx["compatible"] = len(selection.compatible)
            ctx["price_changed"] = len(selection.price_changed)
    except SQLAlchemyError as exc:
        log_exception(log, exc, "Streaming match lookup failed")
        return StreamingMatchResult(error=_error_message(exc))

    if selection.compatible:
        try:
            outcome.matched = await _persist_streaming_matches(db, event, selection.compatible)
        except SQLAlchemyError as exc:
            log_exception(log, exc, "Streaming match persistence failed")
            outcome.error = _error_message(exc)

    if selection.price_changed:
        try:
            async with db.begin_nested():
                notifications = await notify_price_changes(
                    db,
                    user_id=user_id,
                    transaction_id=event.transaction_id,
                    candidates=selection.price_changed,
                )
            outcome.notifications = len(notifications)
        except SQLAlchemyError as exc:
            log_exception(log, exc, "Price change notification failed")
            outcome.error = outcome.error or _error_message(exc)

    if outcome.matched or outcome.notifications:
        log.info(
            "Streaming match complete",
            matched=outcome.matched,
            notifications=outcome.notifications,
            price_changed=len(selection.price_changed),
        )
    return outcome


# =============================================================================
# Income
# =============================================================================


def step_pay_date(value: date, frequency: str | None) -> date | None:
    """Next expected pay date after ``value``, or None for an unknown frequency."""
    if not frequency:
        return None
    if frequency in _EXTRA_PAY_MONTHS:
        return add_months(value, _EXTRA_PAY_MONTHS[frequency])
    if is_advancing(frequency):
        return step_due_date(value, frequency)
    return None


def income_source_matches(source: IncomeSource, description: str) -> bool:
    """Pattern (wildcards stripped) or source name contained in the description."""
    desc_lower = description.lower()
    if source.match_pattern:
        pattern = source.match_pattern.replace("%", "").lower()
        if pattern and pattern in desc_lower:
            return True
    return bool(source.name) and source.name.lower() in desc_lower


async def match_transaction_to_income_sources(db: AsyncSession, event: TransactionEvent) -> StreamingMatchResult:
    """Match one incoming credit against recurring salary sources."""
    if event.amount_cents <= 0:
        return StreamingMatchResult()

    log = logger.bind(transaction_id=str(event.transaction_id), account_id=str(event.account_id))

    try:
        owner = await _resolve_account_owner(db, event.account_id)
        if owner is None:
            return StreamingMatchResult(error="Account not found")
        user_id, partnership_id = owner

        query = select(IncomeSource).where(
            IncomeSource.is_active == True,  # noqa: E712
            IncomeSource.source_type == RECURRING_SALARY,
        )
        if partnership_id is not None:
            query = query.where(IncomeSource.partnership_id == partnership_id)
        else:
            query = query.where(IncomeSource.user_id == user_id)

        sources = (await db.execute(query.order_by(IncomeSource.created_at))).scalars().all()
        matching = [source for source in sources if income_source_matches(source, event.description)]
        if not matching:
            return StreamingMatchResult()

        pay_date = to_local_date(event.effective_date)
        async with db.begin_nested():
            for source in matching:
                source.last_pay_date = pay_date
                if source.amount_cents != event.amount_cents:
                    source.amount_cents = event.amount_cents
                next_pay = step_pay_date(pay_date, source.frequency)
                if next_pay is not None:
                    source.next_pay_date = next_pay

            await db.execute(
                update(Transaction)
                .where(Transaction.id == event.transaction_id)
                .values(is_income=True, income_type=SALARY_INCOME_TYPE)
                .execution_options(synchronize_session=False)
            )
            await db.flush()

    except SQLAlchemyError as exc:
        log_exception(log, exc, "Income match failed")
        return StreamingMatchResult(error=_error_message(exc))

    names = [source.name for source in matching]
    log.info("Income matched", income_sources=names, pay_date=pay_date.isoformat())
    return StreamingMatchResult(matched=names)


# =============================================================================
# Manual matching and suggestions
# =============================================================================


async def create_manual_match(
    db: AsyncSession,
    *,
    obligation_id: UUID,
    transaction_id: UUID,
    user_id: UUID,
    confidence: float = 1.0,
) -> ObligationMatch:
    """Record a user-confirmed match and move ``next_due`` on by one interval."""
    obligation = await db.get(Obligation, obligation_id)
    if obligation is None:
        raise ObligationNotFoundError(f"Obligation {obligation_id} not found")

    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

    row = _match_row(obligation, transaction.id, transaction.effective_at, confidence, matched_by=user_id)

    async with db.begin_nested():
        inserted = await _insert_matches_ignoring_conflicts(db, [row])
        if not inserted:
            raise DuplicateMatchError("Transaction already matched to this obligation")

        if obligation.next_due is not None and is_advancing(obligation.recurrence_type):
            advance = DueDateAdvance(
                obligation.id,
                obligation.next_due,
                step_due_date(obligation.next_due, obligation.recurrence_type),
            )
            await apply_advance(db, obligation, advance)

    logger.info(
        "Manual match created",
        obligation_id=str(obligation.id),
        transaction_id=str(transaction.id),
        matched_by=str(user_id),
    )
    result = await db.execute(select(ObligationMatch).where(ObligationMatch.id == row["id"]))
    return result.scalar_one()


async def remove_match(
    db: AsyncSession,
    transaction_id: UUID,
    obligation_id: UUID | None = None,
) -> int:
    """Delete the matches of a transaction, optionally for one obligation only."""
    stmt = delete(ObligationMatch).where(ObligationMatch.transaction_id == transaction_id)
    if obligation_id is not None:
        stmt = stmt.where(ObligationMatch.obligation_id == obligation_id)

    result = await db.execute(stmt.execution_options(synchronize_session=False))
    removed = result.rowcount or 0
    logger.info(
        "Matches removed",
        transaction_id=str(transaction_id),
        obligation_id=str(obligation_id) if obligation_id else None,
        removed=removed,
    )
    return removed


async def suggest_obligation_for_transaction(
    db: AsyncSession,
    transaction_id: UUID,
    partnership_id: UUID,
    min_confidence: float | None = None,
) -> MatchSuggestion | None:
    """Best active obligation for a transaction by weighted confidence."""
    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

    result = await db.execute(
        select(Obligation)
        .where(Obligation.partnership_id == partnership_id, Obligation.is_active == True)  # noqa: E712
        .order_by(Obligation.created_at)
    )
    suggestion = find_best_match(transaction, result.scalars().all(), min_confidence)
    logger.debug(
        "Obligation suggestion",
        transaction_id=str(transaction_id),
        obligation_id=str(suggestion.obligation_id) if suggestion else None,
        confidence=suggestion.confidence if suggestion else None,
    )
    return suggestion


async def auto_detect_obligation(db: AsyncSession, transaction_ids: Sequence[UUID]) -> RecurringPattern:
    """Propose obligation settings from transactions the user marked as one expense."""
    unique_ids = list(dict.fromkeys(transaction_ids))
    result = await db.execute(select(Transaction).where(Transaction.id.in_(unique_ids)))
    transactions = result.scalars().all()

    found = {txn.id for txn in transactions}
    missing = [txn_id for txn_id in unique_ids if txn_id not in found]
    if missing:
        raise TransactionNotFoundError(f"Transaction {missing[0]} not found")

    pattern = detect_recurring_pattern(transactions)
    logger.info(
        "Recurring pattern detected",
        transactions=len(transactions),
        recurrence=pattern.recurrence,
        amount_consistent=pattern.amount_consistent,
        timing_consistent=pattern.timing_consistent,
    )
    return pattern
