"""Services package."""

from recurring_match.services.candidates import (
    AMOUNT_TOLERANCE_PERCENT,
    Candidate,
    CandidateSelection,
    amount_within_tolerance,
    merchant_matches,
    select_candidates,
)
from recurring_match.services.due_dates import (
    DueDateAdvance,
    apply_advance,
    catch_up,
    plan_batch_advance,
    plan_streaming_advance,
    step_due_date,
)
from recurring_match.services.matching import (
    BatchMatchResult,
    DuplicateMatchError,
    MatchingError,
    MatchOptions,
    ObligationNotFoundError,
    RematchSummary,
    StreamingMatchResult,
    TransactionEvent,
    TransactionNotFoundError,
    auto_detect_obligation,
    create_manual_match,
    match_obligation_to_transactions,
    match_transaction_to_income_sources,
    match_transaction_to_obligations,
    rematch_all,
    remove_match,
    suggest_obligation_for_transaction,
)
from recurring_match.services.notifications import is_notification_enabled, notify_price_changes
from recurring_match.services.periods import get_period_for_transaction, get_period_label, period_start
from recurring_match.services.recurrence_detection import (
    RecurringPattern,
    check_amount_consistency,
    check_timing_consistency,
    detect_recurrence_from_gaps,
    detect_recurring_pattern,
    predict_next_date,
    suggest_match_pattern,
)
from recurring_match.services.scoring import (
    ConfidenceBreakdown,
    MatchSuggestion,
    calculate_match_confidence,
    find_best_match,
    score_breakdown,
)

__all__ = [
    "AMOUNT_TOLERANCE_PERCENT",
    "BatchMatchResult",
    "Candidate",
    "CandidateSelection",
    "ConfidenceBreakdown",
    "DueDateAdvance",
    "DuplicateMatchError",
    "MatchOptions",
    "MatchSuggestion",
    "MatchingError",
    "ObligationNotFoundError",
    "RecurringPattern",
    "RematchSummary",
    "StreamingMatchResult",
    "TransactionEvent",
    "TransactionNotFoundError",
    "amount_within_tolerance",
    "apply_advance",
    "auto_detect_obligation",
    "calculate_match_confidence",
    "catch_up",
    "check_amount_consistency",
    "check_timing_consistency",
    "create_manual_match",
    "detect_recurrence_from_gaps",
    "detect_recurring_pattern",
    "find_best_match",
    "get_period_for_transaction",
    "get_period_label",
    "is_notification_enabled",
    "match_obligation_to_transactions",
    "match_transaction_to_income_sources",
    "match_transaction_to_obligations",
    "merchant_matches",
    "notify_price_changes",
    "period_start",
    "predict_next_date",
    "plan_batch_advance",
    "plan_streaming_advance",
    "rematch_all",
    "remove_match",
    "score_breakdown",
    "select_candidates",
    "step_due_date",
    "suggest_match_pattern",
    "suggest_obligation_for_transaction",
]
