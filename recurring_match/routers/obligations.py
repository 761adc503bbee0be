"""Obligation matching router."""

from uuid import UUID

from fastapi import APIRouter, status

from recurring_match.deps import CurrentUserId, DbSession
from recurring_match.schemas.matching import (
    AutoDetectRequest,
    AutoDetectResponse,
    BatchMatchRequest,
    BatchMatchResponse,
    ManualMatchRequest,
    ObligationMatchResponse,
    SuggestionRequest,
    SuggestionResponse,
)
from recurring_match.services.matching import (
    MatchingError,
    MatchOptions,
    auto_detect_obligation,
    create_manual_match,
    match_obligation_to_transactions,
    suggest_obligation_for_transaction,
)
from recurring_match.utils import raise_for_matching_error, raise_not_found

router = APIRouter(prefix="/obligations", tags=["obligations"])


@router.post("/suggest", response_model=SuggestionResponse)
async def suggest_obligation(payload: SuggestionRequest, db: DbSession) -> SuggestionResponse:
    try:
        suggestion = await suggest_obligation_for_transaction(
            db,
            payload.transaction_id,
            payload.partnership_id,
            min_confidence=payload.min_confidence,
        )
    except MatchingError as exc:
        raise_for_matching_error(exc)

    if suggestion is None:
        raise_not_found("Matching obligation")
    return SuggestionResponse.model_validate(suggestion)


@router.post("/auto-detect", response_model=AutoDetectResponse)
async def auto_detect(payload: AutoDetectRequest, db: DbSession) -> AutoDetectResponse:
    """Suggest pattern, recurrence and next date from past payments of one expense."""
    try:
        pattern = await auto_detect_obligation(db, payload.transaction_ids)
    except MatchingError as exc:
        raise_for_matching_error(exc)

    return AutoDetectResponse.model_validate(pattern)


@router.post("/{obligation_id}/match", response_model=BatchMatchResponse)
async def match_obligation(obligation_id: UUID, payload: BatchMatchRequest, db: DbSession) -> BatchMatchResponse:
    """Backfill matches for one obligation from the partnership's history."""
    result = await match_obligation_to_transactions(
        db,
        obligation_id,
        payload.partnership_id,
        MatchOptions(
            amount_tolerance_percent=payload.amount_tolerance_percent,
            limit_months=payload.limit_months,
        ),
    )
    await db.commit()
    return BatchMatchResponse(matched=result.matched, error=result.error)


@router.post(
    "/{obligation_id}/matches",
    response_model=ObligationMatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_match(
    obligation_id: UUID,
    payload: ManualMatchRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> ObligationMatchResponse:
    try:
        match = await create_manual_match(
            db,
            obligation_id=obligation_id,
            transaction_id=payload.transaction_id,
            user_id=user_id,
            confidence=payload.confidence,
        )
    except MatchingError as exc:
        raise_for_matching_error(exc)

    await db.commit()
    return ObligationMatchResponse.model_validate(match)
