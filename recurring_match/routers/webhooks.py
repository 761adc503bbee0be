"""Bank webhook router.

Signature verification happens upstream; payloads arriving here are trusted.
Matching failures are reported in the body with a 200 so the sender does not
keep redelivering an event that can never succeed.
"""

from uuid import UUID

from fastapi import APIRouter

from recurring_match.deps import DbSession
from recurring_match.logger import get_logger
from recurring_match.schemas.matching import (
    RemoveMatchesResponse,
    TransactionEventRequest,
    TransactionEventResponse,
)
from recurring_match.services.matching import (
    TransactionEvent,
    match_transaction_to_income_sources,
    match_transaction_to_obligations,
    remove_match,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


@router.post("/transactions", response_model=TransactionEventResponse)
async def receive_transaction(payload: TransactionEventRequest, db: DbSession) -> TransactionEventResponse:
    event = TransactionEvent(
        transaction_id=payload.transaction_id,
        description=payload.description,
        account_id=payload.account_id,
        effective_date=payload.effective_date,
        amount_cents=payload.amount_cents,
    )

    if payload.amount_cents < 0:
        result = await match_transaction_to_obligations(db, event)
        response = TransactionEventResponse(
            matched=result.matched,
            notifications=result.notifications,
            error=result.error,
        )
    elif payload.amount_cents > 0:
        result = await match_transaction_to_income_sources(db, event)
        response = TransactionEventResponse(income_matched=result.matched, error=result.error)
    else:
        response = TransactionEventResponse()

    await db.commit()

    if response.error:
        logger.warning(
            "Webhook transaction not matched",
            transaction_id=str(payload.transaction_id),
            error=response.error,
        )
    return response


@router.delete("/transactions/{transaction_id}", response_model=RemoveMatchesResponse)
async def delete_transaction(transaction_id: UUID, db: DbSession) -> RemoveMatchesResponse:
    removed = await remove_match(db, transaction_id)
    await db.commit()
    return RemoveMatchesResponse(removed=removed)
