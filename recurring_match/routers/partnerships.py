"""Partnership-wide matching router."""

from uuid import UUID

from fastapi import APIRouter

from recurring_match.deps import DbSession
from recurring_match.schemas.matching import ObligationRematchResponse, RematchResponse
from recurring_match.services.matching import rematch_all

router = APIRouter(prefix="/partnerships", tags=["partnerships"])


@router.post("/{partnership_id}/rematch", response_model=RematchResponse)
async def rematch_partnership(partnership_id: UUID, db: DbSession) -> RematchResponse:
    """Re-run batch matching for every active obligation."""
    summary = await rematch_all(db, partnership_id)
    await db.commit()
    return RematchResponse(
        items=[ObligationRematchResponse.model_validate(result) for result in summary.results],
        total=len(summary.results),
        total_matched=summary.total_matched,
    )
