"""HTTP error helpers for routers."""

from typing import NoReturn

from fastapi import HTTPException, status

from recurring_match.services.matching import (
    DuplicateMatchError,
    MatchingError,
    ObligationNotFoundError,
    TransactionNotFoundError,
)


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource_name} not found",
    ) from cause


def raise_conflict(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    ) from cause


def raise_for_matching_error(exc: MatchingError) -> NoReturn:
    """Translate a matching service error into the matching HTTP status."""
    if isinstance(exc, ObligationNotFoundError):
        raise_not_found("Obligation", cause=exc)
    if isinstance(exc, TransactionNotFoundError):
        raise_not_found("Transaction", cause=exc)
    if isinstance(exc, DuplicateMatchError):
        raise_conflict(str(exc), cause=exc)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(exc),
    ) from exc
