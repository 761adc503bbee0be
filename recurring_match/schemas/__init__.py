"""Pydantic schemas package."""

from recurring_match.schemas.base import BaseResponse, ListResponse
from recurring_match.schemas.matching import (
    BatchMatchRequest,
    BatchMatchResponse,
    ManualMatchRequest,
    ObligationMatchResponse,
    ObligationRematchResponse,
    RematchResponse,
    RemoveMatchesResponse,
    SuggestionRequest,
    SuggestionResponse,
    TransactionEventRequest,
    TransactionEventResponse,
)

__all__ = [
    "BaseResponse",
    "BatchMatchRequest",
    "BatchMatchResponse",
    "ListResponse",
    "ManualMatchRequest",
    "ObligationMatchResponse",
    "ObligationRematchResponse",
    "RematchResponse",
    "RemoveMatchesResponse",
    "SuggestionRequest",
    "SuggestionResponse",
    "TransactionEventRequest",
    "TransactionEventResponse",
]
