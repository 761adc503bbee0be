"""Pydantic schemas for the matching API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from recurring_match.schemas.base import BaseResponse, ListResponse
from recurring_match.services.candidates import AMOUNT_TOLERANCE_PERCENT


class TransactionEventRequest(BaseModel):
    """Transaction as delivered by the bank webhook, already verified upstream."""

    transaction_id: UUID
    account_id: UUID
    description: str = Field(..., min_length=1)
    amount_cents: int
    currency: str = Field(default="AUD", min_length=3, max_length=3)
    settled_at: datetime | None = None
    created_at: datetime

    @property
    def effective_date(self) -> datetime:
        return self.settled_at or self.created_at


class TransactionEventResponse(BaseModel):
    matched: list[str] = Field(default_factory=list)
    income_matched: list[str] = Field(default_factory=list)
    notifications: int = 0
    error: str | None = None


class RemoveMatchesResponse(BaseModel):
    removed: int


class BatchMatchRequest(BaseModel):
    partnership_id: UUID
    limit_months: int | None = Field(default=None, ge=1)
    amount_tolerance_percent: float = Field(default=AMOUNT_TOLERANCE_PERCENT, ge=0, le=100)


class BatchMatchResponse(BaseModel):
    matched: int
    error: str | None = None


class ObligationRematchResponse(BaseResponse):
    obligation_id: UUID
    name: str
    matched: int
    skipped: bool = False
    error: str | None = None


class RematchResponse(ListResponse[ObligationRematchResponse]):
    total_matched: int


class ManualMatchRequest(BaseModel):
    transaction_id: UUID
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class ObligationMatchResponse(BaseResponse):
    id: UUID
    obligation_id: UUID
    transaction_id: UUID
    match_confidence: float
    for_period: str | None
    matched_by: UUID | None
    matched_at: datetime


class SuggestionRequest(BaseModel):
    transaction_id: UUID
    partnership_id: UUID
    min_confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class SuggestionResponse(BaseResponse):
    obligation_id: UUID
    transaction_id: UUID
    confidence: float
    reason: str


class AutoDetectRequest(BaseModel):
    transaction_ids: list[UUID] = Field(..., min_length=1, max_length=500)


class AutoDetectResponse(BaseResponse):
    match_pattern: str
    recurrence: str
    amount_consistent: bool
    timing_consistent: bool
    average_amount_cents: int
    occurrences: int
    last_date: date
    next_date: date
