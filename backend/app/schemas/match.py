import uuid
from datetime import datetime

from pydantic import BaseModel


class CapacityFitResponse(BaseModel):
    bucket: str
    fits_carry_on: bool
    fits_checked: bool
    available_carry_on_kg: float
    available_checked_kg: float
    trip_version: int


class RankedMatchResponse(BaseModel):
    trip_id: uuid.UUID
    traveler_id: uuid.UUID
    status: str
    match_score: int
    date_fit: float
    capacity_margin: float
    reliability: float
    capacity_fit: CapacityFitResponse
    rationale: list[str]
    arrival_date: str


class RejectionResponse(BaseModel):
    trip_id: uuid.UUID
    rule: str
    reason: str


class ExplainResponse(BaseModel):
    eligible: list[RankedMatchResponse]
    rejected: list[RejectionResponse]


class BookRequest(BaseModel):
    request_id: uuid.UUID
    trip_id: uuid.UUID
    expected_version: int | None = None


class RespondRequest(BaseModel):
    decision: str  # accept | decline


class MatchResponse(BaseModel):
    id: uuid.UUID
    request_id: uuid.UUID
    trip_id: uuid.UUID
    shopper_id: uuid.UUID
    traveler_id: uuid.UUID
    match_score: int
    capacity_fit: dict
    rationale: list[str]
    status: str
    reserved_bucket: str
    reserved_kg: float
    released_at: datetime | None
    expires_at: datetime
    responded_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
