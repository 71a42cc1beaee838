import uuid
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel


class CreateTripRequest(BaseModel):
    origin_country: str
    destination_country: str
    departure_date: date
    departure_time: time
    departure_tz: str
    arrival_date: date
    arrival_time: time
    arrival_tz: str
    carry_on_capacity_kg: Decimal
    checked_capacity_kg: Decimal
    can_carry_fragile: bool = False
    can_handle_special_delivery: bool = False
    special_delivery_categories: list[str] = []
    ticket_photo_url: str | None = None


class AdjustCapacityRequest(BaseModel):
    carry_on_capacity_kg: Decimal | None = None
    checked_capacity_kg: Decimal | None = None


class CancelTripRequest(BaseModel):
    reason: str | None = None


class TripResponse(BaseModel):
    id: uuid.UUID
    traveler_id: uuid.UUID
    origin_country: str
    destination_country: str
    departure_at: datetime
    departure_tz: str
    arrival_at: datetime
    arrival_tz: str
    arrival_date: date
    carry_on_capacity_kg: float
    checked_capacity_kg: float
    available_carry_on_kg: float
    available_checked_kg: float
    can_carry_fragile: bool
    can_handle_special_delivery: bool
    special_delivery_categories: list[str]
    ticket_photo_url: str | None
    status: str
    version: int
    created_at: datetime
    cancellation_reason: str | None

    model_config = {"from_attributes": True}
