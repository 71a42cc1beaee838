import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class BagItemPayload(BaseModel):
    product_name: str
    link: str | None = None
    price: Decimal
    currency: str
    weight_kg: Decimal
    quantity: int = 1
    is_fragile: bool = False
    requires_special_delivery: bool = False
    special_delivery_category: str | None = None
    photos: list[str] = []


class ShopperRequestPayload(BaseModel):
    from_country: str
    destination_country: str
    delivery_window_start: date
    delivery_window_end: date
    pickup: bool = False
    carry_on: bool = False
    bag_items: list[BagItemPayload]


class PublishRequest(BaseModel):
    mode: str = "published"  # published | marketplace


class CancelRequest(BaseModel):
    reason: str | None = None


class BagItemResponse(BaseModel):
    id: uuid.UUID
    position: int
    product_name: str
    link: str | None
    price: float
    currency: str
    weight_kg: float
    quantity: int
    is_fragile: bool
    requires_special_delivery: bool
    special_delivery_category: str | None
    photos: list[str]

    model_config = {"from_attributes": True}


class ShopperRequestResponse(BaseModel):
    id: uuid.UUID
    shopper_id: uuid.UUID
    from_country: str
    destination_country: str
    delivery_window_start: date
    delivery_window_end: date
    pickup: bool
    carry_on: bool
    total_weight_kg: float
    status: str
    listing_mode: str | None
    bag_items: list[BagItemResponse]
    created_at: datetime
    published_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None

    model_config = {"from_attributes": True}
