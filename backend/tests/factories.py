"""
Test data factories: principals, tokens, raw payloads and persisted
trips/requests with explicit ledger state.
"""
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from jose import jwt

from app.config import settings
from app.models.shopper_request import BagItem, ShopperRequest
from app.models.traveler import TravelerProfile
from app.models.trip import Trip
from app.schemas.auth import Principal

# Fixed clock for service-level tests
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
ARRIVAL = date(2026, 3, 20)
WINDOW = (date(2026, 3, 15), date(2026, 3, 25))


# =============================================================================
# Identity helpers
# =============================================================================

def make_principal(role: str = "shopper", subject_id: uuid.UUID | None = None) -> Principal:
    return Principal(subject_id=subject_id or uuid.uuid4(), role=role)


def make_token(principal: Principal) -> str:
    """Bearer token as the identity service would issue it."""
    return jwt.encode(
        {"sub": str(principal.subject_id), "role": principal.role},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def auth_headers(principal: Principal) -> dict:
    return {"Authorization": f"Bearer {make_token(principal)}"}


# =============================================================================
# Payload / model builders
# =============================================================================

def make_item(**overrides) -> dict:
    item = {
        "product_name": "Running shoes",
        "link": "https://shop.example.com/shoes",
        "price": "100.00",
        "currency": "GBP",
        "weight_kg": "6",
        "quantity": 1,
        "is_fragile": False,
        "requires_special_delivery": False,
        "special_delivery_category": None,
        "photos": [],
    }
    item.update(overrides)
    return item


def make_payload(items: list[dict] | None = None, **overrides) -> dict:
    """Raw shopper request payload: GB → NG, checked luggage, default window."""
    payload = {
        "from_country": "GB",
        "destination_country": "NG",
        "delivery_window_start": WINDOW[0].isoformat(),
        "delivery_window_end": WINDOW[1].isoformat(),
        "pickup": False,
        "carry_on": False,
        "bag_items": items if items is not None else [make_item()],
    }
    payload.update(overrides)
    return payload


def build_trip(
    *,
    traveler_id: uuid.UUID | None = None,
    status: str = "active",
    carry_on_kg: Decimal | str = "5",
    checked_kg: Decimal | str = "10",
    available_carry_on_kg: Decimal | str | None = None,
    available_checked_kg: Decimal | str | None = None,
    arrival_date: date = ARRIVAL,
    departure_at: datetime | None = None,
    can_carry_fragile: bool = False,
    can_handle_special_delivery: bool = False,
    special_delivery_categories: list[str] | None = None,
    origin: str = "GB",
    destination: str = "NG",
    created_at: datetime | None = None,
    version: int = 1,
) -> Trip:
    """Unsaved trip with every column set explicitly."""
    departure_at = departure_at or datetime.combine(
        arrival_date - timedelta(days=1), time(20, 0), tzinfo=timezone.utc
    )
    carry_on_kg = Decimal(str(carry_on_kg))
    checked_kg = Decimal(str(checked_kg))
    return Trip(
        id=uuid.uuid4(),
        traveler_id=traveler_id or uuid.uuid4(),
        origin_country=origin,
        destination_country=destination,
        departure_at=departure_at,
        departure_tz="Europe/London",
        arrival_at=departure_at + timedelta(hours=7),
        arrival_tz="Africa/Lagos",
        arrival_date=arrival_date,
        carry_on_capacity_kg=carry_on_kg,
        checked_capacity_kg=checked_kg,
        available_carry_on_kg=Decimal(str(available_carry_on_kg)) if available_carry_on_kg is not None else carry_on_kg,
        available_checked_kg=Decimal(str(available_checked_kg)) if available_checked_kg is not None else checked_kg,
        can_carry_fragile=can_carry_fragile,
        can_handle_special_delivery=can_handle_special_delivery,
        special_delivery_categories=special_delivery_categories or [],
        ticket_photo_url=None,
        status=status,
        version=version,
        created_at=created_at or NOW - timedelta(days=3),
    )


async def add_trip(db, **kwargs) -> Trip:
    trip = build_trip(**kwargs)
    db.add(trip)
    await db.commit()
    return trip


async def add_request(
    db,
    *,
    shopper_id: uuid.UUID | None = None,
    items: list[dict] | None = None,
    status: str = "published",
    carry_on: bool = False,
    window: tuple[date, date] = WINDOW,
) -> ShopperRequest:
    """Persist a request (published by default) with its bag items."""
    items = items if items is not None else [make_item()]
    listing_mode = status if status in ("published", "marketplace") else None
    request = ShopperRequest(
        id=uuid.uuid4(),
        shopper_id=shopper_id or uuid.uuid4(),
        from_country="GB",
        destination_country="NG",
        delivery_window_start=window[0],
        delivery_window_end=window[1],
        pickup=False,
        carry_on=carry_on,
        total_weight_kg=sum(Decimal(str(i["weight_kg"])) * i["quantity"] for i in items),
        status=status,
        listing_mode=listing_mode,
        bag_items=[
            BagItem(
                position=pos,
                product_name=i["product_name"],
                link=i["link"],
                price=Decimal(str(i["price"])),
                currency=i["currency"],
                weight_kg=Decimal(str(i["weight_kg"])),
                quantity=i["quantity"],
                is_fragile=i["is_fragile"],
                requires_special_delivery=i["requires_special_delivery"],
                special_delivery_category=i["special_delivery_category"],
                photos=i["photos"],
            )
            for pos, i in enumerate(items)
        ],
    )
    db.add(request)
    await db.commit()
    return request


async def add_rating(db, traveler_id: uuid.UUID, rating: str, count: int = 10) -> TravelerProfile:
    profile = TravelerProfile(traveler_id=traveler_id, rating=Decimal(rating), rating_count=count)
    db.add(profile)
    await db.commit()
    return profile

