"""Request normalizer — validates a shopper payload into a canonical match query."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pydantic

from app.data.countries import SUPPORTED_CURRENCIES, is_arrival_country, is_departure_country, to_country_code
from app.errors import ValidationError
from app.schemas.request import ShopperRequestPayload
from app.services.lifecycle import CapacityBucket
from app.services.matching_config import MatchingConfig, matching_config
from app.utils.amounts import MAX_KG, MAX_PRICE, has_two_places


@dataclass(frozen=True)
class MatchQuery:
    from_country: str
    to_country: str
    window_start: date
    window_end: date
    required_bucket: CapacityBucket
    total_weight_kg: Decimal
    needs_fragile: bool
    needs_special_delivery: bool
    special_categories: frozenset[str]
    item_count: int = 1
    total_value: Decimal = Decimal("0")


def field_from_loc(loc: tuple) -> str:
    field = ""
    for part in loc:
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field += f".{part}" if field else str(part)
    return field or "payload"


def validate_payload(
    raw: Mapping | ShopperRequestPayload,
    config: MatchingConfig = matching_config,
) -> ShopperRequestPayload:
    """Validate and canonicalize a raw request payload.

    Country names are mapped to ISO codes and currencies upper-cased. Raises a
    field-tagged ValidationError on the first violation; nothing is partially accepted.
    """
    if isinstance(raw, ShopperRequestPayload):
        payload = raw
    else:
        try:
            payload = ShopperRequestPayload.model_validate(raw)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            raise ValidationError(field_from_loc(first["loc"]), first["msg"]) from e

    from_code = to_country_code(payload.from_country)
    if not from_code or not is_departure_country(from_code):
        raise ValidationError("from_country", f"Unsupported departure country '{payload.from_country}'")

    to_code = to_country_code(payload.destination_country)
    if not to_code or not is_arrival_country(to_code):
        raise ValidationError(
            "destination_country", f"Unsupported destination country '{payload.destination_country}'"
        )

    if payload.delivery_window_start > payload.delivery_window_end:
        raise ValidationError(
            "delivery_window_end", "Delivery window end must not be before its start"
        )

    if not payload.bag_items:
        raise ValidationError("bag_items", "At least one bag item is required")

    max_weight = config.items.max_item_weight_kg
    max_quantity = config.items.max_quantity
    items = []
    for i, item in enumerate(payload.bag_items):
        prefix = f"bag_items[{i}]"
        if not item.product_name.strip():
            raise ValidationError(f"{prefix}.product_name", "Product name is required")
        if not (Decimal("0") < item.weight_kg <= max_weight):
            raise ValidationError(
                f"{prefix}.weight_kg", f"Weight must be greater than 0 and at most {max_weight} kg"
            )
        if not has_two_places(item.weight_kg):
            raise ValidationError(f"{prefix}.weight_kg", "Weight must have at most 2 decimal places")
        if not (1 <= item.quantity <= max_quantity):
            raise ValidationError(f"{prefix}.quantity", f"Quantity must be between 1 and {max_quantity}")
        if not (0 <= item.price <= MAX_PRICE):
            raise ValidationError(f"{prefix}.price", f"Price must be between 0 and {MAX_PRICE}")
        if not has_two_places(item.price):
            raise ValidationError(f"{prefix}.price", "Price must have at most 2 decimal places")
        currency = item.currency.strip().upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"{prefix}.currency", f"Unsupported currency '{item.currency}'")

        category = (item.special_delivery_category or "").strip().lower() or None
        items.append(item.model_copy(update={
            "product_name": item.product_name.strip(),
            "currency": currency,
            "special_delivery_category": category,
        }))

    total_weight = sum((i.weight_kg * i.quantity for i in items), Decimal("0"))
    if total_weight > MAX_KG:
        raise ValidationError("bag_items", f"Total weight must not exceed {MAX_KG} kg")

    return payload.model_copy(update={
        "from_country": from_code,
        "destination_country": to_code,
        "bag_items": items,
    })


def build_query(payload: ShopperRequestPayload) -> MatchQuery:
    """Derive the match query from an already validated payload."""
    total_weight = sum((i.weight_kg * i.quantity for i in payload.bag_items), Decimal("0"))
    total_value = sum((i.price * i.quantity for i in payload.bag_items), Decimal("0"))
    categories = frozenset(
        i.special_delivery_category for i in payload.bag_items if i.special_delivery_category
    )
    needs_special = any(i.requires_special_delivery for i in payload.bag_items) or bool(categories)

    return MatchQuery(
        from_country=payload.from_country,
        to_country=payload.destination_country,
        window_start=payload.delivery_window_start,
        window_end=payload.delivery_window_end,
        required_bucket=CapacityBucket.CARRY_ON if payload.carry_on else CapacityBucket.CHECKED,
        total_weight_kg=total_weight,
        needs_fragile=any(i.is_fragile for i in payload.bag_items),
        needs_special_delivery=needs_special,
        special_categories=categories,
        item_count=len(payload.bag_items),
        total_value=total_value,
    )


def normalize_request(
    raw: Mapping | ShopperRequestPayload,
    config: MatchingConfig = matching_config,
) -> MatchQuery:
    return build_query(validate_payload(raw, config))


def payload_from_request(request) -> ShopperRequestPayload:
    """Rebuild the payload of a stored ShopperRequest (bag items must be loaded)."""
    return ShopperRequestPayload(
        from_country=request.from_country,
        destination_country=request.destination_country,
        delivery_window_start=request.delivery_window_start,
        delivery_window_end=request.delivery_window_end,
        pickup=request.pickup,
        carry_on=request.carry_on,
        bag_items=[
            {
                "product_name": item.product_name,
                "link": item.link,
                "price": item.price,
                "currency": item.currency,
                "weight_kg": item.weight_kg,
                "quantity": item.quantity,
                "is_fragile": item.is_fragile,
                "requires_special_delivery": item.requires_special_delivery,
                "special_delivery_category": item.special_delivery_category,
                "photos": item.photos or [],
            }
            for item in request.bag_items
        ],
    )


def query_for_request(request) -> MatchQuery:
    return normalize_request(payload_from_request(request))
