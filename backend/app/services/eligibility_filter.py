"""Eligibility filter — hard constraints every bookable trip must satisfy."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.config import settings
from app.models.trip import Trip
from app.services.lifecycle import CapacityBucket, TripStatus
from app.services.matching_config import MatchingConfig, matching_config
from app.services.request_normalizer import MatchQuery
from app.utils.dates import as_utc


@dataclass(frozen=True)
class CapacityFit:
    """Availability snapshot taken at evaluation time, used to spot stale rankings."""
    bucket: str
    fits_carry_on: bool
    fits_checked: bool
    available_carry_on_kg: Decimal
    available_checked_kg: Decimal
    trip_version: int

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "fits_carry_on": self.fits_carry_on,
            "fits_checked": self.fits_checked,
            "available_carry_on_kg": float(self.available_carry_on_kg),
            "available_checked_kg": float(self.available_checked_kg),
            "trip_version": self.trip_version,
        }


@dataclass(frozen=True)
class EligibleCandidate:
    trip: Trip
    capacity_fit: CapacityFit


@dataclass(frozen=True)
class Rejection:
    trip_id: str
    rule: str
    reason: str


@dataclass
class EligibilityResult:
    eligible: list[EligibleCandidate] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)


@dataclass(frozen=True)
class RuleContext:
    now: datetime
    min_lead_time_days: int
    enforce_lead_time: bool
    config: MatchingConfig


class EligibilityRule(ABC):
    name: str

    @abstractmethod
    def check(self, trip: Trip, query: MatchQuery, ctx: RuleContext) -> str | None:
        """Return a rejection reason, or None when the trip passes."""
        ...


class BookableStatusRule(EligibilityRule):
    name = "status"

    def check(self, trip, query, ctx) -> str | None:
        if trip.status != TripStatus.ACTIVE.value:
            return f"Trip is {trip.status}, only active trips can be booked"
        return None


class CapacityRule(EligibilityRule):
    name = "capacity"

    def check(self, trip, query, ctx) -> str | None:
        available = trip.available_kg(query.required_bucket.value)
        if available < query.total_weight_kg:
            label = "carry-on" if query.required_bucket == CapacityBucket.CARRY_ON else "checked"
            return f"Only {available} kg {label} capacity left, {query.total_weight_kg} kg needed"
        return None


class FragileRule(EligibilityRule):
    name = "fragile"

    def check(self, trip, query, ctx) -> str | None:
        if query.needs_fragile and not trip.can_carry_fragile:
            return "Traveler cannot carry fragile items"
        return None


class SpecialDeliveryRule(EligibilityRule):
    name = "special_delivery"

    def check(self, trip, query, ctx) -> str | None:
        if not query.needs_special_delivery:
            return None
        if not trip.can_handle_special_delivery:
            return "Traveler cannot handle special delivery items"
        declared = {c.lower() for c in (trip.special_delivery_categories or [])}
        missing = sorted(query.special_categories - declared)
        if missing:
            return f"Traveler does not handle: {', '.join(missing)}"
        return None


class LeadTimeRule(EligibilityRule):
    name = "lead_time"

    def check(self, trip, query, ctx) -> str | None:
        if not ctx.enforce_lead_time:
            return None
        required = required_lead_days(query, ctx.min_lead_time_days, ctx.config)
        seconds = (as_utc(trip.departure_at) - as_utc(ctx.now)).total_seconds()
        days_until = math.ceil(seconds / 86400)
        if days_until < required:
            return f"Trip must depart at least {required} days from now, departs in {days_until}"
        return None


# Evaluated in this order; the first failure rejects the trip
RULES: tuple[EligibilityRule, ...] = (
    BookableStatusRule(),
    CapacityRule(),
    FragileRule(),
    SpecialDeliveryRule(),
    LeadTimeRule(),
)


def required_lead_days(query: MatchQuery, base_days: int, config: MatchingConfig = matching_config) -> int:
    """Minimum days between booking and departure, padded for complex orders."""
    mods = config.lead_time
    extra = 0
    if query.total_value > mods.high_value_threshold:
        extra += mods.high_value_extra_days
    if query.item_count > mods.multi_item_threshold:
        extra += mods.multi_item_extra_days
    if query.needs_special_delivery:
        extra += mods.special_delivery_extra_days
    return base_days + extra


def capacity_fit_for(trip: Trip, query: MatchQuery) -> CapacityFit:
    return CapacityFit(
        bucket=query.required_bucket.value,
        fits_carry_on=trip.available_carry_on_kg >= query.total_weight_kg,
        fits_checked=trip.available_checked_kg >= query.total_weight_kg,
        available_carry_on_kg=trip.available_carry_on_kg,
        available_checked_kg=trip.available_checked_kg,
        trip_version=trip.version,
    )


def first_failure(trip: Trip, query: MatchQuery, ctx: RuleContext) -> Rejection | None:
    for rule in RULES:
        reason = rule.check(trip, query, ctx)
        if reason:
            return Rejection(trip_id=str(trip.id), rule=rule.name, reason=reason)
    return None


def make_context(
    now: datetime,
    min_lead_time_days: int | None = None,
    enforce_lead_time: bool | None = None,
    config: MatchingConfig = matching_config,
) -> RuleContext:
    return RuleContext(
        now=now,
        min_lead_time_days=settings.min_lead_time_days if min_lead_time_days is None else min_lead_time_days,
        enforce_lead_time=settings.lead_time_enforced if enforce_lead_time is None else enforce_lead_time,
        config=config,
    )


def filter_candidates(
    candidates: list[Trip],
    query: MatchQuery,
    now: datetime,
    *,
    min_lead_time_days: int | None = None,
    enforce_lead_time: bool | None = None,
    config: MatchingConfig = matching_config,
) -> EligibilityResult:
    """Split candidates into eligible (with capacity snapshot) and rejected."""
    ctx = make_context(now, min_lead_time_days, enforce_lead_time, config)
    result = EligibilityResult()
    for trip in candidates:
        rejection = first_failure(trip, query, ctx)
        if rejection:
            result.rejected.append(rejection)
        else:
            result.eligible.append(EligibleCandidate(trip=trip, capacity_fit=capacity_fit_for(trip, query)))
    return result
