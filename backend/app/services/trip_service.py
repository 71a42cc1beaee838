"""Trip service — itinerary creation, capacity changes and lifecycle moves."""

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal

import pydantic
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.countries import is_arrival_country, is_departure_country, to_country_code
from app.errors import EngineError, InvalidStateTransition, ValidationError
from app.models.trip import Trip
from app.schemas.auth import Principal
from app.schemas.trip import CreateTripRequest
from app.services.access import require_owner, require_role
from app.services.booking_coordinator import booking_coordinator
from app.services.capacity_ledger import capacity_ledger
from app.services.lifecycle import TripStatus, ensure_transition
from app.services.request_normalizer import field_from_loc
from app.utils.amounts import MAX_KG, has_two_places
from app.utils.dates import as_utc, local_date, local_to_utc, utcnow

logger = logging.getLogger(__name__)

# Timestamp column stamped by each lifecycle move
_STAMPS = {
    TripStatus.ACTIVE: "activated_at",
    TripStatus.AIRBORNE: "airborne_at",
    TripStatus.ARRIVED: "arrived_at",
    TripStatus.COMPLETED: "completed_at",
    TripStatus.CANCELLED: "cancelled_at",
}


class TripService:
    async def create_trip(
        self,
        db: AsyncSession,
        principal: Principal,
        data: CreateTripRequest | Mapping,
    ) -> Trip:
        """Validate an itinerary and store it as a pending trip with full availability."""
        require_role(principal, "traveler")
        if not isinstance(data, CreateTripRequest):
            try:
                data = CreateTripRequest.model_validate(data)
            except pydantic.ValidationError as e:
                first = e.errors()[0]
                raise ValidationError(field_from_loc(first["loc"]), first["msg"]) from e

        origin = to_country_code(data.origin_country)
        if not origin or not is_departure_country(origin):
            raise ValidationError("origin_country", f"Unsupported departure country '{data.origin_country}'")
        destination = to_country_code(data.destination_country)
        if not destination or not is_arrival_country(destination):
            raise ValidationError(
                "destination_country", f"Unsupported destination country '{data.destination_country}'"
            )

        try:
            departure_at = local_to_utc(data.departure_date, data.departure_time, data.departure_tz)
        except ValueError as e:
            raise ValidationError("departure_tz", str(e)) from e
        try:
            arrival_at = local_to_utc(data.arrival_date, data.arrival_time, data.arrival_tz)
        except ValueError as e:
            raise ValidationError("arrival_tz", str(e)) from e
        if departure_at >= arrival_at:
            raise ValidationError("arrival_date", "Arrival must be after departure")

        for field in ("carry_on_capacity_kg", "checked_capacity_kg"):
            capacity = getattr(data, field)
            if not (0 < capacity <= MAX_KG):
                raise ValidationError(field, f"Capacity must be greater than 0 and at most {MAX_KG} kg")
            if not has_two_places(capacity):
                raise ValidationError(field, "Capacity must have at most 2 decimal places")

        categories = sorted({c.strip().lower() for c in data.special_delivery_categories if c.strip()})
        if categories and not data.can_handle_special_delivery:
            raise ValidationError(
                "special_delivery_categories",
                "Special delivery categories require can_handle_special_delivery",
            )

        trip = Trip(
            traveler_id=principal.subject_id,
            origin_country=origin,
            destination_country=destination,
            departure_at=departure_at,
            departure_tz=data.departure_tz,
            arrival_at=arrival_at,
            arrival_tz=data.arrival_tz,
            arrival_date=local_date(arrival_at, data.arrival_tz),
            carry_on_capacity_kg=data.carry_on_capacity_kg,
            checked_capacity_kg=data.checked_capacity_kg,
            available_carry_on_kg=data.carry_on_capacity_kg,
            available_checked_kg=data.checked_capacity_kg,
            can_carry_fragile=data.can_carry_fragile,
            can_handle_special_delivery=data.can_handle_special_delivery,
            special_delivery_categories=categories,
            ticket_photo_url=data.ticket_photo_url,
            status=TripStatus.PENDING.value,
            version=1,
        )
        db.add(trip)
        await db.commit()
        await db.refresh(trip)

        logger.info(f"Trip {trip.id} created by traveler {principal.subject_id}: {origin}→{destination}")
        return trip

    async def get_trip(self, db: AsyncSession, trip_id: uuid.UUID) -> Trip:
        return await capacity_ledger.load(db, trip_id)

    async def list_trips(
        self,
        db: AsyncSession,
        principal: Principal,
        status: str | None = None,
    ) -> list[Trip]:
        query = select(Trip).where(Trip.traveler_id == principal.subject_id)
        if status:
            query = query.where(Trip.status == status)
        result = await db.execute(query.order_by(Trip.departure_at, Trip.id))
        return list(result.scalars().all())

    async def activate(
        self, db: AsyncSession, principal: Principal, trip_id: uuid.UUID, now: datetime | None = None
    ) -> Trip:
        """Open a pending trip for booking."""
        now = now or utcnow()
        trip = await self._owned_trip(db, principal, trip_id)
        if as_utc(trip.departure_at) <= as_utc(now):
            raise InvalidStateTransition(
                "trip",
                trip.status,
                TripStatus.ACTIVE.value,
                message="Trip has already departed and cannot be activated",
                trip_id=trip.id,
            )
        return await self._move(db, trip, TripStatus.ACTIVE, now)

    async def mark_airborne(
        self, db: AsyncSession, trip_id: uuid.UUID, principal: Principal | None = None, now: datetime | None = None
    ) -> Trip:
        trip = await self._trip_for(db, principal, trip_id)
        return await self._move(db, trip, TripStatus.AIRBORNE, now or utcnow())

    async def mark_arrived(
        self, db: AsyncSession, trip_id: uuid.UUID, principal: Principal | None = None, now: datetime | None = None
    ) -> Trip:
        trip = await self._trip_for(db, principal, trip_id)
        return await self._move(db, trip, TripStatus.ARRIVED, now or utcnow())

    async def complete(
        self, db: AsyncSession, trip_id: uuid.UUID, principal: Principal | None = None, now: datetime | None = None
    ) -> Trip:
        trip = await self._trip_for(db, principal, trip_id)
        return await self._move(db, trip, TripStatus.COMPLETED, now or utcnow())

    async def cancel(
        self,
        db: AsyncSession,
        principal: Principal,
        trip_id: uuid.UUID,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Trip:
        """Cancel a pending or active trip.

        Every live match on the trip is cancelled with it: its reservation is
        released and the request goes back to the listing it came from.
        """
        now = now or utcnow()
        trip = await self._owned_trip(db, principal, trip_id)
        ensure_transition("trip", trip.status, TripStatus.CANCELLED, trip_id=trip.id)

        try:
            released = await booking_coordinator.release_live_matches(db, trip_id=trip.id, now=now)
            await capacity_ledger.set_status(
                db, trip, TripStatus.CANCELLED, cancelled_at=now, cancellation_reason=reason
            )
            await db.commit()
        except EngineError as e:
            await db.rollback()
            logger.warning(f"Cancelling trip {trip_id} failed: {e.message}")
            raise

        logger.info(f"Trip {trip_id} cancelled; released {len(released)} live matches")
        return await capacity_ledger.load(db, trip_id)

    async def adjust_capacity(
        self,
        db: AsyncSession,
        principal: Principal,
        trip_id: uuid.UUID,
        carry_on_capacity_kg: Decimal | None = None,
        checked_capacity_kg: Decimal | None = None,
    ) -> Trip:
        trip = await self._owned_trip(db, principal, trip_id)
        try:
            await capacity_ledger.adjust_capacity(db, trip, carry_on_capacity_kg, checked_capacity_kg)
            await db.commit()
        except EngineError:
            await db.rollback()
            raise

        logger.info(
            f"Trip {trip_id} capacity adjusted: carry-on={carry_on_capacity_kg} checked={checked_capacity_kg}"
        )
        return await capacity_ledger.load(db, trip_id)

    async def advance_trip_statuses(self, db: AsyncSession, now: datetime | None = None) -> dict:
        """Move departed trips to airborne and landed trips to arrived."""
        now = now or utcnow()
        counts = {"airborne": 0, "arrived": 0}

        for source, target, instant, key in (
            (TripStatus.ACTIVE, TripStatus.AIRBORNE, Trip.departure_at, "airborne"),
            (TripStatus.AIRBORNE, TripStatus.ARRIVED, Trip.arrival_at, "arrived"),
        ):
            result = await db.execute(
                select(Trip.id)
                .where(Trip.status == source.value, instant <= now)
                .order_by(instant, Trip.id)
            )
            for trip_id in list(result.scalars().all()):
                trip = await capacity_ledger.load(db, trip_id)
                try:
                    await capacity_ledger.set_status(db, trip, target, **{_STAMPS[target]: now})
                    await db.commit()
                except EngineError as e:
                    await db.rollback()
                    logger.info(f"Skipped moving trip {trip_id} to {target.value}: {e.message}")
                    continue
                counts[key] += 1

        if counts["airborne"] or counts["arrived"]:
            logger.info(f"Trip progress sweep: {counts['airborne']} airborne, {counts['arrived']} arrived")
        return counts

    async def _move(self, db: AsyncSession, trip: Trip, target: TripStatus, now: datetime) -> Trip:
        trip_id, current = trip.id, trip.status
        try:
            await capacity_ledger.set_status(db, trip, target, **{_STAMPS[target]: now})
            await db.commit()
        except EngineError as e:
            await db.rollback()
            logger.warning(f"Trip {trip_id} {current}→{target.value} failed: {e.message}")
            raise
        logger.info(f"Trip {trip_id} is now {target.value}")
        return await capacity_ledger.load(db, trip_id)

    async def _owned_trip(self, db: AsyncSession, principal: Principal, trip_id: uuid.UUID) -> Trip:
        require_role(principal, "traveler")
        trip = await capacity_ledger.load(db, trip_id)
        require_owner(principal, trip.traveler_id, "trip")
        return trip

    async def _trip_for(self, db: AsyncSession, principal: Principal | None, trip_id: uuid.UUID) -> Trip:
        # No principal means the scheduler is driving the move
        if principal is None:
            return await capacity_ledger.load(db, trip_id)
        return await self._owned_trip(db, principal, trip_id)


trip_service = TripService()
