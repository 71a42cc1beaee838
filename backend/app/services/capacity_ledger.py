"""Capacity ledger — compare-and-swap writes on a trip's luggage allowance.

Every write is a single conditional UPDATE. Reservations are guarded by the
trip's version and the availability predicate; releases are plain increments
whose once-only guarantee comes from the caller's match status transition.
Nothing here commits: callers own the unit of work.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import CapacityConflict, InvalidStateTransition, NotFoundError, ValidationError
from app.models.trip import Trip
from app.services.lifecycle import CapacityBucket, TripStatus, ensure_transition
from app.utils.amounts import MAX_KG, has_two_places

logger = logging.getLogger(__name__)

_AVAILABLE_COLUMNS = {
    CapacityBucket.CARRY_ON.value: "available_carry_on_kg",
    CapacityBucket.CHECKED.value: "available_checked_kg",
}


def _bucket(value) -> str:
    bucket = getattr(value, "value", value)
    if bucket not in _AVAILABLE_COLUMNS:
        raise ValueError(f"Unknown capacity bucket '{bucket}'")
    return bucket


class CapacityLedger:
    """Owns the only mutable shared state of the engine: per-trip availability."""

    async def load(self, db: AsyncSession, trip_id: uuid.UUID) -> Trip:
        """Read the trip's current row, bypassing any stale copy held by the session."""
        result = await db.execute(
            select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise NotFoundError("Trip not found", trip_id=trip_id)
        return trip

    async def reserve(
        self,
        db: AsyncSession,
        trip_id: uuid.UUID,
        bucket: CapacityBucket | str,
        weight_kg: Decimal,
        expected_version: int,
    ) -> None:
        """Deduct ``weight_kg`` from one bucket if the trip is unchanged since ``expected_version``.

        Raises CapacityConflict when another writer got there first or the bucket
        no longer has room.
        """
        column = _AVAILABLE_COLUMNS[_bucket(bucket)]
        available = getattr(Trip, column)
        result = await db.execute(
            update(Trip)
            .where(
                Trip.id == trip_id,
                Trip.version == expected_version,
                Trip.status == TripStatus.ACTIVE.value,
                available >= weight_kg,
            )
            .values({column: available - weight_kg, "version": Trip.version + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                f"Reservation of {weight_kg}kg ({column}) on trip {trip_id} lost at version {expected_version}"
            )
            raise CapacityConflict(
                "Trip capacity changed while booking; re-run matching and try again",
                trip_id=trip_id,
            )

    async def release(
        self,
        db: AsyncSession,
        trip_id: uuid.UUID,
        bucket: CapacityBucket | str,
        weight_kg: Decimal,
    ) -> None:
        """Return ``weight_kg`` to one bucket of the trip."""
        column = _AVAILABLE_COLUMNS[_bucket(bucket)]
        available = getattr(Trip, column)
        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip_id)
            .values({column: available + weight_kg, "version": Trip.version + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Trip not found while releasing capacity", trip_id=trip_id)

    async def adjust_capacity(
        self,
        db: AsyncSession,
        trip: Trip,
        carry_on_capacity_kg: Decimal | None = None,
        checked_capacity_kg: Decimal | None = None,
    ) -> None:
        """Change declared capacity, shifting availability by the same delta.

        A bucket can never shrink below the weight already reserved on it.
        """
        if trip.status not in (TripStatus.PENDING.value, TripStatus.ACTIVE.value):
            raise InvalidStateTransition(
                "trip",
                trip.status,
                trip.status,
                message=f"Capacity of a {trip.status} trip can no longer change",
                trip_id=trip.id,
            )

        values = {"version": Trip.version + 1}
        for field, new_capacity, available_field in (
            ("carry_on_capacity_kg", carry_on_capacity_kg, "available_carry_on_kg"),
            ("checked_capacity_kg", checked_capacity_kg, "available_checked_kg"),
        ):
            if new_capacity is None:
                continue
            if not (0 < new_capacity <= MAX_KG):
                raise ValidationError(field, f"Capacity must be greater than 0 and at most {MAX_KG} kg")
            if not has_two_places(new_capacity):
                raise ValidationError(field, "Capacity must have at most 2 decimal places")
            reserved = getattr(trip, field) - getattr(trip, available_field)
            if new_capacity < reserved:
                raise ValidationError(
                    field, f"Cannot reduce capacity below the {reserved} kg already reserved"
                )
            values[field] = new_capacity
            values[available_field] = new_capacity - reserved

        if len(values) == 1:
            return

        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip.id, Trip.version == trip.version)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CapacityConflict("Trip changed while adjusting capacity; reload and retry", trip_id=trip.id)

    async def set_status(
        self,
        db: AsyncSession,
        trip: Trip,
        target: TripStatus,
        **values,
    ) -> None:
        """Move a trip to ``target`` if it is still in the status we observed."""
        ensure_transition("trip", trip.status, target, trip_id=trip.id)
        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip.id, Trip.status == trip.status)
            .values(status=target.value, version=Trip.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.load(db, trip.id)
            ensure_transition("trip", current.status, target, trip_id=trip.id)
            raise CapacityConflict("Trip changed concurrently; reload and retry", trip_id=trip.id)


capacity_ledger = CapacityLedger()
