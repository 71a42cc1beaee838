"""Trips router — traveler itineraries, capacity and lifecycle."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_principal
from app.schemas.auth import Principal
from app.schemas.trip import AdjustCapacityRequest, CancelTripRequest, CreateTripRequest, TripResponse
from app.services.trip_service import trip_service

router = APIRouter()


@router.post("", status_code=201, response_model=TripResponse)
async def create_trip(
    req: CreateTripRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Declare a trip; it stays pending until activated."""
    return await trip_service.create_trip(db, principal, req)


@router.get("", response_model=list[TripResponse])
async def list_trips(
    status: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List the caller's own trips."""
    return await trip_service.list_trips(db, principal, status)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.get_trip(db, trip_id)


@router.post("/{trip_id}/activate", response_model=TripResponse)
async def activate_trip(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.activate(db, principal, trip_id)


@router.post("/{trip_id}/airborne", response_model=TripResponse)
async def mark_airborne(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.mark_airborne(db, trip_id, principal)


@router.post("/{trip_id}/arrived", response_model=TripResponse)
async def mark_arrived(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.mark_arrived(db, trip_id, principal)


@router.post("/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.complete(db, trip_id, principal)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: uuid.UUID,
    req: CancelTripRequest | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Cancel the trip and release every live match booked on it."""
    reason = req.reason if req else None
    return await trip_service.cancel(db, principal, trip_id, reason)


@router.patch("/{trip_id}/capacity", response_model=TripResponse)
async def adjust_capacity(
    trip_id: uuid.UUID,
    req: AdjustCapacityRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await trip_service.adjust_capacity(
        db, principal, trip_id, req.carry_on_capacity_kg, req.checked_capacity_kg
    )
