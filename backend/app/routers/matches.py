"""Matches router — search, booking and the traveler response workflow."""

import uuid

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_principal, require_admin
from app.schemas.auth import Principal
from app.schemas.match import BookRequest, ExplainResponse, MatchResponse, RankedMatchResponse, RespondRequest
from app.services.booking_coordinator import booking_coordinator
from app.services.matching_service import matching_service

router = APIRouter()


@router.post("/search", response_model=list[RankedMatchResponse])
async def search_matches(
    payload: dict = Body(...),
    limit: int | None = Query(None, ge=1, le=200),
    min_score: int | None = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Rank bookable trips for a raw request payload without storing anything."""
    ranked = await matching_service.find_matches(db, payload, limit=limit, min_score=min_score)
    return [m.to_dict() for m in ranked]


@router.post("/search/explain", response_model=ExplainResponse)
async def explain_matches(
    payload: dict = Body(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Ranked trips plus the rule that excluded each rejected trip."""
    return await matching_service.explain(db, payload)


@router.post("", status_code=201, response_model=MatchResponse)
async def book_match(
    req: BookRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await booking_coordinator.book(
        db, principal, req.request_id, req.trip_id, expected_version=req.expected_version
    )


@router.post("/expire-stale", response_model=list[MatchResponse])
async def expire_stale(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return await booking_coordinator.expire_stale(db)


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await booking_coordinator.get_match(db, principal, match_id)


@router.post("/{match_id}/respond", response_model=MatchResponse)
async def respond_to_match(
    match_id: uuid.UUID,
    req: RespondRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await booking_coordinator.respond(db, principal, match_id, req.decision)


@router.post("/{match_id}/cancel", response_model=MatchResponse)
async def cancel_match(
    match_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await booking_coordinator.cancel(db, principal, match_id)
