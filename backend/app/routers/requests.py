"""Shopper requests router — drafting, listing and ranked trips."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_principal
from app.schemas.auth import Principal
from app.schemas.match import RankedMatchResponse
from app.schemas.request import CancelRequest, PublishRequest, ShopperRequestPayload, ShopperRequestResponse
from app.services.request_service import shopper_request_service

router = APIRouter()


@router.post("", status_code=201, response_model=ShopperRequestResponse)
async def create_request(
    req: ShopperRequestPayload,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await shopper_request_service.create_request(db, principal, req)


@router.get("/{request_id}", response_model=ShopperRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await shopper_request_service.get_request(db, request_id, principal)


@router.post("/{request_id}/publish", response_model=ShopperRequestResponse)
async def publish_request(
    request_id: uuid.UUID,
    req: PublishRequest | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    mode = req.mode if req else "published"
    return await shopper_request_service.publish(db, principal, request_id, mode)


@router.post("/{request_id}/cancel", response_model=ShopperRequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    req: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    reason = req.reason if req else None
    return await shopper_request_service.cancel(db, principal, request_id, reason)


@router.post("/{request_id}/fulfil", response_model=ShopperRequestResponse)
async def fulfil_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await shopper_request_service.fulfil(db, principal, request_id)


@router.get("/{request_id}/matches", response_model=list[RankedMatchResponse])
async def ranked_matches(
    request_id: uuid.UUID,
    limit: int | None = Query(None, ge=1, le=200),
    min_score: int | None = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Current ranking of bookable trips for a stored request."""
    ranked = await shopper_request_service.ranked_matches(
        db, principal, request_id, limit=limit, min_score=min_score
    )
    return [m.to_dict() for m in ranked]
