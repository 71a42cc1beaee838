"""Shopper request service — draft, publish, cancel and fulfil requests."""

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.errors import EngineError, InvalidStateTransition, NotFoundError, ValidationError
from app.models.match import Match
from app.models.shopper_request import BagItem, ShopperRequest
from app.schemas.auth import Principal
from app.schemas.request import ShopperRequestPayload
from app.services.access import require_owner, require_role
from app.services.booking_coordinator import booking_coordinator
from app.services.lifecycle import MatchStatus, RequestStatus, ensure_transition
from app.services.matching_service import matching_service
from app.services.request_normalizer import build_query, query_for_request, validate_payload
from app.services.scoring_engine import RankedMatch
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

LISTING_MODES = (RequestStatus.PUBLISHED.value, RequestStatus.MARKETPLACE.value)


class ShopperRequestService:
    async def create_request(
        self,
        db: AsyncSession,
        principal: Principal,
        raw: Mapping | ShopperRequestPayload,
    ) -> ShopperRequest:
        """Validate a payload and store it as a draft request."""
        require_role(principal, "shopper")
        payload = validate_payload(raw)
        query = build_query(payload)

        request = ShopperRequest(
            shopper_id=principal.subject_id,
            from_country=payload.from_country,
            destination_country=payload.destination_country,
            delivery_window_start=payload.delivery_window_start,
            delivery_window_end=payload.delivery_window_end,
            pickup=payload.pickup,
            carry_on=payload.carry_on,
            total_weight_kg=query.total_weight_kg,
            status=RequestStatus.DRAFT.value,
            bag_items=[
                BagItem(
                    position=i,
                    product_name=item.product_name,
                    link=item.link,
                    price=item.price,
                    currency=item.currency,
                    weight_kg=item.weight_kg,
                    quantity=item.quantity,
                    is_fragile=item.is_fragile,
                    requires_special_delivery=item.requires_special_delivery,
                    special_delivery_category=item.special_delivery_category,
                    photos=list(item.photos),
                )
                for i, item in enumerate(payload.bag_items)
            ],
        )
        db.add(request)
        await db.commit()

        logger.info(
            f"Request {request.id} drafted by shopper {principal.subject_id}: "
            f"{len(payload.bag_items)} items, {query.total_weight_kg}kg"
        )
        return await self.get_request(db, request.id)

    async def get_request(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
        principal: Principal | None = None,
    ) -> ShopperRequest:
        result = await db.execute(
            select(ShopperRequest)
            .where(ShopperRequest.id == request_id)
            .options(selectinload(ShopperRequest.bag_items))
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Shopper request not found", request_id=request_id)
        if principal is not None and not principal.is_admin:
            require_owner(principal, request.shopper_id, "request")
        return request

    async def publish(
        self,
        db: AsyncSession,
        principal: Principal,
        request_id: uuid.UUID,
        mode: str = RequestStatus.PUBLISHED.value,
        now: datetime | None = None,
    ) -> ShopperRequest:
        """List a draft request, either directly to travelers or on the marketplace."""
        if mode not in LISTING_MODES:
            raise ValidationError("mode", "Mode must be 'published' or 'marketplace'")
        now = now or utcnow()
        require_role(principal, "shopper")
        request = await self.get_request(db, request_id, principal)
        current_status = request.status
        ensure_transition("request", current_status, mode, request_id=request_id)

        result = await db.execute(
            update(ShopperRequest)
            .where(ShopperRequest.id == request_id, ShopperRequest.status == current_status)
            .values(status=mode, listing_mode=mode, published_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise InvalidStateTransition(
                "request", current_status, mode, message="Request changed concurrently", request_id=request_id
            )
        await db.commit()

        logger.info(f"Request {request_id} listed as {mode}")
        return await self.get_request(db, request_id)

    async def cancel(
        self,
        db: AsyncSession,
        principal: Principal,
        request_id: uuid.UUID,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> ShopperRequest:
        """Withdraw a request; any live match on it is cancelled and its capacity released."""
        now = now or utcnow()
        require_role(principal, "shopper")
        request = await self.get_request(db, request_id, principal)
        current_status = request.status
        ensure_transition("request", current_status, RequestStatus.CANCELLED, request_id=request_id)

        try:
            released = await booking_coordinator.release_live_matches(
                db, request_id=request_id, now=now, restore_request=False
            )
            result = await db.execute(
                update(ShopperRequest)
                .where(ShopperRequest.id == request_id, ShopperRequest.status == current_status)
                .values(status=RequestStatus.CANCELLED.value, cancelled_at=now, cancellation_reason=reason)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateTransition(
                    "request",
                    current_status,
                    RequestStatus.CANCELLED.value,
                    message="Request changed concurrently",
                    request_id=request_id,
                )
            await db.commit()
        except EngineError as e:
            await db.rollback()
            logger.warning(f"Cancelling request {request_id} failed: {e.message}")
            raise

        logger.info(f"Request {request_id} cancelled; released {len(released)} live matches")
        return await self.get_request(db, request_id)

    async def fulfil(
        self,
        db: AsyncSession,
        principal: Principal,
        request_id: uuid.UUID,
        now: datetime | None = None,
    ) -> ShopperRequest:
        """Shopper confirms delivery of a request whose match the traveler accepted."""
        now = now or utcnow()
        require_role(principal, "shopper")
        request = await self.get_request(db, request_id, principal)
        current_status = request.status
        ensure_transition("request", current_status, RequestStatus.FULFILLED, request_id=request_id)

        accepted = await db.execute(
            select(Match.id).where(
                Match.request_id == request_id, Match.status == MatchStatus.ACCEPTED.value
            )
        )
        if accepted.scalar_one_or_none() is None:
            raise InvalidStateTransition(
                "request",
                current_status,
                RequestStatus.FULFILLED.value,
                message="Request can only be fulfilled once its traveler has accepted the match",
                request_id=request_id,
            )

        result = await db.execute(
            update(ShopperRequest)
            .where(ShopperRequest.id == request_id, ShopperRequest.status == RequestStatus.MATCHED.value)
            .values(status=RequestStatus.FULFILLED.value, fulfilled_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise InvalidStateTransition(
                "request", current_status, RequestStatus.FULFILLED.value, request_id=request_id
            )
        await db.commit()

        logger.info(f"Request {request_id} fulfilled")
        return await self.get_request(db, request_id)

    async def ranked_matches(
        self,
        db: AsyncSession,
        principal: Principal,
        request_id: uuid.UUID,
        limit: int | None = None,
        min_score: int | None = None,
        now: datetime | None = None,
    ) -> list[RankedMatch]:
        """Current ranking of trips for a stored request."""
        request = await self.get_request(db, request_id, principal)
        return await matching_service.find_matches(
            db, query_for_request(request), now=now, limit=limit, min_score=min_score
        )


shopper_request_service = ShopperRequestService()
