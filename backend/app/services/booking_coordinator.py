"""Booking coordinator — turns a proposed match into a reservation and drives its lifecycle."""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.errors import (
    AuthorizationError,
    CapacityConflict,
    EngineError,
    IneligibleTrip,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from app.models.match import Match
from app.models.shopper_request import ShopperRequest
from app.schemas.auth import Principal
from app.services.access import require_owner, require_role
from app.services.capacity_ledger import capacity_ledger
from app.services.eligibility_filter import EligibleCandidate, capacity_fit_for, first_failure, make_context
from app.services.lifecycle import (
    BOOKABLE_REQUEST_STATUSES,
    LIVE_MATCH_STATUSES,
    MatchStatus,
    RequestStatus,
    ensure_transition,
)
from app.services.matching_service import matching_service
from app.services.request_normalizer import query_for_request
from app.services.scoring_engine import score_candidate
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

DECISIONS = ("accept", "decline")


class BookingCoordinator:
    """Reservation, traveler response, cancellation and expiry of matches."""

    async def book(
        self,
        db: AsyncSession,
        principal: Principal,
        request_id: uuid.UUID,
        trip_id: uuid.UUID,
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> Match:
        """Reserve capacity on ``trip_id`` for the request and create a pending match.

        The trip deduction, the request moving to matched and the new match row
        commit together or not at all. Losing a race for the trip's capacity
        raises CapacityConflict; the caller must re-run matching.
        """
        now = now or utcnow()
        require_role(principal, "shopper")

        request = await self._load_request(db, request_id)
        require_owner(principal, request.shopper_id, "request")
        if request.status not in {s.value for s in BOOKABLE_REQUEST_STATUSES}:
            raise InvalidStateTransition(
                "request",
                request.status,
                RequestStatus.MATCHED.value,
                message=f"Request is {request.status}; only published requests can be booked",
                request_id=request.id,
            )

        trip = await capacity_ledger.load(db, trip_id)
        if expected_version is not None and trip.version != expected_version:
            raise CapacityConflict(
                "Trip availability changed since matching; re-run matching and try again",
                trip_id=trip.id,
            )

        query = query_for_request(request)
        rejection = first_failure(trip, query, make_context(now))
        if rejection:
            logger.info(f"Booking request {request.id} on trip {trip.id} rejected by {rejection.rule}")
            if rejection.rule == "capacity":
                raise CapacityConflict(rejection.reason, request_id=request.id, trip_id=trip.id)
            raise IneligibleTrip(rejection.reason, rule=rejection.rule, request_id=request.id, trip_id=trip.id)

        ratings = await matching_service.load_ratings(db, [trip.traveler_id])
        candidate = EligibleCandidate(trip=trip, capacity_fit=capacity_fit_for(trip, query))
        ranked = score_candidate(candidate, query, ratings.get(trip.traveler_id))
        bucket = query.required_bucket.value
        current_status = request.status

        try:
            await capacity_ledger.reserve(db, trip.id, bucket, query.total_weight_kg, trip.version)

            moved = await db.execute(
                update(ShopperRequest)
                .where(
                    ShopperRequest.id == request.id,
                    ShopperRequest.status.in_([s.value for s in BOOKABLE_REQUEST_STATUSES]),
                )
                .values(status=RequestStatus.MATCHED.value)
                .execution_options(synchronize_session=False)
            )
            if moved.rowcount != 1:
                raise InvalidStateTransition(
                    "request",
                    current_status,
                    RequestStatus.MATCHED.value,
                    message="Request was booked or cancelled concurrently",
                    request_id=request.id,
                )

            match = Match(
                request_id=request.id,
                trip_id=trip.id,
                shopper_id=request.shopper_id,
                traveler_id=trip.traveler_id,
                match_score=ranked.match_score,
                capacity_fit=ranked.capacity_fit.to_dict(),
                rationale=ranked.rationale,
                status=MatchStatus.PENDING.value,
                reserved_bucket=bucket,
                reserved_kg=query.total_weight_kg,
                expires_at=now + timedelta(hours=settings.match_response_window_hours),
            )
            db.add(match)
            await db.flush()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Duplicate live match for request {request_id} on trip {trip_id}")
            raise InvalidStateTransition(
                "match",
                MatchStatus.PROPOSED.value,
                MatchStatus.PENDING.value,
                message="A live match already exists for this request and trip",
                request_id=request_id,
                trip_id=trip_id,
            ) from e
        except EngineError as e:
            await db.rollback()
            logger.warning(f"Booking request {request_id} on trip {trip_id} failed: {e.message}")
            raise

        await db.refresh(match)
        await db.refresh(request)
        logger.info(
            f"Match {match.id} pending: request {request.id} reserved {query.total_weight_kg}kg "
            f"{bucket} on trip {trip.id} (score {match.match_score})"
        )
        return match

    async def respond(
        self,
        db: AsyncSession,
        principal: Principal,
        match_id: uuid.UUID,
        decision: str,
        now: datetime | None = None,
    ) -> Match:
        """Traveler accepts or declines a pending match on their trip."""
        now = now or utcnow()
        decision = (decision or "").strip().lower()
        if decision not in DECISIONS:
            raise ValidationError("decision", "Decision must be 'accept' or 'decline'")

        require_role(principal, "traveler")
        match = await self._load_match(db, match_id)
        require_owner(principal, match.traveler_id, "trip")

        if decision == "decline":
            try:
                await self._release(db, match, MatchStatus.DECLINED, now)
                await db.commit()
            except EngineError:
                await db.rollback()
                raise
            return await self._load_match(db, match_id)

        ensure_transition("match", match.status, MatchStatus.ACCEPTED, match_id=match.id)
        if as_utc(match.expires_at) <= as_utc(now):
            raise InvalidStateTransition(
                "match",
                match.status,
                MatchStatus.ACCEPTED.value,
                message="The response window for this match has closed",
                match_id=match.id,
            )

        result = await db.execute(
            update(Match)
            .where(Match.id == match.id, Match.status == MatchStatus.PENDING.value)
            .values(status=MatchStatus.ACCEPTED.value, responded_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            current = await self._load_match(db, match_id)
            raise InvalidStateTransition(
                "match", current.status, MatchStatus.ACCEPTED.value, match_id=match_id
            )
        await db.commit()

        logger.info(f"Match {match.id} accepted by traveler {principal.subject_id}")
        return await self._load_match(db, match_id)

    async def cancel(
        self,
        db: AsyncSession,
        principal: Principal,
        match_id: uuid.UUID,
        now: datetime | None = None,
    ) -> Match:
        """Either party withdraws a pending or accepted match before fulfilment."""
        now = now or utcnow()
        match = await self._load_match(db, match_id)
        if principal.subject_id == match.shopper_id:
            require_role(principal, "shopper")
        else:
            require_role(principal, "traveler")
            require_owner(principal, match.traveler_id, "match")

        request = await db.get(ShopperRequest, match.request_id, populate_existing=True)
        if request and request.status == RequestStatus.FULFILLED.value:
            raise InvalidStateTransition(
                "match",
                match.status,
                MatchStatus.CANCELLED.value,
                message="Match cannot be cancelled after the request was fulfilled",
                match_id=match.id,
            )

        try:
            await self._release(db, match, MatchStatus.CANCELLED, now)
            await db.commit()
        except EngineError:
            await db.rollback()
            raise
        return await self._load_match(db, match_id)

    async def expire_stale(self, db: AsyncSession, now: datetime | None = None) -> list[Match]:
        """Expire every pending match whose response window has closed.

        Each match is released in its own transaction; a match answered by its
        traveler while the sweep runs is skipped.
        """
        now = now or utcnow()
        result = await db.execute(
            select(Match.id)
            .where(Match.status == MatchStatus.PENDING.value, Match.expires_at <= now)
            .order_by(Match.expires_at, Match.id)
        )
        stale_ids = list(result.scalars().all())

        expired = []
        for match_id in stale_ids:
            match = await self._load_match(db, match_id)
            try:
                await self._release(db, match, MatchStatus.EXPIRED, now)
                await db.commit()
            except InvalidStateTransition as e:
                await db.rollback()
                logger.info(f"Skipped expiring match {match_id}: {e.message}")
                continue
            expired.append(await self._load_match(db, match_id))

        if expired:
            logger.info(f"Expired {len(expired)} stale pending matches")
        return expired

    async def release_live_matches(
        self,
        db: AsyncSession,
        *,
        trip_id: uuid.UUID | None = None,
        request_id: uuid.UUID | None = None,
        now: datetime | None = None,
        restore_request: bool = True,
    ) -> list[uuid.UUID]:
        """Cancel every pending/accepted match on a trip or request. Does not commit."""
        now = now or utcnow()
        stmt = select(Match).where(Match.status.in_([s.value for s in LIVE_MATCH_STATUSES]))
        if trip_id is not None:
            stmt = stmt.where(Match.trip_id == trip_id)
        if request_id is not None:
            stmt = stmt.where(Match.request_id == request_id)
        result = await db.execute(stmt.order_by(Match.created_at, Match.id).execution_options(populate_existing=True))

        released = []
        for match in result.scalars().all():
            await self._release(db, match, MatchStatus.CANCELLED, now, restore_request=restore_request)
            released.append(match.id)
        return released

    async def get_match(self, db: AsyncSession, principal: Principal, match_id: uuid.UUID) -> Match:
        match = await self._load_match(db, match_id)
        if not principal.is_admin and principal.subject_id not in (match.shopper_id, match.traveler_id):
            raise AuthorizationError("Caller is not a party to this match", match_id=match_id)
        return match

    async def _release(
        self,
        db: AsyncSession,
        match: Match,
        target: MatchStatus,
        now: datetime,
        restore_request: bool = True,
    ) -> None:
        """Shared path for decline, expiry and cancellation.

        The status change is a compare-and-swap on the status we observed, so a
        match can only ever hand its reserved weight back once.
        """
        ensure_transition("match", match.status, target, match_id=match.id)

        holds_reservation = match.released_at is None
        values = {"status": target.value}
        if holds_reservation:
            values["released_at"] = now
        if target == MatchStatus.DECLINED:
            values["responded_at"] = now

        result = await db.execute(
            update(Match)
            .where(Match.id == match.id, Match.status == match.status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self._load_match(db, match.id)
            raise InvalidStateTransition("match", current.status, target.value, match_id=match.id)

        if holds_reservation:
            await capacity_ledger.release(db, match.trip_id, match.reserved_bucket, match.reserved_kg)

        if restore_request:
            # Back to wherever the shopper listed it
            await db.execute(
                update(ShopperRequest)
                .where(
                    ShopperRequest.id == match.request_id,
                    ShopperRequest.status == RequestStatus.MATCHED.value,
                )
                .values(status=func.coalesce(ShopperRequest.listing_mode, RequestStatus.PUBLISHED.value))
                .execution_options(synchronize_session=False)
            )

        logger.info(
            f"Match {match.id} {target.value}: released {match.reserved_kg}kg {match.reserved_bucket} "
            f"to trip {match.trip_id} (request {match.request_id})"
        )

    async def _load_match(self, db: AsyncSession, match_id: uuid.UUID) -> Match:
        result = await db.execute(
            select(Match).where(Match.id == match_id).execution_options(populate_existing=True)
        )
        match = result.scalar_one_or_none()
        if not match:
            raise NotFoundError("Match not found", match_id=match_id)
        return match

    async def _load_request(self, db: AsyncSession, request_id: uuid.UUID) -> ShopperRequest:
        result = await db.execute(
            select(ShopperRequest)
            .where(ShopperRequest.id == request_id)
            .options(selectinload(ShopperRequest.bag_items))
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Shopper request not found", request_id=request_id)
        return request


booking_coordinator = BookingCoordinator()
