"""Matching service — normalize, find, filter and rank trips for a shopper request."""

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.traveler import TravelerProfile
from app.schemas.request import ShopperRequestPayload
from app.services.candidate_finder import find_candidates
from app.services.eligibility_filter import EligibilityResult, filter_candidates
from app.services.matching_config import MatchingConfig, matching_config
from app.services.request_normalizer import MatchQuery, normalize_request
from app.services.scoring_engine import RankedMatch, rank_candidates
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class MatchingService:
    """Read-only matching pipeline. Never writes to the capacity ledger."""

    def __init__(self, config: MatchingConfig = matching_config):
        self.config = config

    async def find_matches(
        self,
        db: AsyncSession,
        payload: Mapping | ShopperRequestPayload | MatchQuery,
        now: datetime | None = None,
        limit: int | None = None,
        min_score: int | None = None,
    ) -> list[RankedMatch]:
        """Ranked proposed matches for a request payload, highest score first."""
        query = payload if isinstance(payload, MatchQuery) else normalize_request(payload, self.config)
        evaluation = await self._evaluate(db, query, now)
        ratings = await self.load_ratings(db, [c.trip.traveler_id for c in evaluation.eligible])

        ranked = rank_candidates(
            evaluation.eligible,
            query,
            ratings,
            config=self.config,
            limit=settings.max_results_per_search if limit is None else limit,
            min_score=min_score,
        )
        logger.info(
            f"Matching {query.from_country}→{query.to_country} {query.total_weight_kg}kg "
            f"({query.required_bucket.value}): {len(evaluation.eligible)} eligible, "
            f"{len(evaluation.rejected)} rejected, {len(ranked)} returned"
        )
        return ranked

    async def explain(
        self,
        db: AsyncSession,
        payload: Mapping | ShopperRequestPayload | MatchQuery,
        now: datetime | None = None,
    ) -> dict:
        """Diagnostics view: ranked eligible trips plus the first failed rule for each rejected one."""
        query = payload if isinstance(payload, MatchQuery) else normalize_request(payload, self.config)
        evaluation = await self._evaluate(db, query, now)
        ratings = await self.load_ratings(db, [c.trip.traveler_id for c in evaluation.eligible])
        ranked = rank_candidates(evaluation.eligible, query, ratings, config=self.config)
        return {
            "eligible": [m.to_dict() for m in ranked],
            "rejected": [
                {"trip_id": r.trip_id, "rule": r.rule, "reason": r.reason}
                for r in evaluation.rejected
            ],
        }

    async def load_ratings(self, db: AsyncSession, traveler_ids: list[uuid.UUID]) -> dict:
        if not traveler_ids:
            return {}
        result = await db.execute(
            select(TravelerProfile).where(TravelerProfile.traveler_id.in_(set(traveler_ids)))
        )
        # Profiles without any ratings score as new travelers
        return {p.traveler_id: p.rating if p.rating_count else None for p in result.scalars().all()}

    async def _evaluate(self, db: AsyncSession, query: MatchQuery, now: datetime | None) -> EligibilityResult:
        candidates = await find_candidates(db, query)
        return filter_candidates(candidates, query, now or utcnow(), config=self.config)


matching_service = MatchingService()
