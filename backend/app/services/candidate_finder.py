"""Trip candidate finder — route and arrival-window lookup, no capacity filtering."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.trip import Trip
from app.services.lifecycle import DISCOVERABLE_TRIP_STATUSES
from app.services.request_normalizer import MatchQuery

logger = logging.getLogger(__name__)


async def find_candidates(db: AsyncSession, query: MatchQuery) -> list[Trip]:
    """Trips on the query's route arriving inside the delivery window (inclusive).

    Pending trips are included so diagnostics can explain why they are not bookable.
    """
    result = await db.execute(
        select(Trip)
        .where(
            Trip.status.in_([s.value for s in DISCOVERABLE_TRIP_STATUSES]),
            Trip.origin_country == query.from_country,
            Trip.destination_country == query.to_country,
            Trip.arrival_date >= query.window_start,
            Trip.arrival_date <= query.window_end,
        )
        .order_by(Trip.created_at, Trip.id)
        .execution_options(populate_existing=True)
    )
    trips = list(result.scalars().all())
    logger.debug(
        f"Found {len(trips)} candidate trips for {query.from_country}→{query.to_country} "
        f"{query.window_start}..{query.window_end}"
    )
    return trips
