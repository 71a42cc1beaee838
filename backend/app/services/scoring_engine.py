"""Scoring engine — ranks eligible trips with deterministic date/capacity/reliability weights."""

import math
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.services.eligibility_filter import CapacityFit, EligibleCandidate
from app.services.lifecycle import CapacityBucket, MatchStatus
from app.services.matching_config import DateFitCurve, MatchingConfig, ReliabilityScale, matching_config
from app.services.request_normalizer import MatchQuery
from app.utils.dates import as_utc


@dataclass(frozen=True)
class SubScores:
    date_fit: float
    capacity_margin: float
    reliability: float


@dataclass(frozen=True)
class RankedMatch:
    """A proposed (never persisted) pairing of the query with one trip."""
    trip: object
    match_score: int
    sub_scores: SubScores
    margin_ratio: float
    capacity_fit: CapacityFit
    rationale: list[str]
    status: str = MatchStatus.PROPOSED.value

    def to_dict(self) -> dict:
        return {
            "trip_id": self.trip.id,
            "traveler_id": self.trip.traveler_id,
            "status": self.status,
            "match_score": self.match_score,
            "date_fit": round(self.sub_scores.date_fit, 1),
            "capacity_margin": round(self.sub_scores.capacity_margin, 1),
            "reliability": round(self.sub_scores.reliability, 1),
            "capacity_fit": self.capacity_fit.to_dict(),
            "rationale": self.rationale,
            "arrival_date": self.trip.arrival_date.isoformat(),
        }


def date_fit_score(arrival: date, window_start: date, window_end: date, curve: DateFitCurve | None = None) -> float:
    """
    Score how well an arrival date sits inside the delivery window (0-100).

    Full marks through the first quarter of the window, then a linear decay to 0
    at the window's far edge. A single-day window only rewards an exact match.
    """
    curve = curve or matching_config.date_fit
    width = (window_end - window_start).days
    offset = (arrival - window_start).days

    if width == 0:
        return 100.0 if offset == 0 else 0.0
    if offset < 0 or offset > width:
        return 0.0

    position = offset / width
    if position <= curve.full_score_fraction:
        return 100.0
    return 100.0 * (1.0 - position) / (1.0 - curve.full_score_fraction)


def capacity_margin_ratio(available: Decimal, capacity: Decimal, needed: Decimal) -> float:
    """Spare capacity left after the fit, as a fraction of the bucket's declared capacity."""
    if capacity <= 0:
        return 0.0
    ratio = float((available - needed) / capacity)
    return min(max(ratio, 0.0), 1.0)


def reliability_score(rating: Decimal | float | None, scale: ReliabilityScale | None = None) -> float:
    scale = scale or matching_config.reliability
    if rating is None:
        return scale.neutral_score
    clipped = min(max(float(rating), 0.0), scale.max_rating)
    return clipped / scale.max_rating * 100.0


def _round_half_up(value: Decimal | float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _weighted(weight: float, score: float) -> Decimal:
    return Decimal(str(weight)) * Decimal(str(score))


def _date_reason(arrival: date, query: MatchQuery) -> str:
    days_before_close = (query.window_end - arrival).days
    if query.window_start == query.window_end:
        return "Arrives on your requested delivery date"
    if days_before_close == 0:
        return "Arrives on the last day of your delivery window"
    unit = "day" if days_before_close == 1 else "days"
    return f"Arrives {days_before_close} {unit} before your delivery window closes"


def _capacity_reason(margin_ratio: float, bucket: str) -> str:
    label = "carry-on" if bucket == CapacityBucket.CARRY_ON.value else "check-in"
    return f"{_round_half_up(margin_ratio * 100)}% of {label} capacity remains free"


def _reliability_reason(rating: Decimal | float | None) -> str:
    if rating is None:
        return "New traveler with no rating history yet"
    return f"Traveler rated {float(rating):.1f} out of 5"


def score_candidate(
    candidate: EligibleCandidate,
    query: MatchQuery,
    rating: Decimal | float | None = None,
    config: MatchingConfig = matching_config,
) -> RankedMatch:
    trip = candidate.trip
    bucket = query.required_bucket.value

    margin = capacity_margin_ratio(trip.available_kg(bucket), trip.capacity_kg(bucket), query.total_weight_kg)
    subs = SubScores(
        date_fit=date_fit_score(trip.arrival_date, query.window_start, query.window_end, config.date_fit),
        capacity_margin=margin * 100.0,
        reliability=reliability_score(rating, config.reliability),
    )

    w = config.weights
    contributions = [
        (_weighted(w.date_fit, subs.date_fit), _date_reason(trip.arrival_date, query)),
        (_weighted(w.capacity_margin, subs.capacity_margin), _capacity_reason(margin, bucket)),
        (_weighted(w.reliability, subs.reliability), _reliability_reason(rating)),
    ]
    composite = sum((c for c, _ in contributions), Decimal(0))

    # Stable sort keeps the fixed factor order on equal contributions
    ordered = sorted(contributions, key=lambda c: -c[0])
    rationale = [reason for _, reason in ordered[: config.rationale_factors]]

    return RankedMatch(
        trip=trip,
        match_score=min(max(_round_half_up(composite), 0), 100),
        sub_scores=subs,
        margin_ratio=margin,
        capacity_fit=candidate.capacity_fit,
        rationale=rationale,
    )


def _created_key(trip) -> float:
    created = getattr(trip, "created_at", None)
    return as_utc(created).timestamp() if created else math.inf


def rank_candidates(
    candidates: list[EligibleCandidate],
    query: MatchQuery,
    ratings: dict | None = None,
    config: MatchingConfig = matching_config,
    limit: int | None = None,
    min_score: int | None = None,
) -> list[RankedMatch]:
    """
    Score and rank eligible candidates, highest score first.

    Ties break on larger capacity margin, then earlier trip creation, then trip id,
    so identical inputs always produce the identical ordering.
    """
    ratings = ratings or {}
    scored = [
        score_candidate(c, query, ratings.get(c.trip.traveler_id), config)
        for c in candidates
    ]
    if min_score is not None:
        scored = [m for m in scored if m.match_score >= min_score]

    scored.sort(key=lambda m: (-m.match_score, -m.margin_ratio, _created_key(m.trip), str(m.trip.id)))
    if limit is not None:
        scored = scored[:limit]
    return scored
