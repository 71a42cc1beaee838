"""Matching engine configuration — single source for scoring weights and thresholds."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ScoreWeights:
    """Composite score weights. Must sum to 1.0."""
    date_fit: float = 0.40
    capacity_margin: float = 0.30
    reliability: float = 0.30


@dataclass(frozen=True)
class DateFitCurve:
    """Arrivals inside the leading fraction of the window score full marks,
    decaying linearly to zero at the far edge."""
    full_score_fraction: float = 0.25


@dataclass(frozen=True)
class ReliabilityScale:
    max_rating: float = 5.0
    neutral_score: float = 50.0  # travelers with no rating history


@dataclass(frozen=True)
class ItemLimits:
    max_item_weight_kg: Decimal = Decimal("50")
    max_quantity: int = 100


@dataclass(frozen=True)
class LeadTimeModifiers:
    """Extra days of lead time required for complex orders."""
    high_value_threshold: Decimal = Decimal("500")
    high_value_extra_days: int = 1
    multi_item_threshold: int = 3
    multi_item_extra_days: int = 1
    special_delivery_extra_days: int = 1


@dataclass(frozen=True)
class MatchingConfig:
    """Top-level config aggregating all sub-configs."""
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    date_fit: DateFitCurve = field(default_factory=DateFitCurve)
    reliability: ReliabilityScale = field(default_factory=ReliabilityScale)
    items: ItemLimits = field(default_factory=ItemLimits)
    lead_time: LeadTimeModifiers = field(default_factory=LeadTimeModifiers)
    rationale_factors: int = 2


# Singleton — import this everywhere
matching_config = MatchingConfig()
