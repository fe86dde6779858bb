# Trending score: time-decayed engagement

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from contribux.constants import (
    APPLICATION_WEIGHT,
    TRENDING_AGE_OFFSET_HOURS,
    TRENDING_DECAY_EXPONENT,
)
from contribux.exceptions import InvalidWeights, ValidationError
from contribux.utils import hours_between, to_naive_utc, utcnow

from .types import OpportunitySnapshot


@dataclass(frozen=True)
class TrendingConfig:
    """
    Attributes:
        application_weight: Views-equivalent of one application (default 3)
        decay_exponent: Exponent on the age term (default 1.5)
        age_offset_hours: Added to the age so brand-new items stay finite (default 2)
    """

    application_weight: float = APPLICATION_WEIGHT
    decay_exponent: float = TRENDING_DECAY_EXPONENT
    age_offset_hours: float = TRENDING_AGE_OFFSET_HOURS

    def __post_init__(self):
        for name in ("application_weight", "decay_exponent"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidWeights(f"{name} must be a finite number >= 0 (got {value!r})")
        if not math.isfinite(self.age_offset_hours) or self.age_offset_hours <= 0:
            raise InvalidWeights("age_offset_hours must be positive")

    def engagement(self, opportunity: OpportunitySnapshot) -> float:
        return opportunity.view_count + self.application_weight * opportunity.application_count


def trending_score(engagement: float, age_hours: float, config: Optional[TrendingConfig] = None) -> float:
    """``engagement / (age_hours + offset) ** exponent``; negative ages count as 0."""
    config = config or TrendingConfig()
    return engagement / (max(age_hours, 0.0) + config.age_offset_hours) ** config.decay_exponent


def rank_trending(
    opportunities: Iterable[OpportunitySnapshot],
    window: timedelta,
    min_engagement: float,
    now: Optional[datetime] = None,
    config: Optional[TrendingConfig] = None,
) -> list[tuple[OpportunitySnapshot, float]]:
    """
    Trending (opportunity, score) pairs.

    Items created before ``now - window`` or with engagement below
    ``min_engagement`` are excluded. Order: score desc, engagement desc, id asc.
    """
    if window <= timedelta(0):
        raise ValidationError(f"trending window must be positive (got {window})")
    if min_engagement < 0:
        raise ValidationError(f"min_engagement must be >= 0 (got {min_engagement})")
    config = config or TrendingConfig()
    now = to_naive_utc(now) or utcnow()
    cutoff = now - window

    ranked = []
    for opportunity in opportunities:
        created_at = to_naive_utc(opportunity.created_at)
        if created_at is None or created_at < cutoff:
            continue
        engagement = config.engagement(opportunity)
        if engagement < min_engagement:
            continue
        score = trending_score(engagement, hours_between(created_at, now), config)
        ranked.append((opportunity, score, engagement))

    ranked.sort(key=lambda r: (-r[1], -r[2], r[0].id))
    return [(opportunity, score) for opportunity, score, _ in ranked]


def trending(
    opportunities: Iterable[OpportunitySnapshot],
    window: timedelta,
    min_engagement: float,
    now: Optional[datetime] = None,
    config: Optional[TrendingConfig] = None,
) -> list[OpportunitySnapshot]:
    """Trending opportunities, most trending first."""
    return [opportunity for opportunity, _ in rank_trending(opportunities, window, min_engagement, now, config)]


__all__ = ["TrendingConfig", "trending_score", "rank_trending", "trending"]
