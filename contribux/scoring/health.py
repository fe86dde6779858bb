"""
Repository health scoring.

The health score is a pure function of stored signals, in [0, 100]:

    recency          <= 7 days: 30, <= 30 days: 20, <= 90 days: 10, else 0
    responsiveness   <= 1 day: 25, <= 1 week: 15, <= 30 days: 10, else 0
    pr_merge_rate    * 20   (rate clamped to [0, 1])
    issue_close_rate * 15   (rate clamped to [0, 1])
    contributing guide       10

Missing signals contribute 0. The health report adds a coarse status and
the strengths/improvement areas derived from the component scores.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from contribux.constants import (
    CONTRIBUTING_GUIDE_POINTS,
    HEALTH_STATUS_THRESHOLDS,
    IMPROVEMENT_THRESHOLD,
    ISSUE_CLOSE_RATE_POINTS,
    PR_MERGE_RATE_POINTS,
    RECENCY_POINTS,
    RESPONSIVENESS_POINTS,
    STRENGTH_THRESHOLD,
)
from contribux.enums import HealthStatus
from contribux.exceptions import InvalidWeights
from contribux.utils import clamp, hours_between, to_naive_utc, utcnow

from .types import HealthSignals, RepositorySnapshot

Buckets = tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class HealthWeights:
    """
    Point buckets and multipliers of the health score.

    Attributes:
        recency_points: (max age in days, points), ascending
        responsiveness_points: (max median response in hours, points), ascending
        pr_merge_rate: Points for a merge rate of 1.0
        issue_close_rate: Points for a close rate of 1.0
        contributing_guide: Points for having a contributing guide
    """

    recency_points: Buckets = RECENCY_POINTS
    responsiveness_points: Buckets = RESPONSIVENESS_POINTS
    pr_merge_rate: float = PR_MERGE_RATE_POINTS
    issue_close_rate: float = ISSUE_CLOSE_RATE_POINTS
    contributing_guide: float = CONTRIBUTING_GUIDE_POINTS

    def __post_init__(self):
        for buckets in (self.recency_points, self.responsiveness_points):
            limits = [limit for limit, _ in buckets]
            if limits != sorted(limits):
                raise InvalidWeights("bucket limits must be ascending")
            for _, points in buckets:
                if not math.isfinite(points) or points < 0:
                    raise InvalidWeights("bucket points must be finite numbers >= 0")
        for value in (self.pr_merge_rate, self.issue_close_rate, self.contributing_guide):
            if not math.isfinite(value) or value < 0:
                raise InvalidWeights("health multipliers must be finite numbers >= 0")


def _bucket(value: float, buckets: Buckets) -> float:
    for limit, points in buckets:
        if value <= limit:
            return points
    return 0.0


def _rate(value: Optional[float]) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return clamp(value, 0.0, 1.0)


def repository_health(
    repository: Union[HealthSignals, RepositorySnapshot],
    now: Optional[datetime] = None,
    weights: Optional[HealthWeights] = None,
) -> float:
    """
    Compute the health score of a repository.

    Args:
        repository: Signals, or a repository snapshot carrying them
        now: Reference time for recency (defaults to current UTC)
        weights: Point configuration (defaults to ``HealthWeights()``)

    Returns:
        Score in [0, 100]
    """
    signals = repository.signals if isinstance(repository, RepositorySnapshot) else repository
    weights = weights or HealthWeights()
    now = to_naive_utc(now) or utcnow()

    score = 0.0
    if signals.last_activity_at is not None:
        age_days = max(hours_between(signals.last_activity_at, now), 0.0) / 24.0
        score += _bucket(age_days, weights.recency_points)
    response = signals.median_response_hours
    if response is not None and math.isfinite(response) and response >= 0:
        score += _bucket(response, weights.responsiveness_points)
    score += _rate(signals.pr_merge_rate) * weights.pr_merge_rate
    score += _rate(signals.issue_close_rate) * weights.issue_close_rate
    if signals.has_contributing_guide:
        score += weights.contributing_guide
    return clamp(score, 0.0, 100.0)


@dataclass(frozen=True)
class HealthReport:
    repository_id: int
    health_score: float
    status: HealthStatus
    strengths: tuple[str, ...]
    improvement_areas: tuple[str, ...]
    total_opportunities: int = 0
    open_opportunities: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "health_score": round(self.health_score, 2),
            "health_status": self.status.value,
            "key_strengths": list(self.strengths),
            "improvement_areas": list(self.improvement_areas),
            "total_opportunities": self.total_opportunities,
            "open_opportunities": self.open_opportunities,
        }


_REPORT_DIMENSIONS = (
    ("activity_score", "active_development", "increase_activity"),
    ("community_score", "strong_community", "build_community"),
    ("documentation_score", "well_documented", "improve_docs"),
    ("contributor_friendliness", "contributor_friendly", "better_onboarding"),
)


def health_status(score: float) -> HealthStatus:
    for threshold, status in HEALTH_STATUS_THRESHOLDS:
        if score >= threshold:
            return HealthStatus(status)
    return HealthStatus.NEEDS_IMPROVEMENT


def health_report(
    repository: RepositorySnapshot,
    health_score: Optional[float] = None,
    total_opportunities: int = 0,
    open_opportunities: int = 0,
) -> HealthReport:
    """
    Summarize a repository's health.

    ``health_score`` defaults to a fresh computation from the stored signals.
    """
    score = repository_health(repository) if health_score is None else clamp(health_score, 0.0, 100.0)
    strengths = []
    improvements = []
    for attribute, strength, improvement in _REPORT_DIMENSIONS:
        value = getattr(repository, attribute)
        if value >= STRENGTH_THRESHOLD:
            strengths.append(strength)
        elif value < IMPROVEMENT_THRESHOLD:
            improvements.append(improvement)
    return HealthReport(
        repository_id=repository.id,
        health_score=score,
        status=health_status(score),
        strengths=tuple(strengths),
        improvement_areas=tuple(improvements),
        total_opportunities=total_opportunities,
        open_opportunities=open_opportunities,
    )


__all__ = [
    "HealthWeights",
    "HealthReport",
    "repository_health",
    "health_status",
    "health_report",
]
