"""
Pure scoring functions over immutable snapshots.

Usage:
    from contribux.scoring import rank, match_opportunities, trending, repository_health
"""

from .health import HealthReport, HealthWeights, health_report, repository_health
from .hybrid_ranker import RankingConfig, rank
from .lifecycle import can_transition, staleness_target, transition
from .preference_matcher import MatchWeights, match_opportunities, score_opportunity
from .trending import TrendingConfig, rank_trending, trending, trending_score
from .types import (
    CancellationToken,
    HealthSignals,
    OpportunitySnapshot,
    PreferenceSnapshot,
    RepositorySnapshot,
    ScoredResult,
    UserSnapshot,
)

__all__ = [
    # Ranking
    "RankingConfig",
    "rank",
    # Matching
    "MatchWeights",
    "match_opportunities",
    "score_opportunity",
    # Trending
    "TrendingConfig",
    "trending",
    "rank_trending",
    "trending_score",
    # Health
    "HealthWeights",
    "HealthReport",
    "repository_health",
    "health_report",
    # Lifecycle
    "transition",
    "can_transition",
    "staleness_target",
    # Types
    "CancellationToken",
    "HealthSignals",
    "OpportunitySnapshot",
    "PreferenceSnapshot",
    "RepositorySnapshot",
    "ScoredResult",
    "UserSnapshot",
]
