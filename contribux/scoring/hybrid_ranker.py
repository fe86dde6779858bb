"""
Hybrid ranking: blend lexical and vector similarity into one relevance score.

relevance = (text_weight * lexical + vector_weight * vector) / (text_weight + vector_weight)

For weights that sum to 1 this is exactly the weighted sum; for any other
valid weights it keeps relevance in [0, 1]. Items below the similarity
threshold are dropped. Ties are broken by repository health, then by id.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Optional, Union

import numpy as np

from contribux.constants import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TEXT_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
    REASON_EPSILON,
)
from contribux.exceptions import DimensionMismatch, InvalidVector, InvalidWeights, ValidationError
from contribux.index.lexical import lexical_score
from contribux.utils import chunked, clamp, cosine_similarity

from .types import CancellationToken, OpportunitySnapshot, RepositorySnapshot, ScoredResult

REASON_TEXT_MATCH = "Matches your search terms"
REASON_SEMANTIC_MATCH = "Semantically similar to your search"

Candidate = Union[OpportunitySnapshot, RepositorySnapshot]


@dataclass(frozen=True)
class RankingConfig:
    """
    Validated hybrid ranking parameters.

    Attributes:
        text_weight: Weight of the lexical score (>= 0, default 0.3)
        vector_weight: Weight of the vector similarity (>= 0, default 0.7)
        similarity_threshold: Minimum relevance kept, in [0, 1] (default 0.1)
        batch_size: Candidates scored between cancellation checks (default 256)
    """

    text_weight: float = DEFAULT_TEXT_WEIGHT
    vector_weight: float = DEFAULT_VECTOR_WEIGHT
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    batch_size: int = 256

    def __post_init__(self):
        for name in ("text_weight", "vector_weight"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidWeights(f"{name} must be a finite number >= 0 (got {value!r})")
        if self.text_weight == 0 and self.vector_weight == 0:
            raise InvalidWeights("text_weight and vector_weight cannot both be zero")
        if not math.isfinite(self.similarity_threshold) or not 0.0 <= self.similarity_threshold <= 1.0:
            raise InvalidWeights(
                f"similarity_threshold must be in [0, 1] (got {self.similarity_threshold!r})"
            )
        if self.batch_size <= 0:
            raise ValidationError(f"batch_size must be positive (got {self.batch_size!r})")

    @classmethod
    def from_settings(cls, settings) -> "RankingConfig":
        return cls(
            text_weight=settings.search_text_weight,
            vector_weight=settings.search_vector_weight,
            similarity_threshold=settings.search_similarity_threshold,
            batch_size=settings.ranking_batch_size,
        )

    def lexical_only(self) -> "RankingConfig":
        """Same threshold and batching with all weight on the lexical score."""
        return replace(self, text_weight=1.0, vector_weight=0.0)


def _candidate_text(candidate: Candidate) -> tuple[str, Optional[str]]:
    if isinstance(candidate, RepositorySnapshot):
        return f"{candidate.full_name} {' '.join(candidate.topics)}".strip(), candidate.description
    return candidate.title, candidate.description


def _candidate_embeddings(candidate: Candidate) -> tuple[Optional[np.ndarray], ...]:
    if isinstance(candidate, RepositorySnapshot):
        return (candidate.embedding,)
    return (candidate.title_embedding, candidate.description_embedding)


def _candidate_quality(candidate: Candidate) -> float:
    if isinstance(candidate, RepositorySnapshot):
        return candidate.health_score
    return candidate.repository_health


def _query_array(query_vector) -> Optional[np.ndarray]:
    if query_vector is None:
        return None
    arr = np.asarray(query_vector, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidVector(f"query vector must be one-dimensional (got shape {arr.shape})")
    if not np.all(np.isfinite(arr)):
        raise InvalidVector("query vector contains non-finite values")
    return arr


def vector_score(query: Optional[np.ndarray], candidate: Candidate) -> float:
    """
    Best cosine similarity over the candidate's embeddings, clamped to [0, 1].

    Raises:
        DimensionMismatch: A candidate embedding and the query differ in length
    """
    if query is None:
        return 0.0
    best = 0.0
    for embedding in _candidate_embeddings(candidate):
        if embedding is None:
            continue
        if embedding.shape != query.shape:
            raise DimensionMismatch(expected=embedding.shape[0], actual=query.shape[0])
        best = max(best, cosine_similarity(query, embedding))
    return clamp(best, 0.0, 1.0)


def rank(
    query_text: Optional[str],
    query_vector,
    candidates: Sequence[Candidate],
    config: Optional[RankingConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> list[ScoredResult]:
    """
    Rank candidates by hybrid relevance.

    Args:
        query_text: Free-text query; empty or None gives a lexical score of 0
        query_vector: Query embedding; None gives a vector score of 0
        candidates: Opportunity or repository snapshots
        config: Weights and threshold (defaults to ``RankingConfig()``)
        cancel_token: Checked before every batch and before returning

    Returns:
        Results with relevance >= threshold, ordered by relevance desc,
        repository health desc, id asc.

    Raises:
        DimensionMismatch: The query and a candidate embedding differ in length
        RankingCancelled: The token was cancelled; no partial list is returned
    """
    config = config or RankingConfig()
    query = _query_array(query_vector)
    total_weight = config.text_weight + config.vector_weight

    scored: list[tuple[float, float, int, tuple[str, ...]]] = []
    for batch in chunked(list(candidates), config.batch_size):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        for candidate in batch:
            title, description = _candidate_text(candidate)
            lexical = lexical_score(query_text, title, description) if config.text_weight else 0.0
            vector = vector_score(query, candidate) if config.vector_weight else 0.0
            relevance = clamp(
                (config.text_weight * lexical + config.vector_weight * vector) / total_weight, 0.0, 1.0
            )
            if relevance < config.similarity_threshold:
                continue
            reasons = []
            if config.text_weight * lexical / total_weight > REASON_EPSILON:
                reasons.append(REASON_TEXT_MATCH)
            if config.vector_weight * vector / total_weight > REASON_EPSILON:
                reasons.append(REASON_SEMANTIC_MATCH)
            scored.append((relevance, _candidate_quality(candidate), candidate.id, tuple(reasons)))

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    scored.sort(key=lambda s: (-s[0], -s[1], s[2]))
    return [
        ScoredResult(id=item_id, relevance_score=relevance, match_score=relevance, reasons=reasons)
        for relevance, _, item_id, reasons in scored
    ]


__all__ = ["RankingConfig", "rank", "vector_score"]
