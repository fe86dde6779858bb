# Preference matching: personalized (user, opportunity) scores with reasons

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Optional

from contribux.constants import (
    BASE_RELEVANCE_WEIGHT,
    REASON_EPSILON,
    REASON_GOOD_FIRST_ISSUE,
    REASON_HELP_WANTED,
    REASON_HIGH_PRIORITY,
    REASON_LANGUAGES,
    REASON_MENTORSHIP,
    REASON_RELEVANT,
    REASON_SIMILAR_INTERESTS,
    REASON_SKILL_CLOSE,
    REASON_SKILL_EXACT,
    REASON_TIME_FITS,
    REASON_TIME_STRETCH,
    REASON_TYPE,
    SEMANTIC_REASON_THRESHOLD,
    SKILL_COMPATIBILITY_WEIGHT,
    TECHNOLOGY_ALIGNMENT_WEIGHT,
    TIME_BUDGET_WEIGHT,
    TYPE_ALIGNMENT_WEIGHT,
)
from contribux.enums import OpportunityStatus, SkillLevel
from contribux.exceptions import InvalidWeights, UserNotFound
from contribux.utils import chunked, clamp, cosine_similarity, ordered_set, technologies_match

from .types import (
    CancellationToken,
    OpportunitySnapshot,
    PreferenceSnapshot,
    ScoredResult,
    UserSnapshot,
)

HIGH_PRIORITY = 70


@dataclass(frozen=True)
class MatchWeights:
    """
    Maximum contribution of each additive term.

    The defaults (0.4/0.3/0.2/0.2/0.2) sum to 1.3 and the final score is
    clamped to [0, 1]. Strongly matching opportunities therefore saturate at
    1.0 and a term they differ in (a blown time budget, say) no longer
    separates them. Weights summing to at most 1 keep every term visible;
    ``normalized()`` rescales to that.
    """

    base_relevance: float = BASE_RELEVANCE_WEIGHT
    skill_compatibility: float = SKILL_COMPATIBILITY_WEIGHT
    type_alignment: float = TYPE_ALIGNMENT_WEIGHT
    time_budget: float = TIME_BUDGET_WEIGHT
    technology_alignment: float = TECHNOLOGY_ALIGNMENT_WEIGHT
    epsilon: float = REASON_EPSILON

    def __post_init__(self):
        weights = (
            self.base_relevance,
            self.skill_compatibility,
            self.type_alignment,
            self.time_budget,
            self.technology_alignment,
        )
        for value in weights + (self.epsilon,):
            if not math.isfinite(value) or value < 0:
                raise InvalidWeights(f"match weights must be finite numbers >= 0 (got {value!r})")
        if not any(weights):
            raise InvalidWeights("at least one match weight must be positive")

    @property
    def total(self) -> float:
        return (
            self.base_relevance
            + self.skill_compatibility
            + self.type_alignment
            + self.time_budget
            + self.technology_alignment
        )

    def normalized(self) -> "MatchWeights":
        """Same proportions, rescaled so the weights sum to 1."""
        total = self.total
        return replace(
            self,
            base_relevance=self.base_relevance / total,
            skill_compatibility=self.skill_compatibility / total,
            type_alignment=self.type_alignment / total,
            time_budget=self.time_budget / total,
            technology_alignment=self.technology_alignment / total,
        )

    @classmethod
    def from_settings(cls, settings) -> "MatchWeights":
        return cls(
            base_relevance=settings.match_base_weight,
            skill_compatibility=settings.match_skill_weight,
            type_alignment=settings.match_type_weight,
            time_budget=settings.match_time_weight,
            technology_alignment=settings.match_technology_weight,
        )


@dataclass(frozen=True)
class MatchBreakdown:
    """Per-term contributions for one opportunity."""

    base_relevance: float
    skill_compatibility: float
    type_alignment: float
    time_budget: float
    technology_alignment: float
    overall_score: float
    reasons: tuple[str, ...]

    @property
    def total(self) -> float:
        return clamp(
            self.base_relevance
            + self.skill_compatibility
            + self.type_alignment
            + self.time_budget
            + self.technology_alignment,
            0.0,
            1.0,
        )


def overall_score(user: UserSnapshot, opportunity: OpportunitySnapshot) -> tuple[float, Optional[float]]:
    """
    Priority-based relevance, averaged with profile similarity when both
    embeddings exist. Returns (overall, similarity or None).
    """
    priority_part = clamp(opportunity.priority / 100.0, 0.0, 1.0)
    item_embedding = (
        opportunity.description_embedding
        if opportunity.description_embedding is not None
        else opportunity.title_embedding
    )
    if user.profile_embedding is None or item_embedding is None:
        return priority_part, None
    similarity = clamp(cosine_similarity(user.profile_embedding, item_embedding), 0.0, 1.0)
    return (priority_part + similarity) / 2.0, similarity


def skill_compatibility(user_level: Optional[SkillLevel], difficulty: SkillLevel) -> float:
    """1 - |distance| / max distance; an unknown user level counts as intermediate."""
    level = user_level or SkillLevel.INTERMEDIATE
    return 1.0 - abs(level.ordinal - difficulty.ordinal) / SkillLevel.max_distance()


def time_budget_fit(estimated_hours: Optional[float], cap: Optional[float]) -> float:
    """
    Fraction of the time-budget term earned.

    Full when there is no cap or hours fit under it; linear decay to 0 at
    twice the cap; unknown hours with a cap earn nothing.
    """
    if cap is None:
        return 1.0
    if estimated_hours is None:
        return 0.0
    if estimated_hours <= cap:
        return 1.0
    if estimated_hours >= 2 * cap:
        return 0.0
    return (2 * cap - estimated_hours) / cap


def technology_overlap(
    required: Iterable[str], preferred_languages: Sequence[str]
) -> tuple[float, tuple[str, ...]]:
    """Share of ``required`` matched by a preferred language (synonym-aware)."""
    required = ordered_set(required)
    if not required or not preferred_languages:
        return 0.0, ()
    matched = tuple(
        tech for tech in required if any(technologies_match(tech, lang) for lang in preferred_languages)
    )
    return len(matched) / len(required), matched


def score_opportunity(
    user: UserSnapshot,
    preferences: Optional[PreferenceSnapshot],
    opportunity: OpportunitySnapshot,
    weights: MatchWeights,
) -> MatchBreakdown:
    """Score one opportunity for one user (no hard filtering)."""
    reasons: list[str] = []
    eps = weights.epsilon

    overall, similarity = overall_score(user, opportunity)
    base = weights.base_relevance * overall
    if base > eps:
        if similarity is not None and similarity > SEMANTIC_REASON_THRESHOLD:
            reasons.append(REASON_SIMILAR_INTERESTS)
        elif opportunity.priority >= HIGH_PRIORITY:
            reasons.append(REASON_HIGH_PRIORITY)
        else:
            reasons.append(REASON_RELEVANT)

    skill = weights.skill_compatibility * skill_compatibility(user.skill_level, opportunity.difficulty)
    if skill > eps:
        user_level = user.skill_level or SkillLevel.INTERMEDIATE
        reasons.append(REASON_SKILL_EXACT if user_level == opportunity.difficulty else REASON_SKILL_CLOSE)

    type_term = 0.0
    time_term = 0.0
    if preferences is not None:
        if opportunity.type in preferences.preferred_contribution_types:
            type_term = weights.type_alignment
            if type_term > eps:
                reasons.append(REASON_TYPE)
        fit = time_budget_fit(opportunity.estimated_hours, preferences.max_estimated_hours)
        time_term = weights.time_budget * fit
        if time_term > eps:
            reasons.append(REASON_TIME_FITS if fit >= 1.0 else REASON_TIME_STRETCH)

    required = ordered_set(opportunity.required_skills + opportunity.technologies)
    if not required and opportunity.repository_language:
        required = (opportunity.repository_language,)
    ratio, matched = technology_overlap(required, user.preferred_languages)
    tech_term = weights.technology_alignment * ratio
    if tech_term > eps:
        reasons.append(f"{REASON_LANGUAGES}: {', '.join(matched)}")

    if opportunity.good_first_issue:
        reasons.append(REASON_GOOD_FIRST_ISSUE)
    if opportunity.help_wanted:
        reasons.append(REASON_HELP_WANTED)
    if opportunity.mentorship_available:
        reasons.append(REASON_MENTORSHIP)

    return MatchBreakdown(
        base_relevance=base,
        skill_compatibility=skill,
        type_alignment=type_term,
        time_budget=time_term,
        technology_alignment=tech_term,
        overall_score=overall,
        reasons=tuple(reasons),
    )


def match_opportunities(
    user: Optional[UserSnapshot],
    preferences: Optional[PreferenceSnapshot],
    candidates: Sequence[OpportunitySnapshot],
    excluded_repository_ids: Iterable[int] = (),
    weights: Optional[MatchWeights] = None,
    cancel_token: Optional[CancellationToken] = None,
    batch_size: int = 256,
    user_id: Optional[int] = None,
) -> list[ScoredResult]:
    """
    Score and order open opportunities for a user.

    Opportunities of excluded repositories and non-open opportunities are
    dropped. Order: match score desc, priority desc, id asc.

    Args:
        user: User snapshot; None means the user could not be resolved
        preferences: Preferences row, or None (preference terms score 0)
        candidates: Pre-filtered opportunity snapshots
        excluded_repository_ids: Hard exclusion set (contributed repositories)
        weights: Term weights (defaults to ``MatchWeights()``)
        cancel_token: Checked before every batch and before returning
        batch_size: Candidates scored between cancellation checks
        user_id: Requested id, used in the UserNotFound message

    Raises:
        UserNotFound: ``user`` is None
        RankingCancelled: The token was cancelled
    """
    if user is None:
        raise UserNotFound(user_id)
    weights = weights or MatchWeights()
    excluded = frozenset(excluded_repository_ids)

    scored: list[tuple[float, int, int, MatchBreakdown]] = []
    for batch in chunked(list(candidates), batch_size):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        for opportunity in batch:
            if opportunity.repository_id in excluded or opportunity.status != OpportunityStatus.OPEN:
                continue
            breakdown = score_opportunity(user, preferences, opportunity, weights)
            scored.append((breakdown.total, opportunity.priority, opportunity.id, breakdown))

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    scored.sort(key=lambda s: (-s[0], -s[1], s[2]))
    return [
        ScoredResult(
            id=opportunity_id,
            relevance_score=clamp(breakdown.overall_score, 0.0, 1.0),
            match_score=total,
            reasons=breakdown.reasons,
        )
        for total, _, opportunity_id, breakdown in scored
    ]


__all__ = [
    "MatchWeights",
    "MatchBreakdown",
    "overall_score",
    "skill_compatibility",
    "time_budget_fit",
    "technology_overlap",
    "score_opportunity",
    "match_opportunities",
]
