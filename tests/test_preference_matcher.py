"""
Tests for personalized opportunity matching.
"""

import numpy as np
import pytest

from contribux.constants import REASON_GOOD_FIRST_ISSUE, REASON_SIMILAR_INTERESTS, REASON_SKILL_EXACT
from contribux.enums import ContributionType, OpportunityStatus, SkillLevel
from contribux.exceptions import InvalidWeights, RankingCancelled, UserNotFound
from contribux.scoring import (
    CancellationToken,
    MatchWeights,
    OpportunitySnapshot,
    PreferenceSnapshot,
    UserSnapshot,
    match_opportunities,
)
from contribux.scoring.preference_matcher import skill_compatibility, technology_overlap, time_budget_fit


def opportunity(opp_id: int, **kwargs) -> OpportunitySnapshot:
    kwargs.setdefault("repository_id", 1)
    return OpportunitySnapshot(id=opp_id, title=f"Opportunity {opp_id}", **kwargs)


@pytest.fixture
def beginner():
    return UserSnapshot(id=1, github_username="alice", skill_level=SkillLevel.BEGINNER)


class TestTerms:
    @pytest.mark.parametrize(
        "user_level,difficulty,expected",
        [
            (SkillLevel.BEGINNER, SkillLevel.BEGINNER, 1.0),
            (SkillLevel.BEGINNER, SkillLevel.EXPERT, 0.0),
            (SkillLevel.ADVANCED, SkillLevel.INTERMEDIATE, 2 / 3),
            (None, SkillLevel.INTERMEDIATE, 1.0),
        ],
    )
    def test_skill_compatibility(self, user_level, difficulty, expected):
        assert skill_compatibility(user_level, difficulty) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "hours,cap,expected",
        [
            (5, None, 1.0),
            (2, 3, 1.0),
            (4.5, 3, 0.5),
            (6, 3, 0.0),
            (None, 3, 0.0),
        ],
    )
    def test_time_budget_fit(self, hours, cap, expected):
        assert time_budget_fit(hours, cap) == pytest.approx(expected)

    def test_technology_overlap_uses_synonyms(self):
        ratio, matched = technology_overlap(["py", "Rust"], ["Python"])
        assert ratio == pytest.approx(0.5)
        assert matched == ("py",)

    def test_match_weights_validation(self):
        with pytest.raises(InvalidWeights):
            MatchWeights(base_relevance=-1)
        with pytest.raises(InvalidWeights):
            MatchWeights(0, 0, 0, 0, 0)


class TestMatchOpportunities:
    """Tests for match_opportunities()."""

    def test_closer_difficulty_scores_higher(self, beginner):
        candidates = [
            opportunity(1, difficulty=SkillLevel.EXPERT),
            opportunity(2, difficulty=SkillLevel.INTERMEDIATE),
        ]

        results = {r.id: r.match_score for r in match_opportunities(beginner, None, candidates)}

        assert results[2] > results[1]

    def test_time_budget_separates_short_and_long_work(self, beginner):
        preferences = PreferenceSnapshot(max_estimated_hours=3)
        candidates = [
            opportunity(1, difficulty=SkillLevel.BEGINNER, estimated_hours=20),
            opportunity(2, difficulty=SkillLevel.BEGINNER, estimated_hours=2),
        ]

        results = {r.id: r.match_score for r in match_opportunities(beginner, preferences, candidates)}

        assert results[2] - results[1] >= 0.15

    def test_default_weights_saturate_strong_matches(self):
        user = UserSnapshot(
            id=1,
            skill_level=SkillLevel.BEGINNER,
            preferred_languages=("Python",),
            profile_embedding=np.array([1.0, 0.0]),
        )
        preferences = PreferenceSnapshot(
            preferred_contribution_types=(ContributionType.TEST,),
            max_estimated_hours=3,
        )
        shared = dict(
            type=ContributionType.TEST,
            difficulty=SkillLevel.BEGINNER,
            technologies=("python",),
            priority=100,
            description_embedding=np.array([1.0, 0.0]),
        )
        candidates = [opportunity(1, estimated_hours=20, **shared), opportunity(2, estimated_hours=2, **shared)]

        saturated = {r.id: r.match_score for r in match_opportunities(user, preferences, candidates)}
        normalized = {
            r.id: r.match_score
            for r in match_opportunities(user, preferences, candidates, weights=MatchWeights().normalized())
        }

        assert saturated == {1: 1.0, 2: 1.0}
        assert normalized[2] == pytest.approx(1.0)
        assert normalized[2] - normalized[1] >= 0.15

    def test_normalized_weights_sum_to_one(self):
        weights = MatchWeights().normalized()

        assert MatchWeights().total == pytest.approx(1.3)
        assert weights.total == pytest.approx(1.0)
        assert weights.time_budget == pytest.approx(0.2 / 1.3)

    def test_missing_user(self):
        with pytest.raises(UserNotFound) as exc_info:
            match_opportunities(None, None, [opportunity(1)], user_id=42)
        assert "42" in str(exc_info.value)

    def test_excluded_repositories_and_closed_items_dropped(self, beginner):
        candidates = [
            opportunity(1, repository_id=10),
            opportunity(2, repository_id=20),
            opportunity(3, repository_id=20, status=OpportunityStatus.CLOSED),
        ]

        results = match_opportunities(beginner, None, candidates, excluded_repository_ids={10})

        assert [r.id for r in results] == [2]

    def test_missing_preferences_score_zero_for_preference_terms(self, beginner):
        candidate = opportunity(1, difficulty=SkillLevel.BEGINNER, type=ContributionType.DOCUMENTATION)
        preferences = PreferenceSnapshot(preferred_contribution_types=(ContributionType.DOCUMENTATION,))

        (without,) = match_opportunities(beginner, None, [candidate])
        (with_prefs,) = match_opportunities(beginner, preferences, [candidate])

        assert with_prefs.match_score == pytest.approx(without.match_score + 0.2 + 0.2)

    def test_score_clamped_to_one(self):
        user = UserSnapshot(
            id=1,
            skill_level=SkillLevel.BEGINNER,
            preferred_languages=("Python",),
            profile_embedding=np.array([1.0, 0.0]),
        )
        preferences = PreferenceSnapshot(preferred_contribution_types=(ContributionType.TEST,), max_estimated_hours=5)
        candidate = opportunity(
            1,
            type=ContributionType.TEST,
            difficulty=SkillLevel.BEGINNER,
            technologies=("python",),
            estimated_hours=2,
            priority=100,
            description_embedding=np.array([1.0, 0.0]),
        )

        (result,) = match_opportunities(user, preferences, [candidate])

        assert result.match_score == 1.0
        assert result.relevance_score == pytest.approx(1.0)
        assert result.reasons[0] == REASON_SIMILAR_INTERESTS

    def test_reasons(self, beginner):
        candidate = opportunity(1, difficulty=SkillLevel.BEGINNER, good_first_issue=True)

        (result,) = match_opportunities(beginner, None, [candidate])

        assert REASON_SKILL_EXACT in result.reasons
        assert result.reasons[-1] == REASON_GOOD_FIRST_ISSUE

    def test_repository_language_used_when_no_technologies(self):
        user = UserSnapshot(id=1, preferred_languages=("Python",))
        candidate = opportunity(1, repository_language="Python")

        (result,) = match_opportunities(user, None, [candidate])

        assert any(reason.startswith("Uses your preferred languages") for reason in result.reasons)

    def test_ties_ordered_by_priority_then_id(self, beginner):
        candidates = [opportunity(3), opportunity(1), opportunity(2, priority=0)]
        weights = MatchWeights(base_relevance=0.0)

        results = match_opportunities(beginner, None, candidates, weights=weights)

        assert [r.id for r in results] == [1, 2, 3]

    def test_cancellation(self, beginner):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RankingCancelled):
            match_opportunities(beginner, None, [opportunity(1)], cancel_token=token)
