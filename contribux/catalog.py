"""
Catalog store: the read side of persistence used by discovery.

Wraps a SQLAlchemy session and the repositories, and returns immutable
snapshots (``contribux.scoring.types``) so scoring never sees ORM objects.

Usage:
    with db.session() as session:
        catalog = CatalogStore(session)
        user = catalog.get_user(42)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .enums import ContributionType, OpportunityStatus, SkillLevel
from .models import Opportunity, Repository, User, UserPreference
from .repositories import (
    CandidateFilter,
    InteractionRepository,
    OpportunityRepository,
    PreferenceRepository,
    RepoRepository,
    RepositoryFilter,
    UserRepository,
)
from .scoring.types import (
    HealthSignals,
    OpportunitySnapshot,
    PreferenceSnapshot,
    RepositorySnapshot,
    UserSnapshot,
)
from .utils import bytes_to_vector, ordered_set


def repository_snapshot(repository: Repository) -> RepositorySnapshot:
    return RepositorySnapshot(
        id=repository.id,
        full_name=repository.full_name,
        name=repository.name or "",
        description=repository.description,
        language=repository.language,
        topics=ordered_set(repository.topics),
        archived=bool(repository.archived),
        stars=repository.stars or 0,
        forks=repository.forks or 0,
        health_score=repository.health_score or 0.0,
        activity_score=repository.activity_score or 0.0,
        community_score=repository.community_score or 0.0,
        documentation_score=repository.documentation_score or 0.0,
        contributor_friendliness=repository.contributor_friendliness or 0.0,
        first_time_contributor_friendly=bool(repository.first_time_contributor_friendly),
        signals=HealthSignals(
            last_activity_at=repository.last_activity_at,
            median_response_hours=repository.median_response_hours,
            pr_merge_rate=repository.pr_merge_rate,
            issue_close_rate=repository.issue_close_rate,
            has_contributing_guide=repository.has_contributing_guide,
        ),
        embedding=bytes_to_vector(repository.embedding),
    )


def opportunity_snapshot(
    opportunity: Opportunity, repository: Optional[Repository] = None
) -> OpportunitySnapshot:
    repository = repository or opportunity.repository
    return OpportunitySnapshot(
        id=opportunity.id,
        repository_id=opportunity.repository_id,
        title=opportunity.title,
        description=opportunity.description,
        type=ContributionType(opportunity.type),
        difficulty=SkillLevel(opportunity.difficulty),
        status=OpportunityStatus(opportunity.status),
        required_skills=ordered_set(opportunity.required_skills),
        technologies=ordered_set(opportunity.technologies),
        labels=ordered_set(opportunity.labels),
        url=opportunity.url,
        estimated_hours=opportunity.estimated_hours,
        priority=opportunity.priority or 0,
        good_first_issue=bool(opportunity.good_first_issue),
        help_wanted=bool(opportunity.help_wanted),
        mentorship_available=bool(opportunity.mentorship_available),
        view_count=opportunity.view_count or 0,
        application_count=opportunity.application_count or 0,
        completion_count=opportunity.completion_count or 0,
        created_at=opportunity.created_at,
        updated_at=opportunity.updated_at,
        expires_at=opportunity.expires_at,
        repository_language=repository.language if repository else None,
        repository_health=(repository.health_score or 0.0) if repository else 0.0,
        title_embedding=bytes_to_vector(opportunity.title_embedding),
        description_embedding=bytes_to_vector(opportunity.description_embedding),
    )


def user_snapshot(user: User) -> UserSnapshot:
    return UserSnapshot(
        id=user.id,
        github_username=user.github_username,
        skill_level=SkillLevel(user.skill_level) if user.skill_level else None,
        preferred_languages=ordered_set(user.preferred_languages),
        availability_hours=user.availability_hours,
        profile_embedding=bytes_to_vector(user.profile_embedding),
    )


def preference_snapshot(preference: UserPreference) -> PreferenceSnapshot:
    return PreferenceSnapshot(
        preferred_contribution_types=tuple(
            ContributionType(t) for t in ordered_set(preference.preferred_contribution_types)
        ),
        max_estimated_hours=preference.max_estimated_hours,
        min_repo_stars=preference.min_repo_stars or 0,
        exploration_weight=preference.exploration_weight if preference.exploration_weight is not None else 0.1,
    )


class CatalogStore:
    """Snapshot-returning facade over the catalog repositories."""

    def __init__(self, session: Session):
        self.session = session
        self.repositories = RepoRepository(session)
        self.opportunities = OpportunityRepository(session)
        self.users = UserRepository(session)
        self.preferences = PreferenceRepository(session)
        self.interactions = InteractionRepository(session)

    def get_user(self, user_id: int) -> Optional[UserSnapshot]:
        user = self.users.get_by_id(user_id)
        return user_snapshot(user) if user else None

    def get_users(self, user_ids: list[int]) -> list[UserSnapshot]:
        return [user_snapshot(user) for user in self.users.get_many(user_ids)]

    def get_preferences(self, user_id: int) -> Optional[PreferenceSnapshot]:
        preference = self.preferences.get_for_user(user_id)
        return preference_snapshot(preference) if preference else None

    def get_excluded_repository_ids(self, user_id: int) -> frozenset[int]:
        return self.interactions.contributed_repository_ids(user_id)

    def get_repository(self, repository_id: int) -> Optional[RepositorySnapshot]:
        repository = self.repositories.get_by_id(repository_id)
        return repository_snapshot(repository) if repository else None

    def get_opportunity(self, opportunity_id: int) -> Optional[OpportunitySnapshot]:
        opportunity = self.opportunities.get_by_id(opportunity_id)
        return opportunity_snapshot(opportunity) if opportunity else None

    def count_opportunities(self, repository_id: int) -> tuple[int, int]:
        """(total, open) opportunities of a repository."""
        return self.opportunities.count_for_repository(repository_id)

    def list_candidate_opportunities(
        self,
        filter: CandidateFilter,
        now: Optional[datetime] = None,
    ) -> list[OpportunitySnapshot]:
        return [
            opportunity_snapshot(opportunity, repository)
            for opportunity, repository in self.opportunities.list_candidates(filter, now=now)
        ]

    def list_candidate_repositories(self, filter: RepositoryFilter) -> list[RepositorySnapshot]:
        return [repository_snapshot(r) for r in self.repositories.list_candidates(filter)]


__all__ = [
    "CatalogStore",
    "CandidateFilter",
    "RepositoryFilter",
    "repository_snapshot",
    "opportunity_snapshot",
    "user_snapshot",
    "preference_snapshot",
]
