"""
Opportunity data access with candidate filtering.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import or_

from contribux.enums import ContributionType, OpportunityStatus, SkillLevel
from contribux.models import Opportunity, Repository
from contribux.utils import ordered_set, utcnow

from .base import BaseRepository

SET_FIELDS = ("required_skills", "technologies", "labels")


@dataclass(frozen=True)
class CandidateFilter:
    """
    Pre-filter applied in the database before any scoring.

    Attributes:
        statuses: Allowed statuses (open only by default)
        ids: Restrict to these opportunity IDs (candidate recall results)
        exclude_repository_ids: Repositories whose opportunities are dropped
        types: Allowed contribution types
        difficulties: Allowed difficulty levels
        languages: Allowed repository languages
        min_repo_stars: Minimum stars of the owning repository
        created_after: Only opportunities created at or after this time
        include_archived: Keep opportunities of archived repositories
        include_expired: Keep opportunities whose ``expires_at`` has passed
        after_id: Keyset cursor; only IDs greater than this are returned
        limit: Maximum number of rows
    """

    statuses: tuple[OpportunityStatus, ...] = (OpportunityStatus.OPEN,)
    ids: Optional[tuple[int, ...]] = None
    exclude_repository_ids: frozenset[int] = frozenset()
    types: tuple[ContributionType, ...] = ()
    difficulties: tuple[SkillLevel, ...] = ()
    languages: tuple[str, ...] = ()
    min_repo_stars: int = 0
    created_after: Optional[datetime] = None
    include_archived: bool = False
    include_expired: bool = False
    after_id: Optional[int] = None
    limit: Optional[int] = None


class OpportunityRepository(BaseRepository[Opportunity]):
    """Repository for Opportunity operations."""

    model = Opportunity

    def get_by_url(self, url: str) -> Opportunity | None:
        return self.session.query(Opportunity).filter(Opportunity.url == url).first()

    def create_opportunity(self, **fields) -> Opportunity:
        return self.create(**self._normalize(fields))

    def replace(self, opportunity: Opportunity, **fields) -> Opportunity:
        return self.apply(opportunity, **self._normalize(fields))

    def list_candidates(
        self,
        filter: CandidateFilter,
        now: Optional[datetime] = None,
    ) -> list[tuple[Opportunity, Repository]]:
        """
        List (opportunity, repository) rows matching ``filter``, ordered by ID.

        Args:
            filter: Candidate filter
            now: Reference time for expiry checks (defaults to current UTC)
        """
        now = now or utcnow()
        query = self.session.query(Opportunity, Repository).join(
            Repository, Opportunity.repository_id == Repository.id
        )

        if filter.ids is not None:
            if not filter.ids:
                return []
            query = query.filter(Opportunity.id.in_(list(filter.ids)))
        if filter.statuses:
            query = query.filter(Opportunity.status.in_([s.value for s in filter.statuses]))
        if filter.exclude_repository_ids:
            query = query.filter(Opportunity.repository_id.notin_(sorted(filter.exclude_repository_ids)))
        if filter.types:
            query = query.filter(Opportunity.type.in_([t.value for t in filter.types]))
        if filter.difficulties:
            query = query.filter(Opportunity.difficulty.in_([d.value for d in filter.difficulties]))
        if filter.languages:
            query = query.filter(Repository.language.in_(filter.languages))
        if filter.min_repo_stars:
            query = query.filter(Repository.stars >= filter.min_repo_stars)
        if filter.created_after is not None:
            query = query.filter(Opportunity.created_at >= filter.created_after)
        if filter.after_id is not None:
            query = query.filter(Opportunity.id > filter.after_id)
        if not filter.include_archived:
            query = query.filter(Repository.archived.is_(False))
        if not filter.include_expired:
            query = query.filter(or_(Opportunity.expires_at.is_(None), Opportunity.expires_at >= now))

        query = query.order_by(Opportunity.id)
        if filter.limit is not None:
            query = query.limit(filter.limit)
        return [(opportunity, repository) for opportunity, repository in query.all()]

    def list_embeddings(self) -> list[tuple[int, bytes | None, bytes | None]]:
        """(id, title embedding, description embedding) for embedded opportunities."""
        rows = (
            self.session.query(
                Opportunity.id, Opportunity.title_embedding, Opportunity.description_embedding
            )
            .filter(
                or_(
                    Opportunity.title_embedding.isnot(None),
                    Opportunity.description_embedding.isnot(None),
                )
            )
            .order_by(Opportunity.id)
            .all()
        )
        return [(row.id, row.title_embedding, row.description_embedding) for row in rows]

    def list_texts(self) -> list[tuple[int, str, str | None]]:
        """(id, title, description) of every opportunity, for the lexical index."""
        rows = (
            self.session.query(Opportunity.id, Opportunity.title, Opportunity.description)
            .order_by(Opportunity.id)
            .all()
        )
        return [(row.id, row.title, row.description) for row in rows]

    def count_for_repository(self, repository_id: int) -> tuple[int, int]:
        """(total, open) opportunity counts of a repository."""
        statuses = [
            row[0]
            for row in self.session.query(Opportunity.status)
            .filter(Opportunity.repository_id == repository_id)
            .all()
        ]
        return len(statuses), sum(1 for s in statuses if s == OpportunityStatus.OPEN.value)

    def list_inactive(self, status: OpportunityStatus, inactive_since: datetime) -> list[Opportunity]:
        """Opportunities in ``status`` not updated since ``inactive_since``."""
        return (
            self.session.query(Opportunity)
            .filter(
                Opportunity.status == status.value,
                Opportunity.updated_at < inactive_since,
            )
            .order_by(Opportunity.id)
            .all()
        )

    def list_ids_for_repository(self, repository_id: int) -> list[int]:
        return [
            row[0]
            for row in self.session.query(Opportunity.id)
            .filter(Opportunity.repository_id == repository_id)
            .order_by(Opportunity.id)
            .all()
        ]

    def increment_engagement(
        self,
        opportunity: Opportunity,
        views: int = 0,
        applications: int = 0,
        completions: int = 0,
    ) -> Opportunity:
        """Add to the engagement counters. Deltas must be non-negative."""
        return self.apply(
            opportunity,
            view_count=(opportunity.view_count or 0) + views,
            application_count=(opportunity.application_count or 0) + applications,
            completion_count=(opportunity.completion_count or 0) + completions,
        )

    @staticmethod
    def _normalize(fields: dict) -> dict:
        fields = dict(fields)
        for key in SET_FIELDS:
            if key in fields:
                fields[key] = list(ordered_set(fields[key]))
        for key in ("type", "difficulty", "status"):
            value = fields.get(key)
            if value is not None and hasattr(value, "value"):
                fields[key] = value.value
        return fields
