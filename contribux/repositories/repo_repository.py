"""Repository (source-code repository) data access."""

from dataclasses import dataclass
from typing import Optional

from contribux.enums import RepositoryStatus
from contribux.models import Repository
from contribux.utils import clamp, ordered_set, utcnow

from .base import BaseRepository

SCORE_FIELDS = (
    "health_score",
    "activity_score",
    "community_score",
    "documentation_score",
    "contributor_friendliness",
)


@dataclass(frozen=True)
class RepositoryFilter:
    """Candidate selection for repository search."""

    ids: Optional[tuple[int, ...]] = None
    include_archived: bool = False
    language: Optional[str] = None
    min_stars: int = 0
    limit: Optional[int] = None


class RepoRepository(BaseRepository[Repository]):
    """Repository for catalog repositories."""

    model = Repository

    def get_by_full_name(self, full_name: str) -> Repository | None:
        return self.session.query(Repository).filter(Repository.full_name == full_name).first()

    def upsert(self, full_name: str, **fields) -> tuple[Repository, bool]:
        """
        Insert or wholesale-update a repository keyed by ``full_name``.

        Scores are clamped to [0, 100] and topics de-duplicated on write.

        Returns:
            Tuple of (repository, created)
        """
        fields = self._normalize(fields)
        repository = self.get_by_full_name(full_name)
        if repository is None:
            fields.setdefault("name", full_name.rsplit("/", 1)[-1])
            return self.create(full_name=full_name, **fields), True
        return self.apply(repository, **fields), False

    def set_scores(self, repository: Repository, **scores: float) -> Repository:
        """Persist refreshed derived scores."""
        return self.apply(repository, **self._normalize(scores))

    def list_candidates(self, filter: RepositoryFilter) -> list[Repository]:
        """List repositories matching ``filter`` ordered by ID."""
        query = self.session.query(Repository)
        if filter.ids is not None:
            if not filter.ids:
                return []
            query = query.filter(Repository.id.in_(list(filter.ids)))
        if not filter.include_archived:
            query = query.filter(
                Repository.archived.is_(False),
                Repository.status == RepositoryStatus.ACTIVE.value,
            )
        if filter.language:
            query = query.filter(Repository.language.ilike(filter.language))
        if filter.min_stars:
            query = query.filter(Repository.stars >= filter.min_stars)
        query = query.order_by(Repository.id)
        if filter.limit is not None:
            query = query.limit(filter.limit)
        return query.all()

    def list_embeddings(self) -> list[tuple[int, bytes]]:
        """(id, embedding bytes) for every repository with an embedding."""
        return [
            (row.id, row.embedding)
            for row in self.session.query(Repository.id, Repository.embedding)
            .filter(Repository.embedding.isnot(None))
            .order_by(Repository.id)
            .all()
        ]

    def list_texts(self) -> list[tuple[int, str, str | None]]:
        """(id, searchable title, description) of every repository."""
        rows = (
            self.session.query(
                Repository.id, Repository.full_name, Repository.topics, Repository.description
            )
            .order_by(Repository.id)
            .all()
        )
        return [
            (row.id, " ".join([row.full_name] + list(row.topics or [])), row.description)
            for row in rows
        ]

    def list_ids(self) -> list[int]:
        return [row[0] for row in self.session.query(Repository.id).order_by(Repository.id).all()]

    def mark_scanned(self, repository: Repository) -> Repository:
        return self.apply(repository, last_scanned_at=utcnow())

    @staticmethod
    def _normalize(fields: dict) -> dict:
        fields = dict(fields)
        for key in SCORE_FIELDS:
            if fields.get(key) is not None:
                fields[key] = clamp(float(fields[key]), 0.0, 100.0)
        if "topics" in fields:
            fields["topics"] = list(ordered_set(fields["topics"]))
        if "archived" in fields and "status" not in fields:
            fields["status"] = (
                RepositoryStatus.ARCHIVED.value if fields["archived"] else RepositoryStatus.ACTIVE.value
            )
        return fields
