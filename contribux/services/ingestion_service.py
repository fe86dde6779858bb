"""
Ingestion Service - the write side of the catalog.

Validates entities, persists them through the repositories, keeps embeddings
in step with the text they summarize, and mirrors every change into the
search indexes.

Embedding policy:
- The content hash of the embedded text is stored next to the vector.
- When the text changes the old vector is cleared (and removed from the
  vector index) before re-embedding, so a stale vector is never served.
- If the embedding service is unavailable the entity is saved without a
  vector; the ``embed_opportunity`` task fills it in later.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from contribux.cache import CacheKeys, RedisCache
from contribux.config import Settings, get_settings
from contribux.enums import ContributionType, OpportunityStatus, SkillLevel
from contribux.exceptions import (
    EmbeddingUnavailable,
    InvalidEntity,
    OpportunityNotFound,
    RepositoryNotFound,
    UserNotFound,
)
from contribux.index.registry import SearchIndexes, opportunity_vector
from contribux.logging import get_logger
from contribux.models import Opportunity, Repository, User, UserPreference, UserRepositoryInteraction
from contribux.repositories import (
    InteractionRepository,
    OpportunityRepository,
    PreferenceRepository,
    RepoRepository,
    UserRepository,
)
from contribux.scoring.health import repository_health
from contribux.scoring.lifecycle import staleness_target, transition
from contribux.scoring.types import HealthSignals
from contribux.utils import bytes_to_vector, content_hash, to_naive_utc, utcnow, vector_to_bytes

from .embedding_service import EmbeddingService

logger = get_logger("ingestion.service")

MAX_WEEKLY_HOURS = 168
_COUNTERS = ("view_count", "application_count", "completion_count")
_RATES = ("pr_merge_rate", "issue_close_rate")


def _enum(enum_cls, value, field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidEntity(f"{field} must be one of: {allowed} (got {value!r})") from e


def _non_negative(fields: dict, names) -> None:
    for name in names:
        value = fields.get(name)
        if value is not None and value < 0:
            raise InvalidEntity(f"{name} must be >= 0 (got {value!r})")


class IngestionService:
    """
    Usage:
        with db.session() as session:
            service = IngestionService(session, indexes, embedding_service)
            repository = service.upsert_repository("octo/widgets", description="...")
    """

    def __init__(
        self,
        session: Session,
        indexes: SearchIndexes,
        embedding_service: Optional[EmbeddingService] = None,
        cache: Optional[RedisCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.indexes = indexes
        self.embedding_service = embedding_service
        self.cache = cache
        self.settings = settings or get_settings()
        self.repositories = RepoRepository(session)
        self.opportunities = OpportunityRepository(session)
        self.users = UserRepository(session)
        self.preferences = PreferenceRepository(session)
        self.interactions = InteractionRepository(session)

    # =========================================================================
    # Embedding helpers
    # =========================================================================

    def _embed(self, text: Optional[str], entity: str, entity_id: int) -> Optional[bytes]:
        if self.embedding_service is None or not (text or "").strip():
            return None
        try:
            return vector_to_bytes(self.embedding_service.embed(text))
        except EmbeddingUnavailable as e:
            logger.warning("embedding_deferred", entity=entity, entity_id=entity_id, error=str(e))
            return None

    @property
    def _model_name(self) -> Optional[str]:
        return self.embedding_service.model_name if self.embedding_service else None

    # =========================================================================
    # Repositories
    # =========================================================================

    def upsert_repository(self, full_name: str, **fields: Any) -> Repository:
        """
        Insert or wholesale-update a repository and refresh its health score.

        Raises:
            InvalidEntity: Negative counters or rates outside [0, 1]
        """
        if not full_name or not full_name.strip():
            raise InvalidEntity("full_name is required")
        _non_negative(fields, ("stars", "forks", "median_response_hours"))
        for name in _RATES:
            value = fields.get(name)
            if value is not None and (not math.isfinite(value) or not 0.0 <= value <= 1.0):
                raise InvalidEntity(f"{name} must be in [0, 1] (got {value!r})")
        if "last_activity_at" in fields:
            fields["last_activity_at"] = to_naive_utc(fields["last_activity_at"])

        repository, created = self.repositories.upsert(full_name, **fields)
        self.refresh_repository_health(repository.id)

        digest = content_hash(repository.full_name, repository.description, " ".join(repository.topics or []))
        if digest != repository.content_hash or repository.embedding is None:
            if repository.content_hash is not None and digest != repository.content_hash:
                self.repositories.apply(repository, embedding=None, embedding_model=None)
                self.indexes.repositories.remove(repository.id)
            text = " ".join(filter(None, [repository.full_name, repository.description, " ".join(repository.topics or [])]))
            blob = self._embed(text, "repository", repository.id)
            self.repositories.apply(
                repository,
                embedding=blob,
                embedding_model=self._model_name if blob else None,
                content_hash=digest,
            )
            if blob is not None:
                self.indexes.repositories.upsert(repository.id, bytes_to_vector(blob))

        title = " ".join([repository.full_name] + list(repository.topics or []))
        self.indexes.repository_text.upsert(repository.id, title, repository.description)
        self.repositories.mark_scanned(repository)
        logger.info("repository_upserted", repository_id=repository.id, created=created)
        return repository

    def refresh_repository_health(self, repository_id: int, now: Optional[datetime] = None) -> float:
        """Recompute the health score from stored signals and persist it."""
        repository = self.repositories.get_by_id(repository_id)
        if repository is None:
            raise RepositoryNotFound(repository_id)
        score = repository_health(
            HealthSignals(
                last_activity_at=repository.last_activity_at,
                median_response_hours=repository.median_response_hours,
                pr_merge_rate=repository.pr_merge_rate,
                issue_close_rate=repository.issue_close_rate,
                has_contributing_guide=repository.has_contributing_guide,
            ),
            now=now,
        )
        self.repositories.set_scores(repository, health_score=score)
        return score

    def delete_repository(self, repository_id: int) -> bool:
        """Hard-delete a repository; its opportunities and interactions cascade."""
        repository = self.repositories.get_by_id(repository_id)
        if repository is None:
            raise RepositoryNotFound(repository_id)
        opportunity_ids = self.opportunities.list_ids_for_repository(repository_id)
        self.repositories.delete(repository_id)
        # Expire cached relationships so cascaded rows are not served from the identity map.
        self.session.expire_all()
        for opportunity_id in opportunity_ids:
            self.indexes.opportunities.remove(opportunity_id)
            self.indexes.opportunity_text.remove(opportunity_id)
        self.indexes.repositories.remove(repository_id)
        self.indexes.repository_text.remove(repository_id)
        self._invalidate_all_feeds()
        self._invalidate_trending()
        logger.info("repository_deleted", repository_id=repository_id, opportunities=len(opportunity_ids))
        return True

    # =========================================================================
    # Opportunities
    # =========================================================================

    def _validate_opportunity(self, fields: dict, existing: Optional[Opportunity] = None) -> dict:
        for name, enum_cls in (("type", ContributionType), ("difficulty", SkillLevel)):
            if name in fields:
                fields[name] = _enum(enum_cls, fields[name], name)
        if existing is None:
            for name in ("type", "difficulty"):
                if fields.get(name) is None:
                    raise InvalidEntity(f"{name} is required")
        hours = fields.get("estimated_hours")
        if hours is not None and (not math.isfinite(hours) or hours <= 0):
            raise InvalidEntity(f"estimated_hours must be positive (got {hours!r})")
        priority = fields.get("priority")
        if priority is not None and not 0 <= priority <= 100:
            raise InvalidEntity(f"priority must be in [0, 100] (got {priority!r})")
        _non_negative(fields, _COUNTERS)

        for name in ("created_at", "expires_at"):
            if name in fields:
                fields[name] = to_naive_utc(fields[name])
        created_at = fields.get("created_at") or (existing.created_at if existing else None) or utcnow()
        expires_at = fields["expires_at"] if "expires_at" in fields else (existing.expires_at if existing else None)
        if expires_at is not None and expires_at < created_at:
            raise InvalidEntity("expires_at must not be earlier than created_at")
        return fields

    def upsert_opportunity(
        self,
        repository_id: int,
        title: str,
        opportunity_id: Optional[int] = None,
        **fields: Any,
    ) -> Opportunity:
        """
        Create an opportunity, or wholesale-update one by id or by url.

        A ``status`` in ``fields`` on update goes through the lifecycle rules.

        Raises:
            RepositoryNotFound: Unknown repository
            OpportunityNotFound: Unknown ``opportunity_id``
            InvalidEntity: A field violates a data-model constraint
            InvalidTransition: A disallowed status change
        """
        if self.repositories.get_by_id(repository_id) is None:
            raise RepositoryNotFound(repository_id)
        if not title or not title.strip():
            raise InvalidEntity("title is required")

        existing = None
        if opportunity_id is not None:
            existing = self.opportunities.get_by_id(opportunity_id)
            if existing is None:
                raise OpportunityNotFound(opportunity_id)
        elif fields.get("url"):
            existing = self.opportunities.get_by_url(fields["url"])

        fields = self._validate_opportunity(dict(fields), existing)
        status = fields.pop("status", None)

        if existing is None:
            initial = _enum(OpportunityStatus, status, "status") or OpportunityStatus.OPEN
            opportunity = self.opportunities.create_opportunity(
                repository_id=repository_id, title=title, status=initial, **fields
            )
        else:
            opportunity = self.opportunities.replace(existing, repository_id=repository_id, title=title, **fields)
            if status is not None and OpportunityStatus(status) != OpportunityStatus(opportunity.status):
                self._apply_transition(opportunity, _enum(OpportunityStatus, status, "status"))

        self._sync_opportunity_embeddings(opportunity)
        self.indexes.opportunity_text.upsert(opportunity.id, opportunity.title, opportunity.description)
        self._invalidate_all_feeds()
        logger.info("opportunity_upserted", opportunity_id=opportunity.id, created=existing is None)
        return opportunity

    def _sync_opportunity_embeddings(self, opportunity: Opportunity, force: bool = False) -> bool:
        """Re-embed when the text changed or no vector exists. Returns True when embedded."""
        digest = content_hash(opportunity.title, opportunity.description)
        has_vectors = opportunity.title_embedding is not None or opportunity.description_embedding is not None
        if not force and digest == opportunity.content_hash and has_vectors:
            return False

        if opportunity.content_hash is not None and digest != opportunity.content_hash and has_vectors:
            self.opportunities.apply(
                opportunity, title_embedding=None, description_embedding=None, embedding_model=None
            )
            self.indexes.opportunities.remove(opportunity.id)

        title_blob = self._embed(opportunity.title, "opportunity", opportunity.id)
        description_blob = self._embed(opportunity.description, "opportunity", opportunity.id)
        embedded = title_blob is not None or description_blob is not None
        self.opportunities.apply(
            opportunity,
            title_embedding=title_blob,
            description_embedding=description_blob,
            embedding_model=self._model_name if embedded else None,
            content_hash=digest,
        )
        if embedded:
            vector = opportunity_vector(
                bytes_to_vector(title_blob), bytes_to_vector(description_blob)
            )
            self.indexes.opportunities.upsert(opportunity.id, vector)
        return embedded

    def embed_opportunity(self, opportunity_id: int) -> bool:
        """Fill in missing or stale embeddings of one opportunity."""
        opportunity = self.opportunities.get_by_id(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFound(opportunity_id)
        if self.embedding_service is None:
            raise EmbeddingUnavailable("no embedding service configured")
        embedded = self._sync_opportunity_embeddings(opportunity)
        if not embedded and opportunity.title_embedding is None and opportunity.description_embedding is None:
            raise EmbeddingUnavailable(f"could not embed opportunity {opportunity_id}")
        return embedded

    def transition_status(self, opportunity_id: int, target: Any) -> Opportunity:
        """
        Move an opportunity to ``target`` following the lifecycle rules.

        Raises:
            OpportunityNotFound: Unknown opportunity
            InvalidEntity: Unknown status value
            InvalidTransition: Disallowed change
        """
        opportunity = self.opportunities.get_by_id(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFound(opportunity_id)
        self._apply_transition(opportunity, _enum(OpportunityStatus, target, "status"))
        return opportunity

    def _apply_transition(self, opportunity: Opportunity, target: OpportunityStatus) -> None:
        current = opportunity.status
        new_status = transition(current, target, opportunity_id=opportunity.id)
        changes: dict[str, Any] = {"status": new_status.value}
        now = utcnow()
        if new_status == OpportunityStatus.IN_PROGRESS:
            changes["started_at"] = now
        elif new_status == OpportunityStatus.COMPLETED:
            changes["closed_at"] = now
            changes["completion_count"] = (opportunity.completion_count or 0) + 1
        elif new_status == OpportunityStatus.CLOSED:
            changes["closed_at"] = now
        elif new_status == OpportunityStatus.OPEN:
            changes["started_at"] = None
        self.opportunities.apply(opportunity, **changes)
        logger.info(
            "opportunity_status_changed",
            opportunity_id=opportunity.id,
            from_status=current,
            to_status=new_status.value,
        )
        self._invalidate_all_feeds()
        self._invalidate_trending()

    def record_engagement(
        self,
        opportunity_id: int,
        views: int = 0,
        applications: int = 0,
        completions: int = 0,
    ) -> Opportunity:
        if min(views, applications, completions) < 0:
            raise InvalidEntity("engagement deltas must be >= 0")
        opportunity = self.opportunities.get_by_id(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFound(opportunity_id)
        return self.opportunities.increment_engagement(opportunity, views, applications, completions)

    def advance_stale_opportunities(self, now: Optional[datetime] = None) -> dict[str, int]:
        """
        Open opportunities idle past ``stale_after_days`` become stale; stale ones
        idle past ``close_stale_after_days`` close.
        """
        now = to_naive_utc(now) or utcnow()
        stale_after = timedelta(days=self.settings.stale_after_days)
        close_after = timedelta(days=self.settings.close_stale_after_days)
        counts = {"stale": 0, "closed": 0}

        # Stale-to-closed first so items made stale in this run keep their grace period.
        for status, window in ((OpportunityStatus.STALE, close_after), (OpportunityStatus.OPEN, stale_after)):
            for opportunity in self.opportunities.list_inactive(status, now - window):
                target = staleness_target(opportunity.status, opportunity.updated_at, now, stale_after, close_after)
                if target is None:
                    continue
                self._apply_transition(opportunity, target)
                counts[target.value] += 1

        logger.info("stale_opportunities_advanced", **counts)
        return counts

    # =========================================================================
    # Users
    # =========================================================================

    def _validate_user(self, fields: dict) -> dict:
        if fields.get("skill_level") is None:
            fields.pop("skill_level", None)
        else:
            fields["skill_level"] = _enum(SkillLevel, fields["skill_level"], "skill_level")
        hours = fields.get("availability_hours")
        if hours is not None and not 0 <= hours <= MAX_WEEKLY_HOURS:
            raise InvalidEntity(f"availability_hours must be in [0, {MAX_WEEKLY_HOURS}] (got {hours!r})")
        return fields

    def register_user(self, github_username: str, **fields: Any) -> User:
        if not github_username or not github_username.strip():
            raise InvalidEntity("github_username is required")
        fields = self._validate_user(dict(fields))
        user = self.users.get_by_username(github_username)
        if user is None:
            user = self.users.create_user(github_username=github_username, **fields)
        else:
            self.users.replace(user, **fields)
        self._sync_profile_embedding(user)
        self._invalidate_feed(user.id)
        return user

    def update_user_profile(self, user_id: int, **fields: Any) -> User:
        """Replace profile attributes; the profile embedding follows the bio."""
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        self.users.replace(user, **self._validate_user(dict(fields)))
        self._sync_profile_embedding(user)
        self._invalidate_feed(user_id)
        return user

    def _sync_profile_embedding(self, user: User) -> None:
        text = " ".join(filter(None, [user.bio, " ".join(user.preferred_languages or [])]))
        digest = content_hash(text)
        if digest == user.content_hash and user.profile_embedding is not None:
            return
        if user.profile_embedding is not None:
            self.users.apply(user, profile_embedding=None, embedding_model=None)
            self.indexes.users.remove(user.id)
        blob = self._embed(text, "user", user.id)
        self.users.apply(
            user,
            profile_embedding=blob,
            embedding_model=self._model_name if blob else None,
            content_hash=digest,
        )
        if blob is not None:
            self.indexes.users.upsert(user.id, bytes_to_vector(blob))

    def update_preferences(self, user_id: int, **fields: Any) -> UserPreference:
        """
        Insert or replace the user's matching preferences.

        Raises:
            UserNotFound: Unknown user
            InvalidEntity: Invalid type, non-positive hour cap, negative stars,
                or exploration weight outside [0, 1]
        """
        if self.users.get_by_id(user_id) is None:
            raise UserNotFound(user_id)
        if "preferred_contribution_types" in fields:
            fields["preferred_contribution_types"] = [
                _enum(ContributionType, t, "preferred_contribution_types")
                for t in fields["preferred_contribution_types"] or []
            ]
        cap = fields.get("max_estimated_hours")
        if cap is not None and cap <= 0:
            raise InvalidEntity(f"max_estimated_hours must be positive (got {cap!r})")
        _non_negative(fields, ("min_repo_stars",))
        weight = fields.get("exploration_weight")
        if weight is not None and not 0.0 <= weight <= 1.0:
            raise InvalidEntity(f"exploration_weight must be in [0, 1] (got {weight!r})")
        preference = self.preferences.upsert(user_id, **fields)
        self._invalidate_feed(user_id)
        return preference

    def record_interaction(
        self,
        user_id: int,
        repository_id: int,
        contributed: Optional[bool] = None,
        starred: Optional[bool] = None,
        visited: bool = False,
        opportunities_viewed: int = 0,
        opportunities_applied: int = 0,
    ) -> UserRepositoryInteraction:
        if self.users.get_by_id(user_id) is None:
            raise UserNotFound(user_id)
        if self.repositories.get_by_id(repository_id) is None:
            raise RepositoryNotFound(repository_id)
        if opportunities_viewed < 0 or opportunities_applied < 0:
            raise InvalidEntity("interaction counters must be >= 0")
        interaction = self.interactions.record(
            user_id,
            repository_id,
            contributed=contributed,
            starred=starred,
            visited=visited,
            opportunities_viewed=opportunities_viewed,
            opportunities_applied=opportunities_applied,
        )
        self._invalidate_feed(user_id)
        return interaction

    def _invalidate_feed(self, user_id: int) -> None:
        if self.cache is not None:
            self.cache.delete_pattern(CacheKeys.user_feed_pattern(user_id))

    def _invalidate_all_feeds(self) -> None:
        """Catalog changes can alter any user's feed."""
        if self.cache is not None:
            self.cache.delete_pattern(CacheKeys.feed_pattern())

    def _invalidate_trending(self) -> None:
        if self.cache is not None:
            self.cache.delete_pattern(CacheKeys.trending_pattern())


__all__ = ["IngestionService"]
