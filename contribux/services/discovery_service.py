"""
Discovery Service - the read side: search, personalized feed, trending and health.

Request flow:
    search:  text/vector -> lexical + vector recall -> catalog snapshots -> hybrid rank
    feed:    user id -> profile, preferences, exclusions -> preference matcher
    trending: window -> recent open opportunities -> time-decayed engagement

Search never fails because the embedding model or the vector index is down;
it falls back to lexical ranking and flags the response as degraded.
"""

import heapq
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Optional

import numpy as np

from contribux.cache import CacheKeys, RedisCache
from contribux.catalog import CandidateFilter, CatalogStore, RepositoryFilter
from contribux.config import Settings, get_settings
from contribux.exceptions import (
    EmbeddingUnavailable,
    EmptyQuery,
    IndexUnavailable,
    InvalidLimit,
    RepositoryNotFound,
    UserNotFound,
)
from contribux.index.lexical import LexicalIndex
from contribux.index.manager import IndexManager
from contribux.index.registry import SearchIndexes
from contribux.logging import LogContext, get_logger, log_timing
from contribux.scoring import (
    CancellationToken,
    HealthReport,
    MatchWeights,
    OpportunitySnapshot,
    PreferenceSnapshot,
    RankingConfig,
    ScoredResult,
    UserSnapshot,
    health_report,
    match_opportunities,
    rank,
    rank_trending,
)
from contribux.scoring import repository_health as compute_health
from contribux.utils import to_naive_utc, utcnow

from .embedding_service import EmbeddingService

logger = get_logger("discovery.service")

EMBEDDING_UNAVAILABLE = "embedding_unavailable"
INDEX_UNAVAILABLE = "vector_index_unavailable"


@dataclass
class SearchResponse:
    """
    Ranked search results.

    ``degraded`` is True when the semantic signal was lost (embedding model or
    vector index unavailable) and ranking fell back to lexical scores.
    """

    results: list[ScoredResult]
    degraded: bool = False
    degradation_reasons: list[str] = field(default_factory=list)
    index_version: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "degraded": self.degraded,
            "degradation_reasons": list(self.degradation_reasons),
            "index_version": self.index_version,
        }


@dataclass
class _Recall:
    ids: Optional[set[int]]
    query_vector: Optional[np.ndarray]
    reasons: list[str]
    index_version: Optional[int]


class DiscoveryService:
    """
    Usage:
        with db.session() as session:
            service = DiscoveryService(CatalogStore(session), get_search_indexes())
            response = service.search("flaky scheduler test", limit=10)
    """

    def __init__(
        self,
        catalog: CatalogStore,
        indexes: SearchIndexes,
        embedding_service: Optional[EmbeddingService] = None,
        cache: Optional[RedisCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.catalog = catalog
        self.indexes = indexes
        self.embedding_service = embedding_service
        self.cache = cache
        self.settings = settings or get_settings()

    def _check_limit(self, limit: int) -> int:
        if limit is None or limit <= 0:
            raise InvalidLimit(limit)
        return min(limit, self.settings.max_result_limit)

    # =========================================================================
    # Search
    # =========================================================================

    def _recall(
        self,
        text: Optional[str],
        vector,
        vectors: IndexManager,
        lexical: LexicalIndex,
    ) -> _Recall:
        """
        Candidate ids from the lexical and vector indexes.

        ``ids`` is None when no recall source could be consulted and the
        caller has to scan the catalog instead.
        """
        reasons: list[str] = []
        query_vector = None if vector is None else np.asarray(vector, dtype=np.float32)
        if query_vector is None and text and self.embedding_service is not None:
            try:
                query_vector = self.embedding_service.embed(text)
            except EmbeddingUnavailable as e:
                logger.warning("search_degraded", reason=EMBEDDING_UNAVAILABLE, error=str(e))
                reasons.append(EMBEDDING_UNAVAILABLE)

        pool = self.settings.search_candidate_pool
        ids: set[int] = set()
        consulted = False
        index_version = None

        if query_vector is not None:
            try:
                version = vectors.snapshot()
            except IndexUnavailable as e:
                logger.warning("search_degraded", reason=INDEX_UNAVAILABLE, error=str(e))
                reasons.append(INDEX_UNAVAILABLE)
            else:
                index_version = version.version
                ids.update(item_id for item_id, _ in version.query(query_vector, pool, 0.0))
                consulted = True

        if text and len(lexical) > 0:
            ids.update(item_id for item_id, _ in lexical.search(text, pool))
            consulted = True

        return _Recall(ids if consulted else None, query_vector, reasons, index_version)

    def _ranking_config(self, query_vector) -> RankingConfig:
        config = RankingConfig.from_settings(self.settings)
        return config if query_vector is not None else config.lexical_only()

    @log_timing("search")
    def search(
        self,
        text: Optional[str] = None,
        vector=None,
        filters: Optional[CandidateFilter] = None,
        limit: int = 20,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SearchResponse:
        """
        Hybrid search over open opportunities.

        Args:
            text: Free-text query
            vector: Query embedding; computed from ``text`` when omitted
            filters: Catalog pre-filter (types, difficulties, languages, stars)
            limit: Maximum results

        Raises:
            EmptyQuery: Neither text nor vector given
            InvalidLimit: ``limit <= 0``
            DimensionMismatch: ``vector`` does not match the index dimension
            RankingCancelled: ``cancel_token`` fired
        """
        text = (text or "").strip() or None
        if text is None and vector is None:
            raise EmptyQuery("search needs query text or a query vector")
        limit = self._check_limit(limit)

        recall = self._recall(text, vector, self.indexes.opportunities, self.indexes.opportunity_text)
        base = filters or CandidateFilter()
        if recall.ids is None:
            candidate_filter = replace(base, limit=self.settings.max_candidates)
        else:
            candidate_filter = replace(base, ids=tuple(sorted(recall.ids)))
        candidates = self.catalog.list_candidate_opportunities(candidate_filter)

        results = rank(
            text,
            recall.query_vector,
            candidates,
            config=self._ranking_config(recall.query_vector),
            cancel_token=cancel_token,
        )[:limit]

        logger.info(
            "search_completed",
            candidates=len(candidates),
            results=len(results),
            degraded=bool(recall.reasons),
        )
        return SearchResponse(
            results=results,
            degraded=bool(recall.reasons),
            degradation_reasons=recall.reasons,
            index_version=recall.index_version,
        )

    def search_repositories(
        self,
        text: Optional[str] = None,
        vector=None,
        limit: int = 20,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SearchResponse:
        """Hybrid search over active repositories."""
        text = (text or "").strip() or None
        if text is None and vector is None:
            raise EmptyQuery("search needs query text or a query vector")
        limit = self._check_limit(limit)

        recall = self._recall(text, vector, self.indexes.repositories, self.indexes.repository_text)
        if recall.ids is None:
            repository_filter = RepositoryFilter(limit=self.settings.max_candidates)
        else:
            repository_filter = RepositoryFilter(ids=tuple(sorted(recall.ids)))
        candidates = self.catalog.list_candidate_repositories(repository_filter)

        results = rank(
            text,
            recall.query_vector,
            candidates,
            config=self._ranking_config(recall.query_vector),
            cancel_token=cancel_token,
        )[:limit]
        return SearchResponse(
            results=results,
            degraded=bool(recall.reasons),
            degradation_reasons=recall.reasons,
            index_version=recall.index_version,
        )

    # =========================================================================
    # Feed
    # =========================================================================

    @log_timing("feed")
    def feed_for_user(
        self,
        user_id: int,
        limit: int = 20,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[ScoredResult]:
        """
        Personalized, reasoned opportunity feed.

        Every pre-filtered candidate is scored; nothing is dropped by a
        candidate cap.

        Raises:
            UserNotFound: Unknown user
            InvalidLimit: ``limit <= 0``
            RankingCancelled: ``cancel_token`` was cancelled
        """
        limit = self._check_limit(limit)
        cache_key = CacheKeys.user_feed(user_id, limit)
        if self.cache is not None:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                logger.debug("feed_cache_hit", user_id=user_id)
                return [ScoredResult.from_dict(item) for item in cached]

        with LogContext(user_id=user_id, operation="feed"):
            user = self.catalog.get_user(user_id)
            if user is None:
                raise UserNotFound(user_id)
            preferences = self.catalog.get_preferences(user_id)
            excluded = self.catalog.get_excluded_repository_ids(user_id)

            results, scanned = self._match_all_candidates(user, preferences, excluded, limit, cancel_token)

            if self.cache is not None:
                self.cache.set_json(
                    cache_key, [r.to_dict() for r in results], ttl=self.settings.feed_cache_ttl_seconds
                )
            logger.info("feed_generated", candidates=scanned, results=len(results))
        return results

    def _match_all_candidates(
        self,
        user: UserSnapshot,
        preferences: Optional[PreferenceSnapshot],
        excluded: frozenset[int],
        limit: int,
        cancel_token: Optional[CancellationToken],
    ) -> tuple[list[ScoredResult], int]:
        """
        Match candidates one keyset page at a time, keeping the best ``limit``.

        Returns the top results in matcher order and the number of candidates scored.
        """
        weights = MatchWeights.from_settings(self.settings)
        page_filter = CandidateFilter(
            exclude_repository_ids=excluded,
            min_repo_stars=preferences.min_repo_stars if preferences else 0,
            limit=self.settings.ranking_batch_size,
        )

        best: list[tuple[tuple[float, int, int], ScoredResult]] = []
        scanned = 0
        while True:
            page = self.catalog.list_candidate_opportunities(page_filter)
            if not page:
                break
            scanned += len(page)
            priorities = {o.id: o.priority for o in page}
            matched = match_opportunities(
                user,
                preferences,
                page,
                excluded_repository_ids=excluded,
                weights=weights,
                cancel_token=cancel_token,
                batch_size=self.settings.ranking_batch_size,
                user_id=user.id,
            )
            # Same key as the matcher's own order: score desc, priority desc, id asc.
            best = heapq.nsmallest(
                limit,
                best + [((-r.match_score, -priorities[r.id], r.id), r) for r in matched],
            )
            if len(page) < page_filter.limit:
                break
            page_filter = replace(page_filter, after_id=page[-1].id)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return [result for _, result in best], scanned

    # =========================================================================
    # Trending
    # =========================================================================

    def trending_opportunities(
        self,
        window_hours: Optional[float] = None,
        min_engagement: Optional[float] = None,
        limit: int = 20,
        now: Optional[datetime] = None,
    ) -> list[OpportunitySnapshot]:
        """
        Open opportunities ordered by time-decayed engagement.

        Only calls without an explicit ``now`` are cached.
        """
        limit = self._check_limit(limit)
        if window_hours is None:
            window_hours = self.settings.trending_window_hours
        if min_engagement is None:
            min_engagement = self.settings.trending_min_engagement

        cache_key = CacheKeys.trending(window_hours, min_engagement, limit)
        use_cache = self.cache is not None and now is None
        if use_cache:
            cached_ids = self.cache.get_json(cache_key)
            if cached_ids is not None:
                by_id = {
                    o.id: o
                    for o in self.catalog.list_candidate_opportunities(CandidateFilter(ids=tuple(cached_ids)))
                }
                return [by_id[i] for i in cached_ids if i in by_id]

        now = to_naive_utc(now) or utcnow()
        window = timedelta(hours=window_hours)
        ranked = rank_trending(
            self.catalog.list_candidate_opportunities(
                CandidateFilter(created_after=now - window) if window > timedelta(0) else CandidateFilter(),
                now=now,
            ),
            window,
            min_engagement,
            now=now,
        )
        results = [opportunity for opportunity, _ in ranked[:limit]]

        if use_cache:
            self.cache.set_json(cache_key, [o.id for o in results], ttl=self.settings.trending_cache_ttl_seconds)
        return results

    # =========================================================================
    # Health
    # =========================================================================

    def repository_health(self, repository_id: int, now: Optional[datetime] = None) -> float:
        """Health score in [0, 100] computed from the stored signals."""
        repository = self.catalog.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFound(repository_id)
        return compute_health(repository, now=now)

    def repository_health_report(self, repository_id: int, now: Optional[datetime] = None) -> HealthReport:
        repository = self.catalog.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFound(repository_id)
        total, open_count = self.catalog.count_opportunities(repository_id)
        return health_report(
            repository,
            health_score=compute_health(repository, now=now),
            total_opportunities=total,
            open_opportunities=open_count,
        )

    # =========================================================================
    # Similar users
    # =========================================================================

    def similar_users(
        self,
        user_id: int,
        limit: int = 10,
        min_similarity: float = 0.7,
    ) -> list[tuple[UserSnapshot, float]]:
        """
        Users whose profile embedding is closest to ``user_id``'s.

        Returns an empty list when the user has no profile embedding.

        Raises:
            UserNotFound: Unknown user
            IndexUnavailable: The user index has not been built
        """
        limit = self._check_limit(limit)
        user = self.catalog.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        if user.profile_embedding is None:
            return []

        hits = [
            (item_id, similarity)
            for item_id, similarity in self.indexes.users.query(user.profile_embedding, limit + 1, min_similarity)
            if item_id != user_id
        ][:limit]
        users = {u.id: u for u in self.catalog.get_users([item_id for item_id, _ in hits])}
        return [(users[item_id], similarity) for item_id, similarity in hits if item_id in users]


__all__ = ["DiscoveryService", "SearchResponse"]
