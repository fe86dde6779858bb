"""
Process-wide set of search indexes.

One ``IndexManager`` per embedded entity (opportunities, repositories,
user profiles) plus lexical indexes for opportunities and repositories.
``rebuild_from_catalog`` reloads all of them from the database and
``sync_with`` repeats that when a worker published a newer generation.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import numpy as np
from sqlalchemy.orm import Session

from contribux.cache import CacheKeys, RedisCache
from contribux.config import Settings, get_settings
from contribux.logging import get_logger
from contribux.repositories import OpportunityRepository, RepoRepository, UserRepository
from contribux.utils import bytes_to_vector

from .lexical import LexicalIndex
from .manager import IndexFactory, IndexManager
from .vector_index import index_factory_from_settings

logger = get_logger(__name__)


def opportunity_vector(
    title_embedding: Optional[np.ndarray], description_embedding: Optional[np.ndarray]
) -> Optional[np.ndarray]:
    """Vector indexed for an opportunity: description, else title."""
    return description_embedding if description_embedding is not None else title_embedding


@dataclass
class SearchIndexes:
    opportunities: IndexManager
    repositories: IndexManager
    users: IndexManager
    opportunity_text: LexicalIndex
    repository_text: LexicalIndex
    # Last index generation published by the workers that this copy reflects.
    generation: Optional[int] = None

    @classmethod
    def create(
        cls,
        dimension: int,
        model_name: str,
        factory: Optional[IndexFactory] = None,
    ) -> "SearchIndexes":
        return cls(
            opportunities=IndexManager("opportunities", dimension, model_name, factory),
            repositories=IndexManager("repositories", dimension, model_name, factory),
            users=IndexManager("users", dimension, model_name, factory),
            opportunity_text=LexicalIndex(),
            repository_text=LexicalIndex(),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SearchIndexes":
        settings = settings or get_settings()
        return cls.create(
            settings.embedding_dimension,
            settings.embedding_model,
            index_factory_from_settings(settings),
        )

    def rebuild_from_catalog(
        self,
        session: Session,
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
    ) -> dict[str, int]:
        """
        Rebuild every index from stored embeddings and texts.

        Returns:
            Mapping of index name to its new version number
        """
        opportunities = OpportunityRepository(session)
        repositories = RepoRepository(session)
        users = UserRepository(session)

        opportunity_vectors = []
        for item_id, title_blob, description_blob in opportunities.list_embeddings():
            vector = opportunity_vector(bytes_to_vector(title_blob), bytes_to_vector(description_blob))
            if vector is not None:
                opportunity_vectors.append((item_id, vector))

        versions = {
            "opportunities": self.opportunities.rebuild(opportunity_vectors, model_name, dimension).version,
            "repositories": self.repositories.rebuild(
                ((i, bytes_to_vector(b)) for i, b in repositories.list_embeddings()), model_name, dimension
            ).version,
            "users": self.users.rebuild(
                ((i, bytes_to_vector(b)) for i, b in users.list_embeddings()), model_name, dimension
            ).version,
        }

        self.opportunity_text.clear()
        for item_id, title, description in opportunities.list_texts():
            self.opportunity_text.upsert(item_id, title, description)
        self.repository_text.clear()
        for item_id, title, description in repositories.list_texts():
            self.repository_text.upsert(item_id, title, description)

        logger.info(
            "search_indexes_rebuilt",
            opportunities=len(self.opportunity_text),
            repositories=len(self.repository_text),
            **{f"{name}_version": version for name, version in versions.items()},
        )
        return versions

    def sync_with(self, cache: Optional[RedisCache], session: Session) -> bool:
        """
        Rebuild from the catalog when workers published a newer generation.

        Workers update their own in-process copy; API processes call this
        periodically so those changes reach the indexes they serve from.

        Returns:
            True when the indexes were rebuilt
        """
        if cache is None:
            return False
        generation = cache.get_json(CacheKeys.index_generation())
        if generation is None or generation == self.generation:
            return False
        self.rebuild_from_catalog(session)
        self.generation = generation
        logger.info("search_indexes_synced", generation=generation)
        return True


def publish_index_change(cache: Optional[RedisCache]) -> Optional[int]:
    """Announce an index change to other processes; returns the new generation."""
    if cache is None:
        return None
    return cache.incr(CacheKeys.index_generation())


@lru_cache(maxsize=1)
def get_search_indexes() -> SearchIndexes:
    """Process-wide indexes built from settings."""
    return SearchIndexes.from_settings()


__all__ = ["SearchIndexes", "get_search_indexes", "opportunity_vector", "publish_index_change"]
