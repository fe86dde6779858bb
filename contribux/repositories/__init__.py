"""
Repository pattern implementations for data access.

Usage:
    from contribux.repositories import OpportunityRepository
    from contribux.db import db

    with db.session() as session:
        rows = OpportunityRepository(session).list_candidates(CandidateFilter())
"""

from .base import BaseRepository
from .opportunity_repository import CandidateFilter, OpportunityRepository
from .repo_repository import RepoRepository, RepositoryFilter
from .user_repository import InteractionRepository, PreferenceRepository, UserRepository

__all__ = [
    "BaseRepository",
    "CandidateFilter",
    "OpportunityRepository",
    "RepoRepository",
    "RepositoryFilter",
    "UserRepository",
    "PreferenceRepository",
    "InteractionRepository",
]
