"""
SQLAlchemy models for the contribux catalog.

Usage:
    from contribux.models import Repository, Opportunity, User
"""

from .base import Base
from .opportunity import Opportunity
from .repository import Repository
from .user import User, UserPreference, UserRepositoryInteraction

__all__ = [
    "Base",
    "Repository",
    "Opportunity",
    "User",
    "UserPreference",
    "UserRepositoryInteraction",
]
