"""
User-related SQLAlchemy models.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contribux.enums import SkillLevel
from contribux.utils import utcnow

from .base import Base

if TYPE_CHECKING:
    from .repository import Repository


class User(Base):
    """
    A developer looking for contribution opportunities.

    Attributes:
        skill_level: Ordinal skill level (beginner..expert)
        preferred_languages: Languages the user wants to work in
        profile_embedding: Embedding of the user's bio/profile text
        availability_hours: Weekly hours available (0-168)
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    github_username: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    bio: Mapped[Optional[str]] = mapped_column(Text)
    skill_level: Mapped[str] = mapped_column(String(32), default=SkillLevel.INTERMEDIATE.value)
    preferred_languages: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    availability_hours: Mapped[Optional[int]] = mapped_column(Integer)

    profile_embedding: Mapped[Optional[bytes]] = mapped_column(LargeBinary)
    embedding_model: Mapped[Optional[str]] = mapped_column(String(255))
    content_hash: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    preference: Mapped[Optional["UserPreference"]] = relationship(
        "UserPreference",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    interactions: Mapped[list["UserRepositoryInteraction"]] = relationship(
        "UserRepositoryInteraction",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class UserPreference(Base):
    """
    Matching preferences, one row per user.

    ``exploration_weight`` is stored for future diversification of the feed.
    """

    __tablename__ = "user_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )
    preferred_contribution_types: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    max_estimated_hours: Mapped[Optional[float]] = mapped_column(Float)
    min_repo_stars: Mapped[int] = mapped_column(Integer, default=0)
    exploration_weight: Mapped[float] = mapped_column(Float, default=0.1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="preference")


class UserRepositoryInteraction(Base):
    """
    Per-(user, repository) interaction record.

    ``contributed`` excludes the repository from the user's feed.
    """

    __tablename__ = "user_repository_interactions"
    __table_args__ = (
        UniqueConstraint("user_id", "repository_id", name="uq_interactions_user_repository"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), index=True
    )
    contributed: Mapped[bool] = mapped_column(Boolean, default=False)
    starred: Mapped[bool] = mapped_column(Boolean, default=False)
    visited: Mapped[bool] = mapped_column(Boolean, default=False)
    visit_count: Mapped[int] = mapped_column(Integer, default=0)
    opportunities_viewed: Mapped[int] = mapped_column(Integer, default=0)
    opportunities_applied: Mapped[int] = mapped_column(Integer, default=0)
    last_interaction_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="interactions")
    repository: Mapped["Repository"] = relationship("Repository", back_populates="interactions")
