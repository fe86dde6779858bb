"""
Repository SQLAlchemy model.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Integer,
    JSON,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contribux.enums import RepositoryStatus
from contribux.utils import utcnow

from .base import Base

if TYPE_CHECKING:
    from .opportunity import Opportunity
    from .user import UserRepositoryInteraction


class Repository(Base):
    """
    An open-source repository in the catalog.

    Holds the raw health signals (activity, responsiveness, merge and close
    rates) from which the health score is derived, plus the persisted copy of
    that score refreshed by the background job.
    """

    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    github_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    language: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    topics: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(16), default=RepositoryStatus.ACTIVE.value, index=True)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)

    stars: Mapped[int] = mapped_column(Integer, default=0)
    forks: Mapped[int] = mapped_column(Integer, default=0)

    # Derived scores, 0-100
    health_score: Mapped[float] = mapped_column(Float, default=0.0)
    activity_score: Mapped[float] = mapped_column(Float, default=0.0)
    community_score: Mapped[float] = mapped_column(Float, default=0.0)
    documentation_score: Mapped[float] = mapped_column(Float, default=0.0)
    contributor_friendliness: Mapped[float] = mapped_column(Float, default=0.0)
    first_time_contributor_friendly: Mapped[bool] = mapped_column(Boolean, default=False)

    # Health signals
    has_contributing_guide: Mapped[bool] = mapped_column(Boolean, default=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    median_response_hours: Mapped[Optional[float]] = mapped_column(Float)
    pr_merge_rate: Mapped[Optional[float]] = mapped_column(Float)
    issue_close_rate: Mapped[Optional[float]] = mapped_column(Float)

    # Description embedding
    embedding: Mapped[Optional[bytes]] = mapped_column(LargeBinary)
    embedding_model: Mapped[Optional[str]] = mapped_column(String(255))
    content_hash: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    opportunities: Mapped[List["Opportunity"]] = relationship(
        "Opportunity",
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    interactions: Mapped[List["UserRepositoryInteraction"]] = relationship(
        "UserRepositoryInteraction",
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self) -> Dict:
        """
        Serialize the repository for API responses.

        Embedding bytes are omitted.
        """
        return {
            "id": self.id,
            "github_id": self.github_id,
            "full_name": self.full_name,
            "name": self.name,
            "description": self.description,
            "language": self.language,
            "topics": list(self.topics or []),
            "status": self.status,
            "archived": self.archived,
            "stars": self.stars,
            "forks": self.forks,
            "health_score": self.health_score,
            "activity_score": self.activity_score,
            "community_score": self.community_score,
            "documentation_score": self.documentation_score,
            "contributor_friendliness": self.contributor_friendliness,
            "first_time_contributor_friendly": self.first_time_contributor_friendly,
            "has_contributing_guide": self.has_contributing_guide,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
