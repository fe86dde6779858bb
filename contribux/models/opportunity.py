"""
Opportunity SQLAlchemy model.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional

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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contribux.enums import OpportunityStatus
from contribux.utils import utcnow

from .base import Base

if TYPE_CHECKING:
    from .repository import Repository


class Opportunity(Base):
    """
    A contribution opportunity (usually an issue) within a repository.

    Deleted together with its repository.
    """

    __tablename__ = "opportunities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), index=True
    )
    github_issue_number: Mapped[Optional[int]] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)
    url: Mapped[Optional[str]] = mapped_column(String(512))
    labels: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)

    type: Mapped[str] = mapped_column(String(32), index=True)
    difficulty: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32), default=OpportunityStatus.OPEN.value, index=True)
    required_skills: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    technologies: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    good_first_issue: Mapped[bool] = mapped_column(Boolean, default=False)
    help_wanted: Mapped[bool] = mapped_column(Boolean, default=False)
    mentorship_available: Mapped[bool] = mapped_column(Boolean, default=False)

    # Engagement counters
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    application_count: Mapped[int] = mapped_column(Integer, default=0)
    completion_count: Mapped[int] = mapped_column(Integer, default=0)

    # Embeddings
    title_embedding: Mapped[Optional[bytes]] = mapped_column(LargeBinary)
    description_embedding: Mapped[Optional[bytes]] = mapped_column(LargeBinary)
    embedding_model: Mapped[Optional[str]] = mapped_column(String(255))
    content_hash: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    repository: Mapped["Repository"] = relationship("Repository", back_populates="opportunities")

    @property
    def engagement(self) -> int:
        """Views plus weighted applications, the trending numerator."""
        return (self.view_count or 0) + 3 * (self.application_count or 0)

    def to_dict(self) -> Dict:
        """
        Serialize the opportunity for API responses.

        Embedding bytes are omitted.
        """
        return {
            "id": self.id,
            "repository_id": self.repository_id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "labels": list(self.labels or []),
            "type": self.type,
            "difficulty": self.difficulty,
            "status": self.status,
            "required_skills": list(self.required_skills or []),
            "technologies": list(self.technologies or []),
            "estimated_hours": self.estimated_hours,
            "priority": self.priority,
            "good_first_issue": self.good_first_issue,
            "help_wanted": self.help_wanted,
            "mentorship_available": self.mentorship_available,
            "view_count": self.view_count,
            "application_count": self.application_count,
            "completion_count": self.completion_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
