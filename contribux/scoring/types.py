"""
Immutable snapshots consumed by the scoring functions.

Scoring never touches the ORM: the catalog converts rows into these frozen
records once per request so ranking and matching stay pure.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import numpy as np

from contribux.enums import ContributionType, OpportunityStatus, SkillLevel
from contribux.exceptions import RankingCancelled


@dataclass(frozen=True)
class HealthSignals:
    """Raw repository signals the health score is derived from."""

    last_activity_at: Optional[datetime] = None
    median_response_hours: Optional[float] = None
    pr_merge_rate: Optional[float] = None
    issue_close_rate: Optional[float] = None
    has_contributing_guide: Optional[bool] = None


@dataclass(frozen=True)
class RepositorySnapshot:
    id: int
    full_name: str
    name: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    topics: tuple[str, ...] = ()
    archived: bool = False
    stars: int = 0
    forks: int = 0
    health_score: float = 0.0
    activity_score: float = 0.0
    community_score: float = 0.0
    documentation_score: float = 0.0
    contributor_friendliness: float = 0.0
    first_time_contributor_friendly: bool = False
    signals: HealthSignals = field(default_factory=HealthSignals)
    embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class OpportunitySnapshot:
    """
    An opportunity plus the few repository attributes scoring needs
    (language for technology fallback, health for tie-breaking).
    """

    id: int
    repository_id: int
    title: str
    description: Optional[str] = None
    type: ContributionType = ContributionType.BUG_FIX
    difficulty: SkillLevel = SkillLevel.INTERMEDIATE
    status: OpportunityStatus = OpportunityStatus.OPEN
    required_skills: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    url: Optional[str] = None
    estimated_hours: Optional[float] = None
    priority: int = 0
    good_first_issue: bool = False
    help_wanted: bool = False
    mentorship_available: bool = False
    view_count: int = 0
    application_count: int = 0
    completion_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    repository_language: Optional[str] = None
    repository_health: float = 0.0
    title_embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    description_embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def engagement(self) -> int:
        return self.view_count + 3 * self.application_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "repository_id": self.repository_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "difficulty": self.difficulty.value,
            "status": self.status.value,
            "required_skills": list(self.required_skills),
            "technologies": list(self.technologies),
            "labels": list(self.labels),
            "url": self.url,
            "estimated_hours": self.estimated_hours,
            "priority": self.priority,
            "view_count": self.view_count,
            "application_count": self.application_count,
            "completion_count": self.completion_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class UserSnapshot:
    id: int
    github_username: str = ""
    skill_level: Optional[SkillLevel] = None
    preferred_languages: tuple[str, ...] = ()
    availability_hours: Optional[int] = None
    profile_embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class PreferenceSnapshot:
    preferred_contribution_types: tuple[ContributionType, ...] = ()
    max_estimated_hours: Optional[float] = None
    min_repo_stars: int = 0
    exploration_weight: float = 0.1


@dataclass(frozen=True)
class ScoredResult:
    """Ranked output item. ``reasons`` are ordered by the term that produced them."""

    id: int
    relevance_score: float
    match_score: float
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "relevance_score": round(self.relevance_score, 6),
            "match_score": round(self.match_score, 6),
            "reasons": list(self.reasons),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoredResult":
        return cls(
            id=int(data["id"]),
            relevance_score=float(data["relevance_score"]),
            match_score=float(data["match_score"]),
            reasons=tuple(data.get("reasons") or ()),
        )


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a ranking run.

    Usage:
        token = CancellationToken()
        # from another thread
        token.cancel()
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RankingCancelled("ranking cancelled before completion")


__all__ = [
    "HealthSignals",
    "RepositorySnapshot",
    "OpportunitySnapshot",
    "UserSnapshot",
    "PreferenceSnapshot",
    "ScoredResult",
    "CancellationToken",
]
