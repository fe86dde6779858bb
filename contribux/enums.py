"""
Shared Enumerations.

Defines the catalog's categorical values for type safety and consistency.
"""

from enum import Enum


class SkillLevel(str, Enum):
    """Ordinal skill scale shared by user skill level and opportunity difficulty."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def ordinal(self) -> int:
        return _SKILL_ORDER.index(self)

    @classmethod
    def max_distance(cls) -> int:
        return len(_SKILL_ORDER) - 1


_SKILL_ORDER = (
    SkillLevel.BEGINNER,
    SkillLevel.INTERMEDIATE,
    SkillLevel.ADVANCED,
    SkillLevel.EXPERT,
)


class ContributionType(str, Enum):
    """Kind of work an opportunity asks for."""
    BUG_FIX = "bug_fix"
    FEATURE = "feature"
    DOCUMENTATION = "documentation"
    TEST = "test"
    REFACTOR = "refactor"
    SECURITY = "security"


class OpportunityStatus(str, Enum):
    """Opportunity lifecycle status."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    STALE = "stale"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in (OpportunityStatus.COMPLETED, OpportunityStatus.CLOSED)


class RepositoryStatus(str, Enum):
    """Repository catalog status."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class HealthStatus(str, Enum):
    """Coarse health bucket reported alongside the numeric health score."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"


__all__ = [
    "SkillLevel",
    "ContributionType",
    "OpportunityStatus",
    "RepositoryStatus",
    "HealthStatus",
]
