"""
Pydantic schemas for request and response validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from contribux.enums import ContributionType, SkillLevel


class ScoredResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    relevance_score: float
    match_score: float
    reasons: list[str] = Field(default_factory=list)


class SearchFilters(BaseModel):
    types: list[ContributionType] = Field(default_factory=list)
    difficulties: list[SkillLevel] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    min_repo_stars: int = Field(default=0, ge=0)


class SearchRequest(BaseModel):
    text: str | None = None
    vector: list[float] | None = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=20, ge=1, le=100)


class SearchResponse(BaseModel):
    results: list[ScoredResultResponse]
    degraded: bool = False
    degradation_reasons: list[str] = Field(default_factory=list)
    index_version: int | None = None


class FeedResponse(BaseModel):
    user_id: int
    results: list[ScoredResultResponse]


class OpportunityResponse(BaseModel):
    id: int
    repository_id: int
    title: str
    description: str | None = None
    type: str
    difficulty: str
    status: str
    required_skills: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    url: str | None = None
    estimated_hours: float | None = None
    priority: int = 0
    view_count: int = 0
    application_count: int = 0
    completion_count: int = 0
    created_at: datetime | None = None
    expires_at: datetime | None = None


class TrendingResponse(BaseModel):
    window_hours: float
    min_engagement: float
    opportunities: list[OpportunityResponse]


class HealthScoreResponse(BaseModel):
    repository_id: int
    health_score: float


class HealthReportResponse(BaseModel):
    repository_id: int
    health_score: float
    health_status: str
    key_strengths: list[str] = Field(default_factory=list)
    improvement_areas: list[str] = Field(default_factory=list)
    total_opportunities: int = 0
    open_opportunities: int = 0


class SimilarUserResponse(BaseModel):
    id: int
    github_username: str
    similarity: float


class SimilarUsersResponse(BaseModel):
    user_id: int
    users: list[SimilarUserResponse]


class IndexStatus(BaseModel):
    name: str
    ready: bool
    rebuilding: bool
    version: int | None = None
    model_name: str | None = None
    dimension: int | None = None
    size: int = 0


class IndexStatusResponse(BaseModel):
    indexes: list[IndexStatus]


class IndexRebuildRequest(BaseModel):
    model_name: str | None = None
    dimension: int | None = Field(default=None, gt=0)


class IndexRebuildResponse(BaseModel):
    versions: dict[str, int]
