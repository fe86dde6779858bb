"""
Search endpoints: hybrid lexical + semantic ranking.
"""

from fastapi import APIRouter, Depends, Query

from contribux.catalog import CandidateFilter
from contribux.enums import ContributionType, SkillLevel
from contribux.services import DiscoveryService

from ..dependencies import get_discovery_service
from ..schemas import SearchFilters, SearchRequest, SearchResponse

router = APIRouter(prefix="/search", tags=["search"])


def _candidate_filter(filters: SearchFilters) -> CandidateFilter:
    return CandidateFilter(
        types=tuple(filters.types),
        difficulties=tuple(filters.difficulties),
        languages=tuple(filters.languages),
        min_repo_stars=filters.min_repo_stars,
    )


@router.get("", response_model=SearchResponse)
def search_opportunities(
    q: str = Query(..., min_length=1, description="Free-text query"),
    limit: int = Query(default=20, ge=1, le=100),
    type: list[ContributionType] = Query(default=[]),
    difficulty: list[SkillLevel] = Query(default=[]),
    language: list[str] = Query(default=[]),
    min_stars: int = Query(default=0, ge=0),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Search open opportunities by text."""
    filters = SearchFilters(types=type, difficulties=difficulty, languages=language, min_repo_stars=min_stars)
    response = service.search(text=q, filters=_candidate_filter(filters), limit=limit)
    return response.to_dict()


@router.post("", response_model=SearchResponse)
def search_opportunities_by_body(
    request: SearchRequest,
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Search with text, a precomputed query vector, or both."""
    response = service.search(
        text=request.text,
        vector=request.vector,
        filters=_candidate_filter(request.filters),
        limit=request.limit,
    )
    return response.to_dict()


@router.get("/repositories", response_model=SearchResponse)
def search_repositories(
    q: str = Query(..., min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Search active repositories by text."""
    return service.search_repositories(text=q, limit=limit).to_dict()
