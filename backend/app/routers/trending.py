"""
Trending opportunities endpoint.
"""

from fastapi import APIRouter, Depends, Query

from contribux.config import get_settings
from contribux.services import DiscoveryService

from ..dependencies import get_discovery_service
from ..schemas import TrendingResponse

router = APIRouter(prefix="/trending", tags=["trending"])


@router.get("", response_model=TrendingResponse)
def get_trending(
    window_hours: float | None = Query(default=None, gt=0),
    min_engagement: float | None = Query(default=None, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Open opportunities with the most recent engagement."""
    settings = get_settings()
    window_hours = window_hours if window_hours is not None else settings.trending_window_hours
    min_engagement = min_engagement if min_engagement is not None else settings.trending_min_engagement
    opportunities = service.trending_opportunities(window_hours, min_engagement, limit)
    return TrendingResponse(
        window_hours=window_hours,
        min_engagement=min_engagement,
        opportunities=[o.to_dict() for o in opportunities],
    )
