"""
Repository health endpoints.
"""

from fastapi import APIRouter, Depends

from contribux.services import DiscoveryService

from ..dependencies import get_discovery_service
from ..schemas import HealthReportResponse, HealthScoreResponse

router = APIRouter(prefix="/repositories", tags=["repositories"])


@router.get("/{repository_id}/health", response_model=HealthScoreResponse)
def get_repository_health(
    repository_id: int,
    service: DiscoveryService = Depends(get_discovery_service),
):
    return HealthScoreResponse(
        repository_id=repository_id,
        health_score=round(service.repository_health(repository_id), 2),
    )


@router.get("/{repository_id}/health/report", response_model=HealthReportResponse)
def get_repository_health_report(
    repository_id: int,
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Health score with status, strengths and improvement areas."""
    return service.repository_health_report(repository_id).to_dict()
