"""
Per-user endpoints: personalized feed and profile similarity.
"""

from fastapi import APIRouter, Depends, Query

from contribux.services import DiscoveryService

from ..dependencies import get_discovery_service
from ..schemas import FeedResponse, SimilarUserResponse, SimilarUsersResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/feed", response_model=FeedResponse)
def get_feed(
    user_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Open opportunities ranked for the user, with match reasons."""
    results = service.feed_for_user(user_id, limit)
    return FeedResponse(user_id=user_id, results=[r.to_dict() for r in results])


@router.get("/{user_id}/similar", response_model=SimilarUsersResponse)
def get_similar_users(
    user_id: int,
    limit: int = Query(default=10, ge=1, le=100),
    min_similarity: float = Query(default=0.7, ge=-1.0, le=1.0),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Users with the most similar profiles."""
    matches = service.similar_users(user_id, limit, min_similarity)
    return SimilarUsersResponse(
        user_id=user_id,
        users=[
            SimilarUserResponse(id=user.id, github_username=user.github_username, similarity=round(similarity, 6))
            for user, similarity in matches
        ],
    )
