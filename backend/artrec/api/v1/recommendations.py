"""Recommendation API endpoints."""

from fastapi import APIRouter, Depends, Query

from artrec.config import get_settings
from artrec.dependencies.services import (
    get_hybrid_engine,
    get_recommendation_service,
    get_snapshot_recommender,
)
from artrec.schemas.recommendation import (
    ArtistRecommendation,
    BulkRecommendationRequest,
    BulkRecommendations,
    PriceRange,
    RecommendationRequest,
    RecommendationResponse,
    RecommendationResult,
)
from artrec.services.hybrid_engine import HybridRecommendationEngine
from artrec.services.recommendation_service import RecommendationService
from artrec.services.snapshot_recommender import SnapshotRecommender
from artrec.services.validation import MAX_PRICE, validate_limit, validate_user_id

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post("", response_model=RecommendationResponse)
async def create_recommendations(
    request: RecommendationRequest,
    prefer_precomputed: bool | None = Query(None, description="Serve valid precomputed rows when available"),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Ranked artworks for one user."""
    return await service.get_recommendations(request, prefer_precomputed=prefer_precomputed)


@router.post("/bulk", response_model=BulkRecommendations)
def create_bulk_recommendations(
    request: BulkRecommendationRequest,
    recommender: SnapshotRecommender = Depends(get_snapshot_recommender),
):
    """Large candidate pool from the analysis snapshot, for client-side sampling."""
    user_id = validate_user_id(request.user_id)
    target_size = min(request.target_size, get_settings().max_bulk_size)
    return recommender.get_bulk_recommendations(user_id, target_size)


@router.get("/{user_id}", response_model=RecommendationResponse)
async def get_recommendations(
    user_id: str,
    limit: int | None = Query(None, ge=1),
    category: str | None = Query(None),
    style: list[str] | None = Query(None),
    min_price: float | None = Query(None),
    max_price: float | None = Query(None),
    algorithm: str | None = Query(None, description="hybrid, collaborative, content or auto"),
    prefer_precomputed: bool | None = Query(None),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Query-string variant of the recommendation call."""
    price_range = None
    if min_price is not None or max_price is not None:
        # An open end defaults to the widest accepted bound
        price_range = PriceRange(
            min=min_price if min_price is not None else 0.0,
            max=max_price if max_price is not None else MAX_PRICE,
        )
    request = RecommendationRequest(
        user_id=user_id,
        limit=limit,
        category=category,
        style=style,
        price_range=price_range,
        algorithm=algorithm,
    )
    return await service.get_recommendations(request, prefer_precomputed=prefer_precomputed)


@router.get("/{user_id}/artists", response_model=list[ArtistRecommendation])
async def get_artist_recommendations(
    user_id: str,
    limit: int | None = Query(None, ge=1),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Artists ranked by how well their artworks match the user."""
    return await service.get_artist_recommendations(user_id, limit)


@router.get("/{user_id}/similar/{artwork_id}", response_model=list[RecommendationResult])
async def get_similar_artworks(
    user_id: str,
    artwork_id: str,
    limit: int | None = Query(None, ge=1),
    engine: HybridRecommendationEngine = Depends(get_hybrid_engine),
):
    """Artworks with content similar to ``artwork_id``."""
    user_id = validate_user_id(user_id)
    limit = validate_limit(limit)
    return await engine.content.get_similar_content_recommendations(artwork_id, user_id, limit)


@router.get("/{user_id}/snapshot", response_model=list[RecommendationResult])
def get_snapshot_recommendations(
    user_id: str,
    limit: int | None = Query(None, ge=1),
    recommender: SnapshotRecommender = Depends(get_snapshot_recommender),
):
    """Hybrid recommendations served entirely from the analysis snapshot."""
    user_id = validate_user_id(user_id)
    return recommender.get_hybrid_recommendations(user_id, validate_limit(limit))
