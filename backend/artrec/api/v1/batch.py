"""Batch endpoints: manual triggers for the scheduled jobs."""

from fastapi import APIRouter, Depends

from artrec.dependencies.services import get_batch_service
from artrec.schemas.recommendation import RecommendationStats
from artrec.services.batch_service import BatchRecommendationService

router = APIRouter(prefix="/batch", tags=["batch"])


@router.post("/recommendations")
async def run_recommendation_batch(service: BatchRecommendationService = Depends(get_batch_service)):
    """Recompute precomputed recommendations for every active user, in-process."""
    return await service.compute_recommendations_for_all_users()


@router.post("/recommendations/async", status_code=202)
def queue_recommendation_batch():
    """Queue the recompute on a Celery worker."""
    from artrec.tasks.recommendation_tasks import compute_recommendations

    result = compute_recommendations.delay()
    return {"task_id": result.id}


@router.post("/cleanup")
async def cleanup_expired(service: BatchRecommendationService = Depends(get_batch_service)):
    return {"deleted": await service.cleanup_expired_recommendations()}


@router.get("/stats", response_model=RecommendationStats)
async def recommendation_stats(service: BatchRecommendationService = Depends(get_batch_service)):
    """Counts over the precomputed recommendation table."""
    return await service.get_recommendation_stats()
