"""Precomputed recommendation tasks: recompute, cleanup, stats."""

import asyncio
import logging

from artrec.tasks.celery_app import celery_app
from artrec.config import get_settings
from artrec.models.base import task_session_factory
import artrec.models  # noqa: F401
from artrec.services.batch_service import BatchRecommendationService
from artrec.services.feature_store import SqlFeatureStore
from artrec.services.precomputed_store import PrecomputedRecommendationStore

logger = logging.getLogger(__name__)


async def _run_batch(operation: str):
    async with task_session_factory() as session_factory:
        store = SqlFeatureStore(session_factory, get_settings().store_max_concurrency)
        service = BatchRecommendationService(store, PrecomputedRecommendationStore(session_factory))
        return await getattr(service, operation)()


@celery_app.task(name="artrec.tasks.recommendation_tasks.compute_recommendations")
def compute_recommendations():
    """Recompute precomputed recommendations for every active user (daily via beat)."""
    try:
        summary = asyncio.run(_run_batch("compute_recommendations_for_all_users"))
        logger.info("Recommendation batch summary: %s", summary)
        return summary
    except Exception:
        logger.exception("Recommendation batch failed")
        raise


@celery_app.task(name="artrec.tasks.recommendation_tasks.cleanup_expired_recommendations")
def cleanup_expired_recommendations():
    """Delete precomputed rows past their validity window."""
    try:
        deleted = asyncio.run(_run_batch("cleanup_expired_recommendations"))
        return {"deleted": deleted}
    except Exception:
        logger.exception("Failed to clean up expired recommendations")
        raise


@celery_app.task(name="artrec.tasks.recommendation_tasks.recommendation_stats")
def recommendation_stats():
    stats = asyncio.run(_run_batch("get_recommendation_stats"))
    logger.info(
        "Precomputed recommendations: %d rows for %d users",
        stats.total_recommendations, stats.unique_users,
    )
    return stats.model_dump()
