"""Batch recompute of precomputed recommendations."""

import asyncio
import logging
import time

from artrec.config import get_settings
from artrec.schemas.recommendation import HybridRecommendation, RecommendationRequest, RecommendationStats
from artrec.services.feature_store import FeatureStore
from artrec.services.hybrid_engine import HybridRecommendationEngine
from artrec.services.precomputed_store import PrecomputedRecommendationStore
from artrec.services.validation import mask_identifier

logger = logging.getLogger(__name__)


def dedupe_by_artwork(recommendations: list[HybridRecommendation]) -> list[HybridRecommendation]:
    """One row per artwork, keeping the highest score; best first."""
    best: dict[str, HybridRecommendation] = {}
    for rec in recommendations:
        existing = best.get(rec.artwork_id)
        if existing is None or rec.final_score > existing.final_score:
            best[rec.artwork_id] = rec
    return sorted(best.values(), key=lambda r: r.final_score, reverse=True)


class BatchRecommendationService:
    def __init__(
        self,
        store: FeatureStore,
        precomputed: PrecomputedRecommendationStore,
        engine: HybridRecommendationEngine | None = None,
    ):
        self.store = store
        self.precomputed = precomputed
        self.engine = engine or HybridRecommendationEngine(store)
        self.settings = get_settings()

    async def compute_recommendations_for_all_users(self) -> dict:
        """Recompute every active user's rows.

        Users are processed in chunks; a chunk runs concurrently and chunks run
        one after another. A failing user is logged and counted, never fatal.
        """
        started = time.perf_counter()
        users = await self.store.get_all_active_users()
        chunk_size = max(self.settings.batch_chunk_size, 1)
        logger.info("Computing recommendations for %d users (chunk size %d)", len(users), chunk_size)

        succeeded = 0
        failed = 0
        rows = 0
        for i in range(0, len(users), chunk_size):
            chunk = users[i:i + chunk_size]
            outcomes = await asyncio.gather(*(self._compute_safely(user_id) for user_id in chunk))
            for count in outcomes:
                if count is None:
                    failed += 1
                else:
                    succeeded += 1
                    rows += count

        elapsed = round(time.perf_counter() - started, 2)
        logger.info(
            "Recommendation batch finished: %d users, %d failed, %d rows in %.2fs",
            len(users), failed, rows, elapsed,
        )
        return {
            "users": len(users),
            "succeeded": succeeded,
            "failed": failed,
            "rows": rows,
            "elapsed_seconds": elapsed,
        }

    async def _compute_safely(self, user_id: str) -> int | None:
        try:
            return await self.compute_for_user(user_id)
        except Exception:
            logger.exception("Recommendation batch failed for user %s", mask_identifier(user_id))
            return None

    async def compute_for_user(self, user_id: str) -> int:
        """General list plus one list per category, merged and stored in one replace."""
        requests = [RecommendationRequest(user_id=user_id, limit=self.settings.batch_general_limit)]
        requests.extend(
            RecommendationRequest(user_id=user_id, limit=self.settings.batch_category_limit, category=category)
            for category in self.settings.batch_categories
        )

        collected: list[HybridRecommendation] = []
        for request in requests:
            outcome = await self.engine.recommend(request)
            # Fallback lists are never persisted
            if outcome.fell_back:
                continue
            collected.extend(outcome.results)

        return await self.precomputed.replace_for_user(user_id, dedupe_by_artwork(collected))

    async def cleanup_expired_recommendations(self) -> int:
        return await self.precomputed.cleanup_expired()

    async def get_recommendation_stats(self) -> RecommendationStats:
        return await self.precomputed.get_stats()
