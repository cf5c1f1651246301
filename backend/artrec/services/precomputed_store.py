"""Precomputed recommendation store: per-user replace, validity-window reads, cleanup."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from artrec.config import get_settings
from artrec.models.artwork import Artwork
from artrec.models.precomputed_recommendation import PrecomputedRecommendation
from artrec.schemas.recommendation import HybridRecommendation, PrecomputedRecommendationRead, RecommendationStats

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PrecomputedRecommendationStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_valid(
        self,
        user_id: str,
        limit: int,
        category: str | None = None,
        now: datetime | None = None,
    ) -> list[PrecomputedRecommendationRead]:
        """Rows still inside their validity window, best score first."""
        now = now or _utcnow()
        query = select(PrecomputedRecommendation).where(
            PrecomputedRecommendation.user_id == user_id,
            PrecomputedRecommendation.valid_until > now,
        )
        if category:
            query = query.join(Artwork, PrecomputedRecommendation.artwork_id == Artwork.id).where(
                Artwork.category == category
            )
        query = query.order_by(PrecomputedRecommendation.score.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [PrecomputedRecommendationRead.model_validate(r) for r in result.scalars().all()]

    async def replace_for_user(
        self,
        user_id: str,
        recommendations: Iterable[HybridRecommendation],
        computed_at: datetime | None = None,
        ttl_seconds: int | None = None,
    ) -> int:
        """Delete the user's rows and insert the new set in a single transaction.

        Readers see either the previous set or the new one, never a mix.
        """
        computed_at = computed_at or _utcnow()
        ttl = ttl_seconds if ttl_seconds is not None else get_settings().recommendation_cache_ttl
        valid_until = computed_at + timedelta(seconds=ttl)

        rows = [
            PrecomputedRecommendation(
                user_id=user_id,
                artwork_id=r.artwork_id,
                score=r.final_score,
                algorithm=r.algorithm,
                computed_at=computed_at,
                valid_until=valid_until,
            )
            for r in recommendations
        ]

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(PrecomputedRecommendation).where(PrecomputedRecommendation.user_id == user_id)
                )
                session.add_all(rows)
        return len(rows)

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        now = now or _utcnow()
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(PrecomputedRecommendation).where(PrecomputedRecommendation.valid_until <= now)
                )
        deleted = result.rowcount or 0
        logger.info("Deleted %d expired precomputed recommendations", deleted)
        return deleted

    async def get_stats(self) -> RecommendationStats:
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    func.count(PrecomputedRecommendation.id),
                    func.count(func.distinct(PrecomputedRecommendation.user_id)),
                    func.count(func.distinct(PrecomputedRecommendation.artwork_id)),
                )
            )
            total, users, artworks = result.one()

        return RecommendationStats(
            total_recommendations=total or 0,
            unique_users=users or 0,
            unique_artworks=artworks or 0,
            avg_recommendations_per_user=round(total / users, 2) if users else 0.0,
        )
