"""Feature store: read-only access to interactions, artworks and analysis rows.

Engines depend on the ``FeatureStore`` interface only. ``SqlFeatureStore`` is
the database-backed implementation; every call opens its own session so
concurrent engine tasks never share one.
"""

import abc
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from artrec.config import get_settings
from artrec.models.artwork import Artwork
from artrec.models.artwork_analysis import ArtworkAnalysis
from artrec.models.user import User
from artrec.models.user_behavior_log import UserBehaviorLog
from artrec.models.user_preference_profile import UserPreferenceProfile
from artrec.schemas.records import (
    ArtworkAnalysisRecord,
    ArtworkRecord,
    HighRatedArtwork,
    Interaction,
    UserPreferenceVector,
)
from artrec.services.ratings import rating_for_action

logger = logging.getLogger(__name__)

RATED_ACTIONS = ["view", "like", "share", "save"]
POSITIVE_ACTIONS = ["like", "save", "share"]
MAX_USER_INTERACTIONS = 1000  # most recent events considered per user


class FeatureStore(abc.ABC):
    """Read boundary used by every engine. Not-found yields empty results."""

    @abc.abstractmethod
    async def get_user_interactions(self, user_id: str) -> list[Interaction]:
        """Interactions of one user, most recent first."""

    @abc.abstractmethod
    async def get_artwork_interactions(self, artwork_id: str) -> list[Interaction]:
        """Interactions on one artwork, most recent first."""

    @abc.abstractmethod
    async def get_user_high_rated_artworks(self, user_id: str, min_rating: float = 0.7) -> list[HighRatedArtwork]:
        ...

    @abc.abstractmethod
    async def get_user_interacted_artwork_ids(self, user_id: str) -> list[str]:
        ...

    @abc.abstractmethod
    async def get_artwork_by_id(self, artwork_id: str) -> ArtworkRecord | None:
        ...

    @abc.abstractmethod
    async def get_all_artworks(self) -> list[ArtworkRecord]:
        """Published artworks in listing order (newest first)."""

    @abc.abstractmethod
    async def get_all_active_users(self) -> list[str]:
        ...

    @abc.abstractmethod
    async def get_artwork_analysis(self, artwork_id: str) -> ArtworkAnalysisRecord | None:
        ...

    @abc.abstractmethod
    async def get_user_preference_vector(self, user_id: str) -> UserPreferenceVector | None:
        ...


class SqlFeatureStore(FeatureStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], max_concurrency: int | None = None):
        self._session_factory = session_factory
        limit = max_concurrency or get_settings().store_max_concurrency
        self._semaphore = asyncio.Semaphore(limit)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._semaphore:
            async with self._session_factory() as session:
                yield session

    async def get_user_interactions(self, user_id: str) -> list[Interaction]:
        async with self._session() as session:
            result = await session.execute(
                select(UserBehaviorLog, Artwork.category)
                .join(Artwork, UserBehaviorLog.artwork_id == Artwork.id)
                .where(
                    UserBehaviorLog.user_id == user_id,
                    UserBehaviorLog.action.in_(RATED_ACTIONS),
                )
                .order_by(UserBehaviorLog.created_at.desc())
                .limit(MAX_USER_INTERACTIONS)
            )
            rows = result.all()

        return [
            Interaction(
                user_id=log.user_id,
                artwork_id=log.artwork_id,
                rating=rating_for_action(log.action),
                timestamp=log.created_at,
                category=category,
            )
            for log, category in rows
        ]

    async def get_artwork_interactions(self, artwork_id: str) -> list[Interaction]:
        async with self._session() as session:
            result = await session.execute(
                select(UserBehaviorLog)
                .where(
                    UserBehaviorLog.artwork_id == artwork_id,
                    UserBehaviorLog.action.in_(RATED_ACTIONS),
                )
                .order_by(UserBehaviorLog.created_at.desc())
            )
            logs = result.scalars().all()

        return [
            Interaction(
                user_id=log.user_id,
                artwork_id=log.artwork_id,
                rating=rating_for_action(log.action),
                timestamp=log.created_at,
            )
            for log in logs
        ]

    async def get_user_high_rated_artworks(self, user_id: str, min_rating: float = 0.7) -> list[HighRatedArtwork]:
        async with self._session() as session:
            result = await session.execute(
                select(UserBehaviorLog.artwork_id, UserBehaviorLog.action).where(
                    UserBehaviorLog.user_id == user_id,
                    UserBehaviorLog.action.in_(POSITIVE_ACTIONS),
                )
            )
            rows = result.all()

        # Strongest signal per artwork
        best: dict[str, float] = {}
        for artwork_id, action in rows:
            rating = rating_for_action(action)
            if rating > best.get(artwork_id, -1.0):
                best[artwork_id] = rating

        return [
            HighRatedArtwork(id=artwork_id, rating=rating)
            for artwork_id, rating in best.items()
            if rating >= min_rating
        ]

    async def get_user_interacted_artwork_ids(self, user_id: str) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(UserBehaviorLog.artwork_id)
                .where(UserBehaviorLog.user_id == user_id)
                .distinct()
            )
            return list(result.scalars().all())

    async def get_artwork_by_id(self, artwork_id: str) -> ArtworkRecord | None:
        async with self._session() as session:
            artwork = await session.get(Artwork, artwork_id)
            if not artwork:
                return None
            return ArtworkRecord.model_validate(artwork)

    async def get_all_artworks(self) -> list[ArtworkRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Artwork)
                .where(Artwork.is_published == True)  # noqa: E712
                .order_by(Artwork.created_at.desc(), Artwork.id)
            )
            return [ArtworkRecord.model_validate(a) for a in result.scalars().all()]

    async def get_all_active_users(self) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(User.id).where(User.is_active == True).order_by(User.id)  # noqa: E712
            )
            return list(result.scalars().all())

    async def get_artwork_analysis(self, artwork_id: str) -> ArtworkAnalysisRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(ArtworkAnalysis).where(ArtworkAnalysis.artwork_id == artwork_id)
            )
            analysis = result.scalar_one_or_none()
            if not analysis:
                return None
            return ArtworkAnalysisRecord.model_validate(analysis)

    async def get_user_preference_vector(self, user_id: str) -> UserPreferenceVector | None:
        async with self._session() as session:
            result = await session.execute(
                select(UserPreferenceProfile).where(UserPreferenceProfile.user_id == user_id)
            )
            profile = result.scalar_one_or_none()
            if not profile:
                return None
            return UserPreferenceVector.model_validate(profile)
