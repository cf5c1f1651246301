"""Shared fixtures: in-memory feature stores, a sample snapshot, a SQLite database."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from artrec.models.base import Base
import artrec.models  # noqa: F401
from artrec.schemas.records import (
    ArtworkAnalysisRecord,
    ArtworkRecord,
    HighRatedArtwork,
    Interaction,
    UserPreferenceVector,
)
from artrec.services.feature_store import FeatureStore
from artrec.services.snapshot_builder import SourceArtwork, SourceLike, build_snapshot_document, write_snapshot

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_artwork(artwork_id, category="illustration", style=None, tags=None, artist_id="artist-1",
                 popularity=0.0, days_old=0, price=None, title=None):
    return ArtworkRecord(
        id=artwork_id,
        title=title or f"Artwork {artwork_id}",
        category=category,
        style=style or [],
        tags=tags or [],
        artist_id=artist_id,
        price_min=price[0] if price else None,
        price_max=price[1] if price else None,
        popularity_score=popularity,
        created_at=NOW - timedelta(days=days_old),
    )


def make_interaction(user_id, artwork_id, rating, minutes_ago=0, category=None):
    return Interaction(
        user_id=user_id,
        artwork_id=artwork_id,
        rating=rating,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        category=category,
    )


class InMemoryFeatureStore(FeatureStore):
    """Feature store over plain lists; mirrors the SQL adapter's read semantics."""

    def __init__(self, artworks=None, interactions=None, analyses=None, preferences=None, users=None):
        self.artworks = list(artworks or [])
        self.interactions = list(interactions or [])
        self.analyses = {a.artwork_id: a for a in (analyses or [])}
        self.preferences = {p.user_id: p for p in (preferences or [])}
        self.users = users

    def _categories(self) -> dict[str, str | None]:
        return {a.id: a.category for a in self.artworks}

    async def get_user_interactions(self, user_id: str) -> list[Interaction]:
        categories = self._categories()
        rows = [
            i.model_copy(update={"category": i.category or categories.get(i.artwork_id)})
            for i in self.interactions
            if i.user_id == user_id
        ]
        return sorted(rows, key=lambda i: i.timestamp, reverse=True)

    async def get_artwork_interactions(self, artwork_id: str) -> list[Interaction]:
        rows = [i for i in self.interactions if i.artwork_id == artwork_id]
        return sorted(rows, key=lambda i: i.timestamp, reverse=True)

    async def get_user_high_rated_artworks(self, user_id: str, min_rating: float = 0.7) -> list[HighRatedArtwork]:
        best: dict[str, float] = {}
        for i in self.interactions:
            if i.user_id == user_id:
                best[i.artwork_id] = max(best.get(i.artwork_id, 0.0), i.rating)
        return [HighRatedArtwork(id=aid, rating=r) for aid, r in best.items() if r >= min_rating]

    async def get_user_interacted_artwork_ids(self, user_id: str) -> list[str]:
        return list(dict.fromkeys(i.artwork_id for i in self.interactions if i.user_id == user_id))

    async def get_artwork_by_id(self, artwork_id: str) -> ArtworkRecord | None:
        return next((a for a in self.artworks if a.id == artwork_id), None)

    async def get_all_artworks(self) -> list[ArtworkRecord]:
        return list(self.artworks)

    async def get_all_active_users(self) -> list[str]:
        if self.users is not None:
            return list(self.users)
        return sorted({i.user_id for i in self.interactions})

    async def get_artwork_analysis(self, artwork_id: str) -> ArtworkAnalysisRecord | None:
        return self.analyses.get(artwork_id)

    async def get_user_preference_vector(self, user_id: str) -> UserPreferenceVector | None:
        return self.preferences.get(user_id)


class ThrowingFeatureStore(FeatureStore):
    """Every call fails, as when the database is unreachable."""

    def _fail(self):
        raise RuntimeError("feature store unavailable")

    async def get_user_interactions(self, user_id):
        self._fail()

    async def get_artwork_interactions(self, artwork_id):
        self._fail()

    async def get_user_high_rated_artworks(self, user_id, min_rating=0.7):
        self._fail()

    async def get_user_interacted_artwork_ids(self, user_id):
        self._fail()

    async def get_artwork_by_id(self, artwork_id):
        self._fail()

    async def get_all_artworks(self):
        self._fail()

    async def get_all_active_users(self):
        self._fail()

    async def get_artwork_analysis(self, artwork_id):
        self._fail()

    async def get_user_preference_vector(self, user_id):
        self._fail()


@pytest.fixture
def catalog():
    """Eight artworks across three categories with varied popularity."""
    return [
        make_artwork("a1", "portrait", ["anime"], ["cute", "girl"], "artist-1", popularity=10, days_old=5),
        make_artwork("a2", "portrait", ["anime", "pastel"], ["cute"], "artist-1", popularity=8, days_old=3),
        make_artwork("a3", "portrait", ["realistic"], ["dark"], "artist-2", popularity=6, days_old=1),
        make_artwork("a4", "logo", ["minimalist"], ["brand"], "artist-3", popularity=20, days_old=10),
        make_artwork("a5", "logo", ["minimalist", "flat"], ["brand", "tech"], "artist-3", popularity=4, days_old=2),
        make_artwork("a6", "mascot", ["cartoon"], ["cute", "animal"], "artist-4", popularity=12, days_old=7),
        make_artwork("a7", "mascot", ["cartoon"], ["animal"], "artist-4", popularity=1, days_old=0),
        make_artwork("a8", "portrait", ["anime"], ["girl"], "artist-2", popularity=0, days_old=30),
    ]


@pytest.fixture
def community_interactions():
    """Four users with overlapping, varied histories."""
    rows = []
    ratings = {
        "alice": {"a1": 1.0, "a2": 0.8, "a3": 0.3, "a4": 0.3},
        "bob": {"a1": 1.0, "a2": 1.0, "a3": 0.3, "a6": 1.0, "a8": 0.8},
        "carol": {"a1": 0.8, "a2": 1.0, "a3": 0.3, "a6": 0.8, "a7": 1.0},
        "dave": {"a1": 0.3, "a4": 1.0, "a5": 1.0, "a3": 1.0},
    }
    for user_id, items in ratings.items():
        for minutes, (artwork_id, rating) in enumerate(items.items()):
            rows.append(make_interaction(user_id, artwork_id, rating, minutes_ago=minutes * 10))
    return rows


@pytest.fixture
def store(catalog, community_interactions):
    return InMemoryFeatureStore(artworks=catalog, interactions=community_interactions)


@pytest.fixture
def sample_snapshot_document():
    artworks = [
        SourceArtwork("s1", "Pink idol", None, "portrait", ["anime"], ["cute", "idol"], "artist-1", "Mika", NOW),
        SourceArtwork("s2", "Blue idol", None, "portrait", ["anime"], ["cute"], "artist-1", "Mika", NOW),
        SourceArtwork("s3", "Night city", None, "background", ["realistic"], ["dark"], "artist-2", "Ren", NOW),
        SourceArtwork("s4", "Fox mascot", None, "mascot", ["cartoon"], ["cute", "animal"], "artist-3", "Yui", NOW),
        SourceArtwork("s5", "Shop logo", None, "logo", ["minimalist"], ["brand"], "artist-4", "Kai", NOW),
    ]
    likes = [
        SourceLike("u1", "s1"), SourceLike("u1", "s2"),
        SourceLike("u2", "s1"), SourceLike("u2", "s4"),
        SourceLike("u3", "s3"),
    ]
    return build_snapshot_document(artworks, likes, behavior_log_count=12, now=NOW)


@pytest.fixture
def snapshot_file(tmp_path, sample_snapshot_document):
    return write_snapshot(sample_snapshot_document, tmp_path / "analysis_data.json")


@asynccontextmanager
async def _sqlite_session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


async def add_rows(session_factory, rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)


@pytest.fixture
def sqlite_db():
    """Async context manager yielding a sessionmaker over a fresh in-memory SQLite database.

    Enter it inside the coroutine passed to ``asyncio.run`` so the engine
    lives and dies on one event loop.
    """
    return _sqlite_session_factory
