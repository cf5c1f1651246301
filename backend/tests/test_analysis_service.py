"""Tests for artwork and user analysis."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from artrec.config import get_settings
from artrec.models.artwork import Artwork
from artrec.models.artwork_analysis import ArtworkAnalysis
from artrec.models.user import User
from artrec.models.user_behavior_log import UserBehaviorLog
from artrec.models.user_preference_profile import UserPreferenceProfile
from artrec.services.analysis_service import (
    VECTOR_SIZE,
    AnalysisService,
    category_scores,
    content_hash,
    quality_score,
    style_vector,
)
from artrec.services.feature_store import SqlFeatureStore
from conftest import NOW, add_rows, make_artwork


def analysis_service(factory):
    service = AnalysisService(SqlFeatureStore(factory, max_concurrency=1), factory)
    # One connection underneath; keep the work sequential
    service.settings = get_settings().model_copy(
        update={"artwork_analysis_chunk_size": 1, "user_analysis_chunk_size": 1, "batch_categories": ["portrait", "logo"]}
    )
    return service


def seed_rows():
    return [
        User(id="artist-1", display_name="Mika", role="creator"),
        User(id="fan", display_name="Fan"),
        User(id="idle", display_name="Idle"),
        Artwork(id="a1", artist_id="artist-1", title="Idol poster", category="portrait",
                style=["anime", "pastel"], tags=["cute"], popularity_score=10.0),
        Artwork(id="a2", artist_id="artist-1", title="Shop logo", category="logo",
                style=["minimalist"], tags=["brand"], popularity_score=5.0),
        UserBehaviorLog(user_id="fan", artwork_id="a1", action="like", created_at=NOW),
        UserBehaviorLog(user_id="fan", artwork_id="a2", action="view", created_at=NOW - timedelta(hours=1)),
    ]


@pytest.mark.unit
class TestArtworkFeatures:
    """Deterministic feature derivation."""

    def test_content_hash_tracks_content_attributes(self):
        base = make_artwork("x", "portrait", ["anime"], ["cute"], title="Idol")
        assert content_hash(base) == content_hash(base.model_copy())
        assert content_hash(base) != content_hash(base.model_copy(update={"title": "Idol v2"}))
        assert content_hash(base) != content_hash(base.model_copy(update={"price_min": 100.0}))

    def test_tags_are_not_part_of_the_hash(self):
        base = make_artwork("x", "portrait", ["anime"], ["cute"])
        assert content_hash(base) == content_hash(base.model_copy(update={"tags": ["cute", "idol"]}))

    def test_style_vector_is_deterministic(self):
        artwork = make_artwork("x", "portrait", ["anime"])
        digest = content_hash(artwork)
        first = style_vector(artwork, digest)
        assert len(first) == VECTOR_SIZE
        assert first == style_vector(artwork, digest)

    def test_styles_shift_the_vector(self):
        anime = make_artwork("x", "portrait", ["anime"])
        realistic = make_artwork("x", "portrait", ["realistic"])
        digest = content_hash(anime)
        assert style_vector(anime, digest) != style_vector(realistic, digest)

    def test_unknown_style_is_still_deterministic(self):
        artwork = make_artwork("x", "portrait", ["vaporwave"])
        digest = content_hash(artwork)
        assert style_vector(artwork, digest) == style_vector(artwork, digest)

    def test_category_scores(self):
        scores = category_scores(make_artwork("x", "portrait"), ["portrait", "logo"])
        assert scores == {"portrait": 0.9, "logo": 0.1}

    def test_unlisted_category_is_added(self):
        scores = category_scores(make_artwork("x", "sticker"), ["portrait"])
        assert scores == {"portrait": 0.1, "sticker": 0.9}

    def test_quality_score(self):
        assert quality_score(make_artwork("x", title="Short")) == 0.5
        rich = make_artwork(
            "x", style=["anime", "pastel"], tags=["a", "b", "c"], price=(100, 200), title="A long enough title"
        ).model_copy(update={"description": "d" * 60})
        assert quality_score(rich) == pytest.approx(1.0)


@pytest.mark.integration
class TestArtworkAnalysis:
    """Artwork batch against SQLite."""

    def test_analyzes_then_skips_unchanged(self, sqlite_db):
        async def scenario():
            async with sqlite_db() as factory:
                await add_rows(factory, seed_rows())
                service = analysis_service(factory)
                first = await service.process_all_artworks()
                second = await service.process_all_artworks()
                async with factory() as session:
                    rows = (await session.execute(select(ArtworkAnalysis).order_by(ArtworkAnalysis.artwork_id))).scalars().all()
                    stored = [(r.artwork_id, r.popularity_score, len(r.style_vector), r.category_scores) for r in rows]
                return first, second, stored

        first, second, stored = asyncio.run(scenario())

        assert first == {"artworks": 2, "analyzed": 2, "skipped": 0, "failed": 0}
        assert second == {"artworks": 2, "analyzed": 0, "skipped": 2, "failed": 0}
        assert stored == [
            ("a1", 1.0, VECTOR_SIZE, {"portrait": 0.9, "logo": 0.1}),
            ("a2", 0.5, VECTOR_SIZE, {"portrait": 0.1, "logo": 0.9}),
        ]

    def test_changed_artwork_is_reanalyzed(self, sqlite_db):
        async def scenario():
            async with sqlite_db() as factory:
                await add_rows(factory, seed_rows())
                service = analysis_service(factory)
                await service.process_all_artworks()
                async with factory() as session:
                    async with session.begin():
                        await session.execute(update(Artwork).where(Artwork.id == "a2").values(title="New shop logo"))
                return await service.process_all_artworks()

        counts = asyncio.run(scenario())
        assert counts["analyzed"] == 1
        assert counts["skipped"] == 1


@pytest.mark.integration
class TestUserAnalysis:
    """Preference profiles against SQLite."""

    def test_builds_and_clears_profiles(self, sqlite_db):
        async def scenario():
            async with sqlite_db() as factory:
                await add_rows(factory, seed_rows())
                await add_rows(factory, [UserPreferenceProfile(user_id="idle", preference_vector=[0.1])])
                service = analysis_service(factory)
                await service.process_all_artworks()
                counts = await service.process_all_users()
                async with factory() as session:
                    profiles = {
                        p.user_id: p for p in (await session.execute(select(UserPreferenceProfile))).scalars().all()
                    }
                return counts, profiles

        counts, profiles = asyncio.run(scenario())

        # artist-1 and idle have no interactions
        assert counts == {"users": 3, "updated": 1, "cleared": 2, "failed": 0}
        assert set(profiles) == {"fan"}

        fan = profiles["fan"]
        assert len(fan.preference_vector) == VECTOR_SIZE
        assert fan.preferred_categories == {"portrait": 1.0, "logo": 0.3}
        assert fan.preferred_styles == {"anime": 1.0, "pastel": 1.0, "minimalist": 0.3}
        assert fan.total_interactions == 2
        # two ratings, both artworks analyzed
        assert fan.profile_confidence == pytest.approx(0.37)

    def test_profile_is_updated_in_place(self, sqlite_db):
        async def scenario():
            async with sqlite_db() as factory:
                await add_rows(factory, seed_rows())
                service = analysis_service(factory)
                await service.analyze_user("fan")
                await add_rows(factory, [UserBehaviorLog(user_id="fan", artwork_id="a2", action="save", created_at=NOW + timedelta(hours=1))])
                await service.analyze_user("fan")
                async with factory() as session:
                    return (await session.execute(select(UserPreferenceProfile))).scalars().all()

        profiles = asyncio.run(scenario())

        assert len(profiles) == 1
        assert profiles[0].preferred_categories == {"portrait": 1.0, "logo": 1.0}
        assert profiles[0].total_interactions == 3

    def test_profile_without_analyses_has_no_vector(self, sqlite_db):
        async def scenario():
            async with sqlite_db() as factory:
                await add_rows(factory, seed_rows())
                updated = await analysis_service(factory).analyze_user("fan")
                async with factory() as session:
                    profile = (await session.execute(select(UserPreferenceProfile))).scalar_one()
                return updated, profile

        updated, profile = asyncio.run(scenario())
        assert updated
        assert profile.preference_vector == []
        assert profile.profile_confidence == pytest.approx(0.07)
