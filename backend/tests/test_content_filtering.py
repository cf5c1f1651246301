"""Tests for content-based filtering."""

import asyncio

import pytest

from artrec.schemas.records import UNKNOWN, ArtworkAnalysisRecord, ContentFeature
from artrec.services.content_filtering import (
    FEATURE_WEIGHTS,
    ContentBasedFilteringService,
    aggregate_profile,
    calculate_artwork_similarity,
    calculate_content_similarity,
    feature_completeness,
    score_features,
)
from conftest import InMemoryFeatureStore, make_artwork, make_interaction


def full_features(**overrides):
    values = dict(
        category="portrait",
        style=["anime", "cel"],
        color_palette=[0.2, 0.4, 0.6],
        complexity=0.7,
        artist_style="artist-1",
        tags=["cute", "idol"],
    )
    values.update(overrides)
    return ContentFeature(**values)


@pytest.fixture
def portrait_fan_store():
    """Four liked portraits, two disliked logos, and one unseen portrait."""
    artworks = [
        make_artwork(f"p{i}", "portrait", ["anime", "cel"], ["cute"], "artist-1") for i in range(1, 5)
    ] + [
        make_artwork("l1", "logo", ["minimalist"], ["brand"], "artist-2"),
        make_artwork("l2", "logo", ["flat"], ["brand"], "artist-2"),
        make_artwork("candidate", "portrait", ["anime", "cel"], [], "artist-9"),
    ]
    interactions = [make_interaction("fan", f"p{i}", 1.0, minutes_ago=i) for i in range(1, 5)] + [
        make_interaction("fan", "l1", 0.2, minutes_ago=10),
        make_interaction("fan", "l2", 0.2, minutes_ago=11),
    ]
    return InMemoryFeatureStore(artworks=artworks, interactions=interactions)


@pytest.mark.unit
class TestScoring:
    """Weighted feature matching."""

    def test_weights_total_one(self):
        assert sum(FEATURE_WEIGHTS.values()) == pytest.approx(1.0)

    def test_identical_features_score_one(self):
        features = full_features()
        score, _ = score_features(features, features)
        assert score == pytest.approx(1.0)

    def test_reasons_describe_matches(self):
        _, reasons = score_features(full_features(), full_features())
        assert "Same category (portrait)" in reasons
        assert "Similar style (2 matching)" in reasons
        assert "Similar colors" in reasons
        assert "From an artist you like" in reasons

    def test_unknown_category_never_matches(self):
        score, reasons = score_features(
            ContentFeature(category=UNKNOWN, complexity=0.5),
            ContentFeature(category=UNKNOWN, complexity=0.5),
        )
        assert score == pytest.approx(FEATURE_WEIGHTS["complexity"])
        assert not any(r.startswith("Same category") for r in reasons)

    def test_profile_scores_are_clamped(self):
        score, confidence, _ = calculate_content_similarity(full_features(), full_features())
        assert 0.0 <= score <= 1.0
        assert 0.0 <= confidence <= 1.0

    def test_artwork_similarity_is_symmetric(self):
        """Pairwise confidence uses the sparser artwork, so order does not matter."""
        sparse = ContentFeature(category="portrait", style=["anime"], complexity=0.5)
        rich = full_features()
        assert calculate_artwork_similarity(sparse, rich)[:2] == calculate_artwork_similarity(rich, sparse)[:2]

    def test_feature_completeness(self):
        assert feature_completeness(full_features()) == pytest.approx(1.0)
        assert feature_completeness(ContentFeature(category=UNKNOWN, complexity=0.0)) == 0.0


@pytest.mark.unit
class TestProfile:
    """Taste profile aggregation."""

    def test_empty_profile(self):
        assert aggregate_profile([]) is None

    def test_rating_weighted_aggregation(self):
        profile = aggregate_profile([
            (full_features(category="portrait", style=["anime"], tags=["cute"], complexity=1.0), 1.0),
            (full_features(category="logo", style=["flat"], tags=["brand"], complexity=0.0, artist_style="artist-2"), 0.8),
        ])

        assert profile.category == "portrait"
        assert profile.style == ["anime", "flat"]
        assert profile.artist_style == "artist-1"
        assert profile.complexity == pytest.approx(1.0 / 1.8)

    def test_palettes_are_averaged(self):
        profile = aggregate_profile([
            (full_features(color_palette=[1.0, 0.0]), 1.0),
            (full_features(color_palette=[0.0, 1.0]), 1.0),
        ])
        assert profile.color_palette == pytest.approx([0.5, 0.5])

    def test_only_liked_interactions_build_the_profile(self, portrait_fan_store):
        """Ratings of 0.2 do not pass the 0.7 bar."""
        profile = asyncio.run(ContentBasedFilteringService(portrait_fan_store).build_user_content_profile("fan"))
        assert profile.category == "portrait"
        assert profile.style == ["anime", "cel"]
        assert profile.tags == ["cute"]

    def test_no_liked_interactions(self, store):
        service = ContentBasedFilteringService(store)
        assert asyncio.run(service.build_user_content_profile("nobody")) is None

    def test_analysis_supplies_palette_and_complexity(self):
        artwork = make_artwork("z1", "portrait")
        analysis = ArtworkAnalysisRecord(artwork_id="z1", quality_score=0.9, color_analysis={"palette": [0.1, 0.2]})
        service = ContentBasedFilteringService(InMemoryFeatureStore(artworks=[artwork], analyses=[analysis]))

        features = asyncio.run(service.extract_artwork_features(artwork))

        assert features.complexity == pytest.approx(0.9)
        assert features.color_palette == [0.1, 0.2]


@pytest.mark.unit
class TestRecommendations:
    """End-to-end content recommendations."""

    def test_portrait_fan_gets_matching_portrait(self, portrait_fan_store):
        """Category, full style overlap and neutral complexity, but no tags and another artist."""
        results = asyncio.run(
            ContentBasedFilteringService(portrait_fan_store).get_content_based_recommendations("fan", 10)
        )

        assert [r.artwork_id for r in results] == ["candidate"]
        assert 0.45 < results[0].score < 0.65
        assert results[0].score == pytest.approx(0.55)
        assert results[0].algorithm == "content_based"

    def test_results_are_deterministic(self, store):
        service = ContentBasedFilteringService(store)
        first = asyncio.run(service.get_content_based_recommendations("alice", 10))
        second = asyncio.run(service.get_content_based_recommendations("alice", 10))
        assert first == second

    def test_alice_content_ranking(self, store):
        results = asyncio.run(ContentBasedFilteringService(store).get_content_based_recommendations("alice", 10))

        assert [r.artwork_id for r in results][:2] == ["a8", "a6"]
        assert results[0].score == pytest.approx(0.525)
        assert not {r.artwork_id for r in results} & {"a1", "a2", "a3", "a4"}

    def test_user_without_profile_gets_nothing(self, store):
        results = asyncio.run(ContentBasedFilteringService(store).get_content_based_recommendations("nobody", 10))
        assert results == []

    def test_similar_content(self, store):
        """Artworks resembling a1, best first, below 0.2 dropped."""
        results = asyncio.run(
            ContentBasedFilteringService(store).get_similar_content_recommendations("a1", "nobody", 10)
        )

        assert [r.artwork_id for r in results] == ["a2", "a8", "a3"]
        assert results[0].score == pytest.approx(0.675)
        assert all(r.algorithm == "content_similar" for r in results)

    def test_similar_content_skips_interacted(self, store):
        results = asyncio.run(
            ContentBasedFilteringService(store).get_similar_content_recommendations("a1", "alice", 10)
        )
        assert [r.artwork_id for r in results] == ["a8"]

    def test_similar_content_unknown_artwork(self, store):
        results = asyncio.run(
            ContentBasedFilteringService(store).get_similar_content_recommendations("missing", "alice", 10)
        )
        assert results == []
