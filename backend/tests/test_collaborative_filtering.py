"""Tests for user-based and item-based collaborative filtering."""

import asyncio

import pytest

from artrec.services.collaborative_filtering import (
    CollaborativeFilteringService,
    calculate_confidence,
    item_similarity,
    user_similarity,
)
from conftest import InMemoryFeatureStore, make_artwork, make_interaction


@pytest.fixture
def co_rated_store():
    """Three users rate x1 and x2 together; the target has only rated x1."""
    interactions = [
        make_interaction("u1", "x1", 1.0), make_interaction("u1", "x2", 1.0),
        make_interaction("u2", "x1", 1.0), make_interaction("u2", "x2", 0.8),
        make_interaction("u3", "x1", 0.8), make_interaction("u3", "x2", 1.0),
        make_interaction("u4", "x1", 0.3), make_interaction("u4", "x3", 1.0),
        make_interaction("target", "x1", 1.0),
    ]
    artworks = [make_artwork("x1"), make_artwork("x2"), make_artwork("x3")]
    return InMemoryFeatureStore(artworks=artworks, interactions=interactions)


@pytest.mark.unit
class TestUserBased:
    """Neighbour-based recommendations."""

    def test_recommends_what_similar_users_liked(self, store):
        """Alice's positively correlated neighbours are bob and carol."""
        results = asyncio.run(CollaborativeFilteringService(store).get_user_based_recommendations("alice", 10))

        assert [r.artwork_id for r in results] == ["a6", "a7", "a8"]
        assert all(r.algorithm == "collaborative_user_based" for r in results)

    def test_excludes_already_rated(self, store):
        results = asyncio.run(CollaborativeFilteringService(store).get_user_based_recommendations("alice", 10))
        assert not {r.artwork_id for r in results} & {"a1", "a2", "a3", "a4"}

    def test_confidence_is_strongest_neighbour_similarity(self, store):
        """a6 is liked by both neighbours; confidence is the larger similarity."""
        service = CollaborativeFilteringService(store)
        results = asyncio.run(service.get_user_based_recommendations("alice", 10))
        neighbours = asyncio.run(service.find_similar_users("alice", {"a1": 1.0, "a2": 0.8, "a3": 0.3, "a4": 0.3}))

        a6 = next(r for r in results if r.artwork_id == "a6")
        assert a6.confidence == pytest.approx(max(similarity for _, similarity, _ in neighbours))

    def test_negatively_correlated_users_are_ignored(self, store):
        service = CollaborativeFilteringService(store)
        neighbours = asyncio.run(service.find_similar_users("alice", {"a1": 1.0, "a2": 0.8, "a3": 0.3, "a4": 0.3}))
        assert "dave" not in {user_id for user_id, _, _ in neighbours}

    def test_zero_interaction_user_gets_nothing(self, store):
        service = CollaborativeFilteringService(store)
        assert asyncio.run(service.get_user_based_recommendations("nobody", 10)) == []
        assert asyncio.run(service.get_item_based_recommendations("nobody", 10)) == []

    def test_limit_is_respected(self, store):
        results = asyncio.run(CollaborativeFilteringService(store).get_user_based_recommendations("alice", 2))
        assert len(results) == 2


@pytest.mark.unit
class TestItemBased:
    """Seed-artwork similarity recommendations."""

    def test_recommends_co_rated_artwork(self, co_rated_store):
        results = asyncio.run(
            CollaborativeFilteringService(co_rated_store).get_item_based_recommendations("target", 10)
        )

        assert [r.artwork_id for r in results] == ["x2"]
        # cosine of (1, 1, 0.8) and (1, 0.8, 1) times the seed rating
        assert results[0].score == pytest.approx(2.6 / 2.64)
        assert results[0].algorithm == "collaborative_item_based"

    def test_items_with_too_few_common_raters_are_skipped(self, co_rated_store):
        """x3 shares only one rater with x1."""
        results = asyncio.run(
            CollaborativeFilteringService(co_rated_store).get_item_based_recommendations("target", 10)
        )
        assert "x3" not in {r.artwork_id for r in results}

    def test_no_seed_artworks(self, store):
        """Users without ratings of at least 0.7 have no seeds."""
        store.interactions.append(make_interaction("viewer", "a1", 0.3))
        results = asyncio.run(CollaborativeFilteringService(store).get_item_based_recommendations("viewer", 10))
        assert results == []

    def test_scores_are_clamped(self, co_rated_store):
        results = asyncio.run(
            CollaborativeFilteringService(co_rated_store).get_item_based_recommendations("target", 10)
        )
        assert all(0.0 <= r.score <= 1.0 for r in results)


@pytest.mark.unit
class TestHelpers:

    def test_confidence_heuristic(self):
        assert calculate_confidence(20, 10) == pytest.approx(1.0)
        assert calculate_confidence(10, 5) == pytest.approx(0.5)
        assert calculate_confidence(0, 0) == 0.0

    def test_user_similarity_needs_three_common_ratings(self):
        assert user_similarity({"a": 1.0, "b": 0.3}, {"a": 1.0, "b": 0.3}) == 0.0

    def test_item_similarity_over_common_users(self):
        assert item_similarity({"u1": 1.0, "u2": 0.5, "u3": 0.2}, {"u1": 1.0, "u2": 0.5, "u3": 0.2}) == pytest.approx(1.0)
        assert item_similarity({"u1": 1.0, "u2": 1.0}, {"u1": 1.0, "u2": 1.0}) == 0.0
