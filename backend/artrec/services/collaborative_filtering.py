"""Collaborative filtering: user-based and item-based nearest neighbours over live interactions."""

import asyncio
import logging

from artrec.schemas.recommendation import RecommendationResult
from artrec.services.feature_store import FeatureStore
from artrec.services.ratings import latest_ratings
from artrec.services.similarity import MIN_COMMON_INTERACTIONS, cosine_similarity, pearson_correlation

logger = logging.getLogger(__name__)

MIN_SIMILARITY_THRESHOLD = 0.1
MAX_SIMILAR_USERS = 50
NEIGHBOR_MIN_RATING = 0.6  # neighbour ratings must exceed this to be recommended
SEED_MIN_RATING = 0.7
SIMILAR_ITEMS_PER_SEED = 10
REPEAT_HIT_DAMPING = 0.1


def calculate_confidence(interaction_count: int, similar_user_count: int) -> float:
    interaction_factor = min(interaction_count / 20, 1.0)
    similarity_factor = min(similar_user_count / 10, 1.0)
    return interaction_factor * 0.7 + similarity_factor * 0.3


def user_similarity(ratings_a: dict[str, float], ratings_b: dict[str, float]) -> float:
    """Pearson correlation over commonly rated artworks."""
    common = ratings_a.keys() & ratings_b.keys()
    return pearson_correlation((ratings_a[k], ratings_b[k]) for k in common)


def item_similarity(ratings_a: dict[str, float], ratings_b: dict[str, float]) -> float:
    """Cosine over the ratings of users who rated both artworks."""
    common = ratings_a.keys() & ratings_b.keys()
    if len(common) < MIN_COMMON_INTERACTIONS:
        return 0.0
    return cosine_similarity(
        {k: ratings_a[k] for k in common},
        {k: ratings_b[k] for k in common},
    )


class CollaborativeFilteringService:
    def __init__(self, store: FeatureStore):
        self.store = store

    async def get_user_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        """Recommend what positively-correlated users rated highly."""
        interactions = await self.store.get_user_interactions(user_id)
        if not interactions:
            return []

        target = latest_ratings(interactions)
        neighbours = await self.find_similar_users(user_id, target)
        if not neighbours:
            return []

        scores: dict[str, float] = {}
        confidence: dict[str, float] = {}
        for _, similarity, ratings in neighbours:
            for artwork_id, rating in ratings.items():
                if artwork_id in target or rating <= NEIGHBOR_MIN_RATING:
                    continue
                scores[artwork_id] = scores.get(artwork_id, 0.0) + rating * similarity
                confidence[artwork_id] = max(confidence.get(artwork_id, 0.0), similarity)

        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        return [
            RecommendationResult(
                artwork_id=artwork_id,
                score=score,
                confidence=confidence[artwork_id],
                algorithm="collaborative_user_based",
                reasons=["Liked by users with similar taste"],
            )
            for artwork_id, score in ranked
        ]

    async def find_similar_users(
        self, user_id: str, target: dict[str, float]
    ) -> list[tuple[str, float, dict[str, float]]]:
        """Top neighbours as (user_id, similarity, latest ratings), best first."""
        others = [uid for uid in await self.store.get_all_active_users() if uid != user_id]
        histories = await asyncio.gather(*(self.store.get_user_interactions(uid) for uid in others))

        neighbours = []
        for other_id, history in zip(others, histories):
            ratings = latest_ratings(history)
            similarity = user_similarity(target, ratings)
            if similarity >= MIN_SIMILARITY_THRESHOLD:
                neighbours.append((other_id, similarity, ratings))

        neighbours.sort(key=lambda n: n[1], reverse=True)
        return neighbours[:MAX_SIMILAR_USERS]

    async def get_item_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        """Recommend artworks co-rated with the ones the user rated highly."""
        seeds = await self.store.get_user_high_rated_artworks(user_id, SEED_MIN_RATING)
        if not seeds:
            return []

        interacted = set(await self.store.get_user_interacted_artwork_ids(user_id))
        interacted.update(seed.id for seed in seeds)

        artwork_ids = [a.id for a in await self.store.get_all_artworks()]
        known = set(artwork_ids)
        lookup_ids = artwork_ids + [seed.id for seed in seeds if seed.id not in known]
        histories = await asyncio.gather(*(self.store.get_artwork_interactions(aid) for aid in lookup_ids))
        item_ratings = {
            aid: latest_ratings(history, key="user_id") for aid, history in zip(lookup_ids, histories)
        }

        merged: dict[str, RecommendationResult] = {}
        for seed in seeds:
            for artwork_id, score, similarity in self._similar_artworks(seed.id, seed.rating, artwork_ids, item_ratings):
                if artwork_id in interacted:
                    continue
                existing = merged.get(artwork_id)
                if existing:
                    existing.score = min(existing.score + score * REPEAT_HIT_DAMPING, 1.0)
                    existing.confidence = max(existing.confidence, similarity)
                else:
                    merged[artwork_id] = RecommendationResult(
                        artwork_id=artwork_id,
                        score=min(score, 1.0),
                        confidence=similarity,
                        algorithm="collaborative_item_based",
                        reasons=["Similar to artworks you liked"],
                    )

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
        return ranked[:limit]

    def _similar_artworks(
        self,
        seed_id: str,
        seed_rating: float,
        artwork_ids: list[str],
        item_ratings: dict[str, dict[str, float]],
    ) -> list[tuple[str, float, float]]:
        seed_vector = item_ratings.get(seed_id, {})
        if len(seed_vector) < MIN_COMMON_INTERACTIONS:
            return []

        similar = []
        for artwork_id in artwork_ids:
            if artwork_id == seed_id:
                continue
            similarity = item_similarity(seed_vector, item_ratings.get(artwork_id, {}))
            if similarity >= MIN_SIMILARITY_THRESHOLD:
                similar.append((artwork_id, similarity * seed_rating, similarity))

        similar.sort(key=lambda s: s[1], reverse=True)
        return similar[:SIMILAR_ITEMS_PER_SEED]
