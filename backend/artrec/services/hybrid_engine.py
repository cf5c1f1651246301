"""Hybrid orchestrator: picks a strategy per user, blends both engines, falls back to popularity.

Pipeline per request: classify the user's context, select a strategy,
compute blend weights, run the engines concurrently, merge and filter.
Any store failure along the way ends in the popularity fallback.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from artrec.exceptions import InvalidRecommendationRequest
from artrec.schemas.records import UNKNOWN, ArtworkRecord, Interaction
from artrec.schemas.recommendation import (
    AlgorithmWeights,
    HybridMetadata,
    HybridRecommendation,
    RecommendationRequest,
    RecommendationResult,
    UserContext,
)
from artrec.services.collaborative_filtering import CollaborativeFilteringService
from artrec.services.content_filtering import ContentBasedFilteringService
from artrec.services.feature_store import FeatureStore
from artrec.services.validation import mask_identifier, validate_request

logger = logging.getLogger(__name__)

COLD_START_THRESHOLD = 3
USER_INTERACTION_THRESHOLD = 10
LOW_AVAILABILITY_BELOW = 5
HIGH_AVAILABILITY_FROM = 20
STABILITY_MIN_INTERACTIONS = 6
DEFAULT_STABILITY = 0.5
COLLABORATIVE_STABILITY = 0.7  # stability needed before collaborative-only is chosen

MAX_HYBRID_LIMIT = 50
MIN_FINAL_SCORE = 0.1
MIN_FINAL_CONFIDENCE = 0.05
FALLBACK_CONFIDENCE = 0.3

FallbackArtworks = Callable[[], list[ArtworkRecord]]


def classify_experience(interaction_count: int) -> str:
    if interaction_count <= COLD_START_THRESHOLD:
        return "new"
    if interaction_count <= USER_INTERACTION_THRESHOLD:
        return "intermediate"
    return "experienced"


def classify_availability(interaction_count: int) -> str:
    if interaction_count < LOW_AVAILABILITY_BELOW:
        return "low"
    if interaction_count < HIGH_AVAILABILITY_FROM:
        return "medium"
    return "high"


def _category_preferences(interactions: list[Interaction]) -> dict[str, float]:
    preferences: dict[str, float] = {}
    for interaction in interactions:
        if interaction.rating > 0.5:
            category = interaction.category or UNKNOWN
            preferences[category] = preferences.get(category, 0.0) + interaction.rating
    return preferences


def preference_stability(interactions: list[Interaction]) -> float:
    """Similarity of category preferences between the older and newer half of a history."""
    if len(interactions) < STABILITY_MIN_INTERACTIONS:
        return DEFAULT_STABILITY

    ordered = sorted(interactions, key=lambda i: i.timestamp)
    half = len(ordered) // 2
    early = _category_preferences(ordered[:half])
    recent = _category_preferences(ordered[half:])
    if not early or not recent:
        return 0.0

    categories = early.keys() | recent.keys()
    total = 0.0
    for category in categories:
        a, b = early.get(category, 0.0), recent.get(category, 0.0)
        highest = max(a, b)
        if highest > 0:
            total += min(a, b) / highest
    return total / len(categories)


def select_strategy(requested: str | None, context: UserContext) -> str:
    """Explicit collaborative/content wins; otherwise choose from the user's context."""
    if requested in ("collaborative", "content"):
        return requested
    if context.user_experience_level == "new":
        return "content"
    if context.data_availability == "high" and context.preference_stability > COLLABORATIVE_STABILITY:
        return "collaborative"
    return "hybrid"


def calculate_algorithm_weights(context: UserContext) -> AlgorithmWeights:
    collaborative, content = 0.5, 0.5

    if context.user_experience_level == "new":
        collaborative, content = 0.2, 0.8
    elif context.user_experience_level == "experienced":
        collaborative, content = 0.7, 0.3

    if context.data_availability == "low":
        collaborative *= 0.5
        content = 1.0 - collaborative
    elif context.data_availability == "high":
        collaborative *= 1.3
        content = 1.0 - collaborative

    if context.preference_stability > 0.8:
        collaborative *= 1.2
    elif context.preference_stability < 0.4:
        content *= 1.2

    total = collaborative + content
    return AlgorithmWeights(collaborative=collaborative / total, content=content / total)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _metadata(weights: AlgorithmWeights, context: UserContext) -> HybridMetadata:
    return HybridMetadata(
        collaborative_weight=weights.collaborative,
        content_weight=weights.content,
        user_experience_level=context.user_experience_level,
        data_availability=context.data_availability,
    )


def merge_results(
    collaborative: list[RecommendationResult],
    content: list[RecommendationResult],
    weights: AlgorithmWeights,
    context: UserContext,
) -> list[HybridRecommendation]:
    """Blend weighted engine outputs into one list keyed by artwork, best first."""
    merged: dict[str, HybridRecommendation] = {}
    metadata = _metadata(weights, context)

    for result in collaborative:
        merged[result.artwork_id] = HybridRecommendation(
            artwork_id=result.artwork_id,
            final_score=result.score * weights.collaborative,
            collaborative_score=result.score,
            confidence=result.confidence * weights.collaborative,
            algorithm="hybrid_collaborative_weighted",
            reasons=["Liked by users with similar taste"],
            metadata=metadata,
        )

    for result in content:
        existing = merged.get(result.artwork_id)
        if existing:
            existing.final_score += result.score * weights.content
            existing.content_score = result.score
            existing.confidence = max(existing.confidence, result.confidence * weights.content)
            existing.algorithm = "hybrid_combined"
            existing.reasons = list(dict.fromkeys(existing.reasons + result.reasons))
        else:
            merged[result.artwork_id] = HybridRecommendation(
                artwork_id=result.artwork_id,
                final_score=result.score * weights.content,
                content_score=result.score,
                confidence=result.confidence * weights.content,
                algorithm="hybrid_content_weighted",
                reasons=list(result.reasons),
                metadata=metadata,
            )

    for recommendation in merged.values():
        recommendation.final_score = _clamp(recommendation.final_score)
    return sorted(merged.values(), key=lambda r: r.final_score, reverse=True)


def rank_by_popularity(artworks: list[ArtworkRecord]) -> list[ArtworkRecord]:
    """Most popular first, then newest; ties keep listing order."""

    def recency(artwork: ArtworkRecord) -> float:
        return artwork.created_at.timestamp() if artwork.created_at else float("-inf")

    return sorted(artworks, key=lambda a: (-a.popularity_score, -recency(a)))


def matches_filters(artwork: ArtworkRecord, request: RecommendationRequest) -> bool:
    if request.category and artwork.category != request.category:
        return False
    if request.style and not set(request.style) & set(artwork.style):
        return False
    if request.price_range:
        if artwork.price_min is None:
            return False
        upper = artwork.price_max if artwork.price_max is not None else artwork.price_min
        if artwork.price_min > request.price_range.max or upper < request.price_range.min:
            return False
    return True


def _has_filters(request: RecommendationRequest) -> bool:
    return bool(request.category or request.style or request.price_range)


@dataclass
class HybridOutcome:
    results: list[HybridRecommendation]
    strategy: str
    weights: AlgorithmWeights
    context: UserContext | None
    fell_back: bool = False


class HybridRecommendationEngine:
    def __init__(
        self,
        store: FeatureStore,
        collaborative: CollaborativeFilteringService | None = None,
        content: ContentBasedFilteringService | None = None,
        fallback_artworks: FallbackArtworks | None = None,
    ):
        self.store = store
        self.collaborative = collaborative or CollaborativeFilteringService(store)
        self.content = content or ContentBasedFilteringService(store)
        # Used when the store itself cannot list artworks
        self.fallback_artworks = fallback_artworks

    async def get_hybrid_recommendations(self, request: RecommendationRequest) -> list[HybridRecommendation]:
        outcome = await self.recommend(request)
        return outcome.results

    async def recommend(self, request: RecommendationRequest) -> HybridOutcome:
        started = time.perf_counter()
        request = validate_request(request)
        limit = min(request.limit, MAX_HYBRID_LIMIT)
        masked = mask_identifier(request.user_id)

        try:
            context = await self.analyze_user_context(request.user_id)
            strategy = select_strategy(request.algorithm, context)

            if strategy == "collaborative":
                results, weights = await self._collaborative_only(request.user_id, limit, context)
            elif strategy == "content":
                results, weights = await self._content_only(request.user_id, limit, context)
            else:
                results, weights = await self._hybrid(request.user_id, limit, context)

            results = [
                r for r in results
                if r.final_score >= MIN_FINAL_SCORE and r.confidence >= MIN_FINAL_CONFIDENCE
            ]
            if _has_filters(request):
                results = await self._apply_request_filters(results, request)
            results = results[:limit]
        except InvalidRecommendationRequest:
            raise
        except Exception:
            logger.exception("Hybrid recommendation failed for user %s, using popularity fallback", masked)
            return HybridOutcome(
                results=await self.fallback(request, limit),
                strategy="fallback",
                weights=AlgorithmWeights(collaborative=0.0, content=0.0),
                context=None,
                fell_back=True,
            )

        if not results:
            logger.info("No candidates for user %s (strategy %s), using popularity fallback", masked, strategy)
            return HybridOutcome(
                results=await self.fallback(request, limit),
                strategy="fallback",
                weights=AlgorithmWeights(collaborative=0.0, content=0.0),
                context=context,
                fell_back=True,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Hybrid recommendation for user %s: strategy=%s results=%d in %.1fms",
            masked, strategy, len(results), elapsed_ms,
        )
        return HybridOutcome(results=results, strategy=strategy, weights=weights, context=context)

    async def analyze_user_context(self, user_id: str) -> UserContext:
        interactions = await self.store.get_user_interactions(user_id)
        count = len(interactions)
        return UserContext(
            interaction_count=count,
            user_experience_level=classify_experience(count),
            data_availability=classify_availability(count),
            preference_stability=preference_stability(interactions),
        )

    async def _hybrid(
        self, user_id: str, limit: int, context: UserContext
    ) -> tuple[list[HybridRecommendation], AlgorithmWeights]:
        weights = calculate_algorithm_weights(context)
        collaborative, content = await asyncio.gather(
            self._collaborative_results(user_id, limit * 2),
            self._content_results(user_id, limit * 2),
        )
        return merge_results(collaborative, content, weights, context), weights

    async def _collaborative_only(
        self, user_id: str, limit: int, context: UserContext
    ) -> tuple[list[HybridRecommendation], AlgorithmWeights]:
        weights = AlgorithmWeights(collaborative=1.0, content=0.0)
        metadata = _metadata(weights, context)
        results = [
            HybridRecommendation(
                artwork_id=r.artwork_id,
                final_score=_clamp(r.score),
                collaborative_score=r.score,
                confidence=r.confidence,
                algorithm="collaborative_only",
                reasons=["Based on users with similar taste"],
                metadata=metadata,
            )
            for r in await self._collaborative_results(user_id, limit)
        ]
        return results, weights

    async def _content_only(
        self, user_id: str, limit: int, context: UserContext
    ) -> tuple[list[HybridRecommendation], AlgorithmWeights]:
        weights = AlgorithmWeights(collaborative=0.0, content=1.0)
        metadata = _metadata(weights, context)
        results = [
            HybridRecommendation(
                artwork_id=r.artwork_id,
                final_score=_clamp(r.score),
                content_score=r.score,
                confidence=r.confidence,
                algorithm="content_only",
                reasons=list(r.reasons),
                metadata=metadata,
            )
            for r in await self._content_results(user_id, limit)
        ]
        return results, weights

    async def _collaborative_results(self, user_id: str, limit: int) -> list[RecommendationResult]:
        """User-based and item-based results merged, keeping the best score per artwork."""
        half = math.ceil(limit / 2)
        try:
            user_based, item_based = await asyncio.gather(
                self.collaborative.get_user_based_recommendations(user_id, half),
                self.collaborative.get_item_based_recommendations(user_id, half),
            )
        except Exception:
            logger.exception("Collaborative filtering failed for user %s", mask_identifier(user_id))
            return []

        merged: dict[str, RecommendationResult] = {}
        for result in user_based + item_based:
            existing = merged.get(result.artwork_id)
            if existing:
                existing.score = max(existing.score, result.score)
                existing.confidence = max(existing.confidence, result.confidence)
            else:
                merged[result.artwork_id] = result.model_copy()

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
        return ranked[:limit]

    async def _content_results(self, user_id: str, limit: int) -> list[RecommendationResult]:
        try:
            return await self.content.get_content_based_recommendations(user_id, limit)
        except Exception:
            logger.exception("Content-based filtering failed for user %s", mask_identifier(user_id))
            return []

    async def _apply_request_filters(
        self, results: list[HybridRecommendation], request: RecommendationRequest
    ) -> list[HybridRecommendation]:
        artworks = {a.id: a for a in await self.store.get_all_artworks()}
        return [
            r for r in results
            if r.artwork_id in artworks and matches_filters(artworks[r.artwork_id], request)
        ]

    async def fallback(self, request: RecommendationRequest, limit: int) -> list[HybridRecommendation]:
        """Popularity-ranked list with fixed confidence. Never raises."""
        artworks = await self.catalog()
        candidates = [a for a in artworks if matches_filters(a, request)]
        metadata = HybridMetadata(
            collaborative_weight=0.0,
            content_weight=0.0,
            user_experience_level="new",
            data_availability="low",
        )
        return [
            HybridRecommendation(
                artwork_id=artwork.id,
                final_score=_clamp(0.5 - index * 0.01),
                confidence=FALLBACK_CONFIDENCE,
                algorithm="fallback_popularity",
                reasons=["Popular artwork"],
                metadata=metadata,
            )
            for index, artwork in enumerate(rank_by_popularity(candidates)[:limit])
        ]

    async def catalog(self) -> list[ArtworkRecord]:
        """All artworks, from the store or else the secondary listing. Never raises."""
        try:
            return await self.store.get_all_artworks()
        except Exception:
            logger.exception("Feature store unavailable for fallback listing")

        if self.fallback_artworks is None:
            return []
        try:
            return self.fallback_artworks()
        except Exception:
            logger.exception("Secondary fallback listing failed")
            return []
