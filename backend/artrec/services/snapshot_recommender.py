"""Snapshot recommenders: fast, reduced-fidelity variants of the live engines.

Everything here reads the in-memory analysis snapshot; no store access.
Each public method captures ``loader.current`` once so a concurrent reload
never mixes two snapshots inside one call.
"""

import logging
from datetime import datetime, timezone

from artrec.schemas.recommendation import AlgorithmWeights, BulkRecommendations, RecommendationResult
from artrec.services.snapshot_loader import AnalysisSnapshot, SnapshotLoader

logger = logging.getLogger(__name__)

SIMILAR_USERS = 10
SIMILAR_ARTWORKS_PER_LIKE = 20
MIN_CONTENT_SCORE = 0.1
FALLBACK_CONFIDENCE = 0.3
MAX_REASONS = 5


def snapshot_weights(liked_count: int) -> AlgorithmWeights:
    if liked_count >= 5:
        return AlgorithmWeights(collaborative=0.6, content=0.4)
    if liked_count > 0:
        return AlgorithmWeights(collaborative=0.4, content=0.6)
    return AlgorithmWeights(collaborative=0.3, content=0.7)


def _effective_weights(weights: AlgorithmWeights, has_user_data: bool) -> AlgorithmWeights:
    # Without user data the collaborative side never runs
    if not has_user_data:
        return AlgorithmWeights(collaborative=0.0, content=1.0)
    return weights


class SnapshotRecommender:
    def __init__(self, loader: SnapshotLoader):
        self.loader = loader

    def get_user_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        return self._user_based(self.loader.current, user_id, limit)

    def get_item_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        return self._item_based(self.loader.current, user_id, limit)

    def get_content_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        return self._content_based(self.loader.current, user_id, limit)

    def get_hybrid_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        """Blend over a wide pool (at least 50 candidates) and return the top ``limit``."""
        snapshot = self.loader.current
        pool = max(limit * 5, 50)
        results, weights = self._blend(snapshot, user_id, pool, prefix="hybrid")
        logger.info(
            "Snapshot hybrid: %d of %d candidates (collaborative %.2f, content %.2f)",
            min(limit, len(results)), len(results), weights.collaborative, weights.content,
        )
        return results[:limit]

    def get_bulk_recommendations(self, user_id: str, target_size: int = 50) -> BulkRecommendations:
        """Candidate pool of up to ``target_size`` for client-side sampling."""
        snapshot = self.loader.current
        results, weights = self._blend(snapshot, user_id, target_size * 2, prefix="bulk")
        results = results[:target_size]
        return BulkRecommendations(
            user_id=user_id,
            recommendations=results,
            weights=weights,
            total_count=len(results),
            generated_at=datetime.now(timezone.utc),
        )

    def _blend(
        self, snapshot: AnalysisSnapshot, user_id: str, pool: int, prefix: str
    ) -> tuple[list[RecommendationResult], AlgorithmWeights]:
        profile = snapshot.get_user_profile(user_id)
        liked_count = len(profile.liked_artworks) if profile else 0
        has_user_data = liked_count > 0
        weights = _effective_weights(snapshot_weights(liked_count), has_user_data)

        collaborative = self._user_based(snapshot, user_id, pool) if has_user_data else []
        content = self._content_based(snapshot, user_id, pool)

        merged: dict[str, RecommendationResult] = {}
        for result in collaborative:
            merged[result.artwork_id] = self._weighted(
                result, weights.collaborative, f"{prefix}_collaborative_weighted",
                extra_reason="Liked by users with similar taste",
            )

        for result in content:
            existing = merged.get(result.artwork_id)
            if existing:
                existing.score += result.score * weights.content
                existing.confidence = max(existing.confidence, result.confidence * weights.content)
                existing.algorithm = f"{prefix}_combined"
                existing.reasons = list(dict.fromkeys(existing.reasons + result.reasons))[:MAX_REASONS]
            else:
                merged[result.artwork_id] = self._weighted(result, weights.content, f"{prefix}_content_weighted")

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
        return ranked, weights

    @staticmethod
    def _weighted(
        result: RecommendationResult, weight: float, algorithm: str, extra_reason: str | None = None
    ) -> RecommendationResult:
        reasons = list(result.reasons)
        if extra_reason:
            reasons.append(extra_reason)
        # Fallback entries keep their tag so callers can tell them apart
        if result.algorithm.startswith("fallback"):
            algorithm = result.algorithm
        return RecommendationResult(
            artwork_id=result.artwork_id,
            score=result.score * weight,
            confidence=result.confidence * weight,
            algorithm=algorithm,
            reasons=reasons,
        )

    def _user_based(self, snapshot: AnalysisSnapshot, user_id: str, limit: int) -> list[RecommendationResult]:
        similar_users = snapshot.find_similar_users(user_id, SIMILAR_USERS)
        if not similar_users:
            return self._fallback(snapshot, limit, "no_similar_users")

        profile = snapshot.get_user_profile(user_id)
        liked = set(profile.liked_artworks) if profile else set()

        totals: dict[str, float] = {}
        reasons: dict[str, list[str]] = {}
        for other_id, similarity in similar_users:
            other = snapshot.get_user_profile(other_id)
            if other is None:
                continue
            for artwork_id in other.liked_artworks:
                if artwork_id in liked:
                    continue
                totals[artwork_id] = totals.get(artwork_id, 0.0) + similarity
                reasons.setdefault(artwork_id, []).append(f"Liked by a similar user ({similarity:.2f})")

        results = [
            RecommendationResult(
                artwork_id=artwork_id,
                score=min(total / len(similar_users), 1.0),
                confidence=min(total / 3, 0.9),
                algorithm="collaborative_user_based",
                reasons=reasons[artwork_id][:3],
            )
            for artwork_id, total in totals.items()
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def _item_based(self, snapshot: AnalysisSnapshot, user_id: str, limit: int) -> list[RecommendationResult]:
        profile = snapshot.get_user_profile(user_id)
        if profile is None or not profile.liked_artworks:
            return self._fallback(snapshot, limit, "no_user_likes")

        liked = set(profile.liked_artworks)
        totals: dict[str, float] = {}
        reasons: dict[str, list[str]] = {}
        for liked_id in profile.liked_artworks:
            liked_artwork = snapshot.get_artwork(liked_id)
            for artwork_id, similarity in snapshot.find_similar_artworks(liked_id, SIMILAR_ARTWORKS_PER_LIKE):
                if artwork_id in liked:
                    continue
                totals[artwork_id] = totals.get(artwork_id, 0.0) + similarity
                if liked_artwork is not None:
                    reasons.setdefault(artwork_id, []).append(
                        f"Similar to \"{liked_artwork.title}\" ({similarity:.2f})"
                    )

        results = [
            RecommendationResult(
                artwork_id=artwork_id,
                score=min(total / len(profile.liked_artworks), 1.0),
                confidence=min(total / 2, 0.9),
                algorithm="collaborative_item_based",
                reasons=reasons.get(artwork_id, [])[:3],
            )
            for artwork_id, total in totals.items()
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def _content_based(self, snapshot: AnalysisSnapshot, user_id: str, limit: int) -> list[RecommendationResult]:
        profile = snapshot.get_user_profile(user_id)
        if profile is None:
            return self._fallback(snapshot, limit, "no_user_profile")

        liked = set(profile.liked_artworks)
        preferences = profile.preferences
        results = []
        for artwork in snapshot.artworks:
            if artwork.id in liked:
                continue

            score = 0.0
            reasons = []

            category_pref = preferences.categories.get(artwork.category or "", 0.0)
            if category_pref > 0:
                score += category_pref * 0.4
                reasons.append(f"Preferred category \"{artwork.category}\"")

            style_pref = preferences.styles.get(artwork.style or "", 0.0)
            if style_pref > 0:
                score += style_pref * 0.3
                reasons.append(f"Preferred style \"{artwork.style}\"")

            tag_score = 0.0
            for tag in artwork.tags:
                tag_pref = preferences.tags.get(tag, 0.0)
                if tag_pref > 0:
                    tag_score += tag_pref
                    reasons.append(f"Preferred tag \"{tag}\"")
            score += min(tag_score * 0.2, 0.4)

            if artwork.likes_count > 0:
                score += min(artwork.likes_count / 10, 0.1)

            if score > MIN_CONTENT_SCORE:
                results.append(
                    RecommendationResult(
                        artwork_id=artwork.id,
                        score=min(score, 1.0),
                        confidence=min(score * 0.8, 0.9),
                        algorithm="content_based",
                        reasons=reasons[:3],
                    )
                )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def _fallback(self, snapshot: AnalysisSnapshot, limit: int, reason: str) -> list[RecommendationResult]:
        logger.info("Snapshot fallback to popular artworks: %s", reason)
        return [
            RecommendationResult(
                artwork_id=artwork.id,
                score=max(0.5 - index * 0.01, 0.0),
                confidence=FALLBACK_CONFIDENCE,
                algorithm="fallback_popular",
                reasons=["Popular artwork"],
            )
            for index, artwork in enumerate(snapshot.popular_artworks(limit=limit))
        ]
