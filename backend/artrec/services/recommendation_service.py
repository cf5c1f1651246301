"""Engine call surface: precomputed reads, live hybrid scoring and the fallbacks behind them."""

import asyncio
import logging
import time

from artrec.config import get_settings
from artrec.exceptions import InvalidRecommendationRequest
from artrec.schemas.records import ArtworkAnalysisRecord, ArtworkRecord, UserPreferenceVector
from artrec.schemas.recommendation import (
    ArtistRecommendation,
    RecommendationRequest,
    RecommendationResponse,
    ResponseMetadata,
)
from artrec.services.feature_store import FeatureStore
from artrec.services.hybrid_engine import FALLBACK_CONFIDENCE, HybridRecommendationEngine, matches_filters
from artrec.services.precomputed_store import PrecomputedRecommendationStore
from artrec.services.similarity import cosine_similarity
from artrec.services.validation import mask_identifier, validate_limit, validate_request, validate_user_id

logger = logging.getLogger(__name__)

PRECOMPUTED_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE = 0.5
ARTIST_SAMPLE_SIZE = 3
ARTIST_CANDIDATE_MULTIPLIER = 5

STRATEGY_ALGORITHMS = {
    "hybrid": "hybrid_v2",
    "collaborative": "collaborative_only",
    "content": "content_only",
    "fallback": "fallback_popularity",
}


def preference_score(
    preference: UserPreferenceVector,
    artwork: ArtworkRecord,
    analysis: ArtworkAnalysisRecord | None,
) -> float:
    """Score one artwork against a stored preference profile, clamped to [0, 1]."""
    score = 0.0
    if analysis is not None:
        score += (analysis.quality_score if analysis.quality_score is not None else 0.5) * 0.3
        score += analysis.popularity_score * 0.2
        if analysis.style_vector and preference.preference_vector:
            score += cosine_similarity(preference.preference_vector, analysis.style_vector) * 0.4
    else:
        score += 0.5

    score += preference.preferred_categories.get(artwork.category or "", 0.5) * 0.1
    return max(0.0, min(1.0, score))


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RecommendationService:
    def __init__(
        self,
        store: FeatureStore,
        engine: HybridRecommendationEngine | None = None,
        precomputed: PrecomputedRecommendationStore | None = None,
    ):
        self.store = store
        self.engine = engine or HybridRecommendationEngine(store)
        self.precomputed = precomputed

    async def get_recommendations(
        self, request: RecommendationRequest, prefer_precomputed: bool | None = None
    ) -> RecommendationResponse:
        """Ranked artwork ids for one user.

        Raises InvalidRecommendationRequest for bad input; every other failure
        degrades to the popularity fallback.
        """
        started = time.perf_counter()
        request = validate_request(request)
        limit = request.limit
        if prefer_precomputed is None:
            prefer_precomputed = get_settings().prefer_precomputed
        masked = mask_identifier(request.user_id)

        try:
            # Precomputed lists are built without style or price filters
            if prefer_precomputed and self.precomputed is not None and not (request.style or request.price_range):
                rows = await self.precomputed.get_valid(request.user_id, limit, request.category)
                if len(rows) >= limit:
                    logger.info("Serving %d precomputed recommendations for user %s", len(rows), masked)
                    return RecommendationResponse(
                        artwork_ids=[r.artwork_id for r in rows],
                        scores=[r.score for r in rows],
                        algorithm=f"precomputed_{rows[0].algorithm}",
                        metadata=ResponseMetadata(
                            total_count=len(rows),
                            query_time=_elapsed_ms(started),
                            confidence=PRECOMPUTED_CONFIDENCE,
                        ),
                    )

            outcome = await self.engine.recommend(request)

            if outcome.fell_back:
                preference = await self.store.get_user_preference_vector(request.user_id)
                if preference is not None:
                    ranked = await self.rank_by_preference_vector(preference, request, limit)
                    if ranked:
                        return RecommendationResponse(
                            artwork_ids=[aid for aid, _ in ranked],
                            scores=[score for _, score in ranked],
                            algorithm="preference_vector",
                            metadata=ResponseMetadata(
                                total_count=len(ranked),
                                query_time=_elapsed_ms(started),
                                confidence=preference.profile_confidence,
                            ),
                        )

            results = outcome.results
            return RecommendationResponse(
                artwork_ids=[r.artwork_id for r in results],
                scores=[r.final_score for r in results],
                algorithm=STRATEGY_ALGORITHMS.get(outcome.strategy, outcome.strategy),
                metadata=ResponseMetadata(
                    total_count=len(results),
                    query_time=_elapsed_ms(started),
                    confidence=results[0].confidence if results else DEFAULT_CONFIDENCE,
                ),
            )
        except InvalidRecommendationRequest:
            raise
        except Exception:
            logger.exception("Recommendation failed for user %s, serving popularity fallback", masked)
            fallback = await self.engine.fallback(request, limit)
            return RecommendationResponse(
                artwork_ids=[r.artwork_id for r in fallback],
                scores=[r.final_score for r in fallback],
                algorithm="fallback_popularity",
                metadata=ResponseMetadata(
                    total_count=len(fallback),
                    query_time=_elapsed_ms(started),
                    confidence=FALLBACK_CONFIDENCE,
                ),
            )

    async def rank_by_preference_vector(
        self, preference: UserPreferenceVector, request: RecommendationRequest, limit: int
    ) -> list[tuple[str, float]]:
        artworks = [a for a in await self.store.get_all_artworks() if matches_filters(a, request)]
        analyses = await asyncio.gather(*(self.store.get_artwork_analysis(a.id) for a in artworks))
        scored = [
            (artwork.id, preference_score(preference, artwork, analysis))
            for artwork, analysis in zip(artworks, analyses)
        ]
        scored.sort(key=lambda s: s[1], reverse=True)
        return scored[:limit]

    async def get_artist_recommendations(self, user_id: str, limit: int | None = None) -> list[ArtistRecommendation]:
        """Artists ranked by the summed scores of their recommended artworks."""
        user_id = validate_user_id(user_id)
        limit = validate_limit(limit)

        outcome = await self.engine.recommend(
            RecommendationRequest(user_id=user_id, limit=limit * ARTIST_CANDIDATE_MULTIPLIER)
        )
        artworks = {a.id: a for a in await self.engine.catalog()}
        algorithm = "artist_fallback_popularity" if outcome.fell_back else "artist_aggregated"

        totals: dict[str, float] = {}
        samples: dict[str, list[str]] = {}
        for result in outcome.results:
            artwork = artworks.get(result.artwork_id)
            if artwork is None or not artwork.artist_id:
                continue
            totals[artwork.artist_id] = totals.get(artwork.artist_id, 0.0) + result.final_score
            samples.setdefault(artwork.artist_id, []).append(artwork.id)

        ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        return [
            ArtistRecommendation(
                artist_id=artist_id,
                score=round(score, 4),
                artwork_count=len(samples[artist_id]),
                sample_artwork_ids=samples[artist_id][:ARTIST_SAMPLE_SIZE],
                algorithm=algorithm,
            )
            for artist_id, score in ranked
        ]
