"""Content-based filtering: scores artworks against a rating-weighted taste profile."""

import asyncio
import logging
from typing import Final

from artrec.schemas.records import UNKNOWN, ArtworkRecord, ContentFeature
from artrec.schemas.recommendation import RecommendationResult
from artrec.services.feature_store import FeatureStore
from artrec.services.ratings import latest_ratings
from artrec.services.similarity import overlap_ratio, truncated_cosine

logger = logging.getLogger(__name__)

# Must total 1.0
FEATURE_WEIGHTS: Final[dict[str, float]] = {
    "category": 0.25,
    "style": 0.20,
    "color_palette": 0.15,
    "complexity": 0.10,
    "artist_style": 0.15,
    "tags": 0.15,
}

PROFILE_MIN_RATING = 0.7
PROFILE_TOP_STYLES = 3
PROFILE_TOP_TAGS = 5
DEFAULT_COMPLEXITY = 0.5
MIN_SCORE = 0.1
SIMILAR_CONTENT_MIN_SCORE = 0.2
COLOR_REASON_THRESHOLD = 0.5
COMPLEXITY_REASON_THRESHOLD = 0.7


def score_features(reference: ContentFeature, candidate: ContentFeature) -> tuple[float, list[str]]:
    """Weighted feature match of ``candidate`` against ``reference``, unclamped."""
    total = 0.0
    reasons: list[str] = []

    if reference.category != UNKNOWN and reference.category == candidate.category:
        total += FEATURE_WEIGHTS["category"]
        reasons.append(f"Same category ({candidate.category})")

    style_score, style_overlap = overlap_ratio(reference.style, candidate.style)
    total += style_score * FEATURE_WEIGHTS["style"]
    if style_overlap:
        reasons.append(f"Similar style ({style_overlap} matching)")

    color_score = truncated_cosine(reference.color_palette, candidate.color_palette)
    total += color_score * FEATURE_WEIGHTS["color_palette"]
    if color_score > COLOR_REASON_THRESHOLD:
        reasons.append("Similar colors")

    complexity_score = 1 - abs(reference.complexity - candidate.complexity)
    total += complexity_score * FEATURE_WEIGHTS["complexity"]
    if complexity_score > COMPLEXITY_REASON_THRESHOLD:
        reasons.append("Similar complexity")

    if reference.artist_style and reference.artist_style == candidate.artist_style:
        total += FEATURE_WEIGHTS["artist_style"]
        reasons.append("From an artist you like")

    tag_score, tag_overlap = overlap_ratio(reference.tags, candidate.tags)
    total += tag_score * FEATURE_WEIGHTS["tags"]
    if tag_overlap:
        reasons.append(f"Shared tags ({tag_overlap})")

    return total, reasons


def feature_completeness(features: ContentFeature) -> float:
    """Fraction of the six feature fields that carry information."""
    filled = [
        bool(features.category) and features.category != UNKNOWN,
        bool(features.style),
        bool(features.color_palette),
        features.complexity > 0,
        bool(features.artist_style),
        bool(features.tags),
    ]
    return sum(filled) / len(filled)


def _confidence(completeness: float, reason_count: int) -> float:
    return completeness * 0.6 + min(reason_count / 5, 1.0) * 0.4


def calculate_content_similarity(profile: ContentFeature, features: ContentFeature) -> tuple[float, float, list[str]]:
    """Score an artwork against a user profile. Returns (score, confidence, reasons)."""
    total, reasons = score_features(profile, features)
    confidence = _confidence(feature_completeness(profile), len(reasons))
    return max(0.0, min(1.0, total)), confidence, reasons


def calculate_artwork_similarity(a: ContentFeature, b: ContentFeature) -> tuple[float, float, list[str]]:
    """Compare two single artworks.

    Unlike the profile comparison, confidence is bounded by the sparser of the
    two artworks, so the result does not depend on argument order.
    """
    total, reasons = score_features(a, b)
    completeness = min(feature_completeness(a), feature_completeness(b))
    return max(0.0, min(1.0, total)), _confidence(completeness, len(reasons)), reasons


def _top_keys(weights: dict[str, float], n: int) -> list[str]:
    return [k for k, _ in sorted(weights.items(), key=lambda kv: kv[1], reverse=True)[:n]]


def aggregate_profile(weighted_features: list[tuple[ContentFeature, float]]) -> ContentFeature | None:
    """Combine per-artwork features into one taste profile, using ratings as weights."""
    if not weighted_features:
        return None

    categories: dict[str, float] = {}
    styles: dict[str, float] = {}
    artists: dict[str, float] = {}
    tags: dict[str, float] = {}
    palettes: list[list[float]] = []
    complexity_sum = 0.0
    weight_sum = 0.0

    for features, weight in weighted_features:
        categories[features.category] = categories.get(features.category, 0.0) + weight
        for style in features.style:
            styles[style] = styles.get(style, 0.0) + weight
        if features.color_palette:
            palettes.append([c * weight for c in features.color_palette])
        complexity_sum += features.complexity * weight
        weight_sum += weight
        if features.artist_style:
            artists[features.artist_style] = artists.get(features.artist_style, 0.0) + weight
        for tag in features.tags:
            tags[tag] = tags.get(tag, 0.0) + weight

    palette: list[float] = []
    if palettes:
        palette = [0.0] * max(len(p) for p in palettes)
        for p in palettes:
            for i, value in enumerate(p):
                palette[i] += value
        palette = [value / len(palettes) for value in palette]

    return ContentFeature(
        category=(_top_keys(categories, 1) or [UNKNOWN])[0],
        style=_top_keys(styles, PROFILE_TOP_STYLES),
        color_palette=palette,
        complexity=complexity_sum / weight_sum if weight_sum > 0 else DEFAULT_COMPLEXITY,
        artist_style=(_top_keys(artists, 1) or [""])[0],
        tags=_top_keys(tags, PROFILE_TOP_TAGS),
    )


class ContentBasedFilteringService:
    def __init__(self, store: FeatureStore):
        self.store = store

    async def get_content_based_recommendations(self, user_id: str, limit: int = 10) -> list[RecommendationResult]:
        profile = await self.build_user_content_profile(user_id)
        if profile is None:
            return []

        artworks = await self.store.get_all_artworks()
        interacted = set(await self.store.get_user_interacted_artwork_ids(user_id))
        candidates = [a for a in artworks if a.id not in interacted]
        features = await asyncio.gather(*(self.extract_artwork_features(a) for a in candidates))

        results = []
        for artwork, artwork_features in zip(candidates, features):
            score, confidence, reasons = calculate_content_similarity(profile, artwork_features)
            if score < MIN_SCORE:
                continue
            results.append(
                RecommendationResult(
                    artwork_id=artwork.id,
                    score=score,
                    confidence=confidence,
                    algorithm="content_based",
                    reasons=reasons,
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def get_similar_content_recommendations(
        self, artwork_id: str, user_id: str, limit: int = 10
    ) -> list[RecommendationResult]:
        """Artworks that look like ``artwork_id``, excluding ones the user has seen."""
        target = await self.store.get_artwork_by_id(artwork_id)
        if target is None:
            return []

        target_features = await self.extract_artwork_features(target)
        artworks = await self.store.get_all_artworks()
        interacted = set(await self.store.get_user_interacted_artwork_ids(user_id))
        candidates = [a for a in artworks if a.id != artwork_id and a.id not in interacted]
        features = await asyncio.gather(*(self.extract_artwork_features(a) for a in candidates))

        results = []
        for artwork, artwork_features in zip(candidates, features):
            score, confidence, reasons = calculate_artwork_similarity(target_features, artwork_features)
            if score < SIMILAR_CONTENT_MIN_SCORE:
                continue
            results.append(
                RecommendationResult(
                    artwork_id=artwork.id,
                    score=score,
                    confidence=confidence,
                    algorithm="content_similar",
                    reasons=reasons,
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def build_user_content_profile(self, user_id: str) -> ContentFeature | None:
        """Taste profile from interactions rated above 0.7, or None if there are none."""
        interactions = await self.store.get_user_interactions(user_id)
        liked = [(aid, r) for aid, r in latest_ratings(interactions).items() if r > PROFILE_MIN_RATING]
        if not liked:
            return None

        artworks = await asyncio.gather(*(self.store.get_artwork_by_id(aid) for aid, _ in liked))
        found = [(artwork, rating) for artwork, (_, rating) in zip(artworks, liked) if artwork is not None]
        features = await asyncio.gather(*(self.extract_artwork_features(a) for a, _ in found))
        return aggregate_profile([(f, rating) for f, (_, rating) in zip(features, found)])

    async def extract_artwork_features(self, artwork: ArtworkRecord) -> ContentFeature:
        analysis = await self.store.get_artwork_analysis(artwork.id)
        complexity = DEFAULT_COMPLEXITY
        palette: list[float] = []
        if analysis is not None:
            palette = analysis.color_palette()
            if analysis.quality_score is not None:
                complexity = analysis.quality_score

        return ContentFeature(
            category=artwork.category or UNKNOWN,
            style=artwork.style,
            color_palette=palette,
            complexity=complexity,
            artist_style=artwork.artist_id or "",
            tags=artwork.tags,
        )
