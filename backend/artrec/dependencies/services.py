"""Service dependencies for FastAPI routes."""

from functools import lru_cache

from fastapi import Depends

from artrec.config import get_settings
from artrec.models.base import AsyncSessionLocal
from artrec.schemas.records import ArtworkRecord
from artrec.services.batch_service import BatchRecommendationService
from artrec.services.feature_store import FeatureStore, SqlFeatureStore
from artrec.services.hybrid_engine import HybridRecommendationEngine
from artrec.services.precomputed_store import PrecomputedRecommendationStore
from artrec.services.recommendation_service import RecommendationService
from artrec.services.snapshot_loader import SnapshotLoader
from artrec.services.snapshot_recommender import SnapshotRecommender


@lru_cache
def get_snapshot_loader() -> SnapshotLoader:
    return SnapshotLoader(get_settings().snapshot_path)


@lru_cache
def get_feature_store() -> FeatureStore:
    return SqlFeatureStore(AsyncSessionLocal, get_settings().store_max_concurrency)


@lru_cache
def get_precomputed_store() -> PrecomputedRecommendationStore:
    return PrecomputedRecommendationStore(AsyncSessionLocal)


def snapshot_fallback_artworks(loader: SnapshotLoader):
    """Fallback artwork source backed by the snapshot, used when the store is down."""

    def artworks() -> list[ArtworkRecord]:
        if not loader.loaded:
            return []
        return loader.current.artwork_records()

    return artworks


def get_hybrid_engine(
    store: FeatureStore = Depends(get_feature_store),
    loader: SnapshotLoader = Depends(get_snapshot_loader),
) -> HybridRecommendationEngine:
    return HybridRecommendationEngine(store, fallback_artworks=snapshot_fallback_artworks(loader))


def get_recommendation_service(
    store: FeatureStore = Depends(get_feature_store),
    engine: HybridRecommendationEngine = Depends(get_hybrid_engine),
    precomputed: PrecomputedRecommendationStore = Depends(get_precomputed_store),
) -> RecommendationService:
    return RecommendationService(store, engine=engine, precomputed=precomputed)


def get_snapshot_recommender(loader: SnapshotLoader = Depends(get_snapshot_loader)) -> SnapshotRecommender:
    return SnapshotRecommender(loader)


def get_batch_service(
    store: FeatureStore = Depends(get_feature_store),
    engine: HybridRecommendationEngine = Depends(get_hybrid_engine),
    precomputed: PrecomputedRecommendationStore = Depends(get_precomputed_store),
) -> BatchRecommendationService:
    return BatchRecommendationService(store, precomputed, engine=engine)
