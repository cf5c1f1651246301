"""API tests with in-memory services behind FastAPI dependency overrides."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from artrec.dependencies.services import (
    get_batch_service,
    get_hybrid_engine,
    get_recommendation_service,
    get_snapshot_loader,
)
from artrec.main import app
from artrec.schemas.recommendation import RecommendationStats
from artrec.services.batch_service import BatchRecommendationService
from artrec.services.hybrid_engine import HybridRecommendationEngine
from artrec.services.recommendation_service import RecommendationService
from artrec.services.snapshot_loader import SnapshotLoader


@pytest.fixture
def precomputed():
    store = AsyncMock()
    store.get_valid.return_value = []
    store.replace_for_user.return_value = 0
    store.cleanup_expired.return_value = 4
    store.get_stats.return_value = RecommendationStats(
        total_recommendations=6, unique_users=3, unique_artworks=5, avg_recommendations_per_user=2.0
    )
    return store


@pytest.fixture
def client(store, snapshot_file, precomputed):
    engine = HybridRecommendationEngine(store)
    loader = SnapshotLoader(snapshot_file)
    app.dependency_overrides[get_hybrid_engine] = lambda: engine
    app.dependency_overrides[get_recommendation_service] = lambda: RecommendationService(
        store, engine=engine, precomputed=precomputed
    )
    app.dependency_overrides[get_snapshot_loader] = lambda: loader
    app.dependency_overrides[get_batch_service] = lambda: BatchRecommendationService(store, precomputed, engine=engine)
    # Not entered as a context manager: the lifespan would connect to PostgreSQL
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
class TestRecommendationEndpoints:
    """/api/v1/recommendations"""

    def test_post_recommendations(self, client):
        response = client.post("/api/v1/recommendations", json={"user_id": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["algorithm"] == "hybrid_v2"
        assert data["artwork_ids"][:2] == ["a8", "a6"]
        assert len(data["scores"]) == data["metadata"]["total_count"]

    def test_get_with_query_filters(self, client):
        response = client.get("/api/v1/recommendations/newbie", params={"category": "logo", "limit": 5})

        assert response.status_code == 200
        assert response.json()["artwork_ids"] == ["a4", "a5"]

    def test_invalid_user_is_a_bad_request(self, client):
        response = client.post("/api/v1/recommendations", json={"user_id": "bad id"})

        assert response.status_code == 400
        assert response.json()["field"] == "user_id"

    def test_invalid_price_range(self, client):
        response = client.get("/api/v1/recommendations/alice", params={"min_price": 500, "max_price": 100})
        assert response.status_code == 400
        assert response.json()["field"] == "price_range"

    def test_artists(self, client):
        response = client.get("/api/v1/recommendations/alice/artists", params={"limit": 5})

        assert response.status_code == 200
        assert [a["artist_id"] for a in response.json()] == ["artist-4", "artist-2"]

    def test_similar_artworks(self, client):
        response = client.get("/api/v1/recommendations/alice/similar/a1")

        assert response.status_code == 200
        assert [r["artwork_id"] for r in response.json()] == ["a8"]

    def test_snapshot_recommendations(self, client):
        response = client.get("/api/v1/recommendations/u1/snapshot")

        assert response.status_code == 200
        assert response.json()[0]["artwork_id"] == "s4"

    def test_bulk(self, client):
        response = client.post("/api/v1/recommendations/bulk", json={"user_id": "stranger", "target_size": 50})

        assert response.status_code == 200
        data = response.json()
        assert data["weights"] == {"collaborative": 0.0, "content": 1.0}
        assert data["total_count"] <= 50


@pytest.mark.unit
class TestSnapshotEndpoints:

    def test_metadata(self, client):
        response = client.get("/api/v1/snapshot")

        assert response.status_code == 200
        assert response.json()["artworkCount"] == 5

    def test_reload(self, client):
        response = client.post("/api/v1/snapshot/reload")
        assert response.status_code == 200

    def test_missing_snapshot_is_unavailable(self, client, snapshot_file):
        snapshot_file.unlink()
        response = client.post("/api/v1/snapshot/reload")
        assert response.status_code == 503


@pytest.mark.unit
class TestBatchEndpoints:

    def test_run_batch(self, client):
        response = client.post("/api/v1/batch/recommendations")

        assert response.status_code == 200
        assert response.json()["users"] == 4

    def test_cleanup(self, client):
        assert client.post("/api/v1/batch/cleanup").json() == {"deleted": 4}

    def test_stats(self, client):
        assert client.get("/api/v1/batch/stats").json()["total_recommendations"] == 6


def test_health(client):
    response = client.get("/health")
    assert response.json()["status"] == "healthy"
