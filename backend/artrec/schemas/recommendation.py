"""Pydantic schemas for recommendation requests and results."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ExperienceLevel = Literal["new", "intermediate", "experienced"]
DataAvailability = Literal["low", "medium", "high"]


class PriceRange(BaseModel):
    min: float
    max: float


class RecommendationRequest(BaseModel):
    """Input to the engine call surface. Validated by ``validate_request``."""

    user_id: str
    limit: int | None = None
    category: str | None = None
    style: list[str] | None = None
    price_range: PriceRange | None = None
    algorithm: str | None = None


class RecommendationResult(BaseModel):
    """Single scored candidate produced by one engine."""

    artwork_id: str
    score: float
    confidence: float
    algorithm: str
    reasons: list[str] = Field(default_factory=list)


class UserContext(BaseModel):
    interaction_count: int
    user_experience_level: ExperienceLevel
    data_availability: DataAvailability
    preference_stability: float


class AlgorithmWeights(BaseModel):
    collaborative: float
    content: float


class HybridMetadata(BaseModel):
    collaborative_weight: float
    content_weight: float
    user_experience_level: ExperienceLevel
    data_availability: DataAvailability


class HybridRecommendation(BaseModel):
    """Blended candidate produced by the hybrid orchestrator."""

    artwork_id: str
    final_score: float
    collaborative_score: float | None = None
    content_score: float | None = None
    confidence: float
    algorithm: str
    reasons: list[str] = Field(default_factory=list)
    metadata: HybridMetadata


class ResponseMetadata(BaseModel):
    total_count: int
    query_time: float  # milliseconds
    confidence: float


class RecommendationResponse(BaseModel):
    artwork_ids: list[str]
    scores: list[float]
    algorithm: str
    metadata: ResponseMetadata


class PrecomputedRecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    artwork_id: str
    score: float
    algorithm: str
    computed_at: datetime
    valid_until: datetime


class RecommendationStats(BaseModel):
    total_recommendations: int
    unique_users: int
    unique_artworks: int
    avg_recommendations_per_user: float


class ArtistRecommendation(BaseModel):
    artist_id: str
    score: float
    artwork_count: int
    sample_artwork_ids: list[str] = Field(default_factory=list)
    algorithm: str


class BulkRecommendationRequest(BaseModel):
    user_id: str
    target_size: int = Field(default=50, ge=1)


class BulkRecommendations(BaseModel):
    """Large candidate pool for client-side sampling."""

    user_id: str
    recommendations: list[RecommendationResult]
    weights: AlgorithmWeights
    total_count: int
    generated_at: datetime
