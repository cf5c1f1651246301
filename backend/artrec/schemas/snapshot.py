"""Pydantic schemas for the analysis snapshot file (camelCase on disk)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SnapshotMetadata(CamelModel):
    generated_at: datetime
    artwork_count: int = 0
    user_count: int = 0
    behavior_log_count: int = 0
    like_count: int = 0
    algorithm: str = "HYBRID_RECOMMENDATION_v1.0"


class ArtworkFeatures(BaseModel):
    # Stored with snake_case keys
    category_score: float = 0.5
    style_score: float = 0.5
    tag_vector: list[float] = Field(default_factory=list)
    popularity_score: float = 0.0
    recency_score: float = 0.0


class SnapshotArtwork(CamelModel):
    id: str
    title: str = ""
    description: str | None = None
    category: str | None = None
    style: str | None = None
    tags: list[str] = Field(default_factory=list)
    artist_id: str | None = None
    artist_name: str = "Unknown"
    likes_count: int = 0
    created_at: datetime | None = None
    features: ArtworkFeatures = Field(default_factory=ArtworkFeatures)

    @field_validator("style", mode="before")
    @classmethod
    def first_style(cls, value: Any) -> str | None:
        # Snapshots keep a single primary style
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> list[str]:
        return [] if value is None else value


class SnapshotPreferences(BaseModel):
    categories: dict[str, float] = Field(default_factory=dict)
    styles: dict[str, float] = Field(default_factory=dict)
    tags: dict[str, float] = Field(default_factory=dict)
    artists: dict[str, float] = Field(default_factory=dict)


class SnapshotUserProfile(CamelModel):
    user_id: str
    user_type: str | None = None
    liked_artworks: list[str] = Field(default_factory=list)
    preferences: SnapshotPreferences = Field(default_factory=SnapshotPreferences)


class CategoryCount(BaseModel):
    category: str | None
    count: int


class StyleCount(BaseModel):
    style: str
    count: int


class TagCount(BaseModel):
    tag: str
    count: int


class TopArtist(CamelModel):
    id: str | None
    name: str = "Unknown"
    artwork_count: int = 0
    total_likes: int = 0


class GlobalStats(CamelModel):
    popular_categories: list[CategoryCount] = Field(default_factory=list)
    popular_styles: list[StyleCount] = Field(default_factory=list)
    popular_tags: list[TagCount] = Field(default_factory=list)
    top_artists: list[TopArtist] = Field(default_factory=list)


class SnapshotDocument(CamelModel):
    """Whole snapshot file as written by ``build_snapshot``."""

    metadata: SnapshotMetadata
    artworks: list[SnapshotArtwork] = Field(default_factory=list)
    user_profiles: list[SnapshotUserProfile] = Field(default_factory=list)
    user_item_matrix: dict[str, dict[str, float]] = Field(default_factory=dict)
    item_similarity_matrix: dict[str, dict[str, float]] = Field(default_factory=dict)
    global_stats: GlobalStats = Field(default_factory=GlobalStats)
