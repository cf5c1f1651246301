"""Validated record shapes returned by the feature store."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN = "UNKNOWN"


def _as_string_list(value: Any) -> list[str]:
    """Coerce None / scalar / iterable values into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)]


class Interaction(BaseModel):
    """One user-artwork rating derived from a behavior event."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    artwork_id: str
    rating: float = Field(ge=0.0, le=1.0)
    timestamp: datetime
    category: str | None = None


class HighRatedArtwork(BaseModel):
    id: str
    rating: float


class ArtworkRecord(BaseModel):
    """Artwork listing as seen by the engines.

    ``style`` and ``tags`` are always lists; a scalar style is wrapped.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str = ""
    description: str | None = None
    category: str | None = None
    style: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    artist_id: str | None = None
    price_min: float | None = None
    price_max: float | None = None
    popularity_score: float = 0.0
    created_at: datetime | None = None

    @field_validator("style", "tags", mode="before")
    @classmethod
    def coerce_list(cls, value: Any) -> list[str]:
        return _as_string_list(value)

    @field_validator("popularity_score", mode="before")
    @classmethod
    def coerce_popularity(cls, value: Any) -> float:
        return 0.0 if value is None else value


class ArtworkAnalysisRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    artwork_id: str
    style_vector: list[float] = Field(default_factory=list)
    category_scores: dict[str, float] = Field(default_factory=dict)
    popularity_score: float = 0.0
    quality_score: float | None = None
    color_analysis: Any = None
    content_hash: str | None = None
    last_analyzed: datetime | None = None

    @field_validator("style_vector", mode="before")
    @classmethod
    def coerce_vector(cls, value: Any) -> list[float]:
        return [] if value is None else value

    @field_validator("category_scores", mode="before")
    @classmethod
    def coerce_scores(cls, value: Any) -> dict[str, float]:
        return {} if value is None else value

    def color_palette(self) -> list[float]:
        """Parse the stored color analysis into a flat palette; [] when unreadable."""
        data = self.color_analysis
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                return []
        if isinstance(data, dict):
            data = data.get("palette")
        if not isinstance(data, list):
            return []
        try:
            return [float(c) for c in data]
        except (TypeError, ValueError):
            return []


class UserPreferenceVector(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    preference_vector: list[float] = Field(default_factory=list)
    preferred_styles: dict[str, float] = Field(default_factory=dict)
    preferred_categories: dict[str, float] = Field(default_factory=dict)
    profile_confidence: float = 0.0
    last_updated: datetime | None = None


class ContentFeature(BaseModel):
    """Content features of one artwork, or the aggregated taste of one user."""

    category: str = UNKNOWN
    style: list[str] = Field(default_factory=list)
    color_palette: list[float] = Field(default_factory=list)
    complexity: float = 0.5
    artist_style: str = ""
    tags: list[str] = Field(default_factory=list)
