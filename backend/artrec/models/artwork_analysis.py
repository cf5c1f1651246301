"""Artwork analysis model: extracted feature vectors and scores."""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from artrec.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class ArtworkAnalysis(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "artwork_analyses"

    artwork_id = Column(String(36), ForeignKey("artworks.id", ondelete="CASCADE"), unique=True, nullable=False)

    style_vector = Column(JSONType, nullable=False, default=list)  # 128 floats
    category_scores = Column(JSONType, nullable=False, default=dict)
    color_analysis = Column(JSONType)  # {"palette": [...]} or a raw list
    popularity_score = Column(Float, default=0.0, nullable=False)
    quality_score = Column(Float, default=0.5, nullable=False)

    # sha256 of title/description/category/style/price range
    content_hash = Column(String(64), nullable=False)
    last_analyzed = Column(DateTime(timezone=True))

    # Relationships
    artwork = relationship("Artwork", back_populates="analysis")
